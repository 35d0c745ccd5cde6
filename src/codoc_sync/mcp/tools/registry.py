"""ToolSpec and ToolRegistry for permission-based tool filtering.

Operators can restrict which tools are exposed to AI agents by listing the
capabilities they allow in a permissions file.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, required
  capabilities, and an async handler ``(engine, args) -> CallToolResult``.
- ToolRegistry: Filters specs by allowed capabilities at construction time,
  then provides list_tools() and call_tool() dispatch with error translation.
- load_permissions_file: Reads a simple text file of capability names.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import mcp.types as types

from ...sync.engine import ReconciliationEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        permissions: Capabilities required to use this tool.  An empty
            frozenset means the tool is always available.
        handler: Async handler with signature (engine, args) -> CallToolResult.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Callable[
        [ReconciliationEngine, dict], Awaitable[types.CallToolResult]
    ]


class ToolRegistry:
    """Registry of ToolSpecs with optional capability filtering.

    If allowed_permissions is None, every spec is included.  Otherwise a
    spec is included only if its permissions are empty or a subset of
    allowed_permissions.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if (
                allowed_permissions is None
                or not spec.permissions
                or spec.permissions <= allowed_permissions
            ):
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered (permitted) specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        engine: ReconciliationEngine,
    ) -> types.CallToolResult:
        """Dispatch a tool call to its registered handler.

        Exceptions raised by the handler are translated into structured
        error responses with a corrective action.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import translate_exception

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        try:
            return await spec.handler(engine, arguments or {})
        except Exception as e:
            if not isinstance(e, (ValueError, LookupError, OSError)):
                logger.exception("Unexpected error in tool %s", name)
            else:
                logger.warning("Tool %s failed: %s", name, e)
            return translate_exception(e)


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Load capability names from a text file.

    Format: one capability per line, ``#`` for comments, blank lines ignored.

    Example file::

        # Read-only: inspect history, never mutate
        SNAPSHOT_VIEW

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a line is not UPPER_SNAKE_CASE or the file is empty.
    """
    path = Path(path)
    permissions: set[str] = set()
    for line_num, line in enumerate(path.read_text().splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if not stripped.replace("_", "").isalpha() or not stripped.isupper():
            raise ValueError(
                f"Invalid permission '{stripped}' at line {line_num} in {path}. "
                "Expected UPPER_SNAKE_CASE (e.g., SCHEMA_SYNC)."
            )
        permissions.add(stripped)
    if not permissions:
        raise ValueError(
            f"No permissions found in {path}. File must contain at least one permission."
        )
    return frozenset(permissions)
