"""MCP server for schema-to-filesystem reconciliation using stdio transport.

This module implements the Model Context Protocol server that lets an editor
or AI agent apply schema diffs to a workspace and roll them back.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP

The server is stateful: one ``ReconciliationEngine`` (and its snapshot
history) lives for the whole session.
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import setup_logging
from ..sync.engine import ReconciliationEngine
from ..version import check_version_consistency
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("codoc-sync")

# Global engine instance (initialized in lifespan)
_engine: ReconciliationEngine | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(
    engine: ReconciliationEngine, args: dict
) -> types.CallToolResult:
    """Report workspace and engine status."""
    history = engine.get_snapshot_history()
    text = (
        f"codoc-sync {__version__} ready. "
        f"Workspace: {engine.workspace_root}. "
        f"Snapshots: {len(history)}/{engine.snapshots.max_history}."
    )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "version": __version__,
            "workspace": str(engine.workspace_root),
            "snapshots": len(history),
            "max_history": engine.snapshots.max_history,
        },
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Report codoc-sync server status, workspace and snapshot count",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_engine() -> ReconciliationEngine:
    """Get the global ReconciliationEngine instance.

    Raises:
        RuntimeError: If the engine is not initialized
    """
    if _engine is None:
        raise RuntimeError(
            "ReconciliationEngine not initialized. Server lifespan not started."
        )
    return _engine


def set_engine(engine: ReconciliationEngine | None) -> None:
    global _engine
    _engine = engine


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """Return all registered (and permitted) tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    engine = get_engine()
    try:
        return await get_registry().call_tool(name, arguments, engine)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Build the ToolRegistry, filtered by an optional permissions file."""
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging is configured for MCP mode (file only, never stdout) before the
    stdio transport starts.

    Args:
        config_overrides: Optional dict with CLI values (workspace,
            max_history, debug, log_file, permissions_file)
    """
    overrides = config_overrides or {}

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    is_consistent, message = check_version_consistency()
    if not is_consistent:
        logger.warning(message)
        sys.stderr.write(f"Warning: {message}\n")
    else:
        logger.info(message)

    set_registry(build_registry(overrides.get("permissions_file")))

    # set_engine() is called here rather than inside the lifespan so that
    # running this file as __main__ still updates the module that
    # handle_call_tool reads from.
    async with server_lifespan(config_overrides=config_overrides) as ctx:
        set_engine(ctx["engine"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="codoc-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_engine(None)
            set_registry(None)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="codoc-sync - MCP server reconciling a schema tree against the file system",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the current directory
  codoc-sync-server

  # Serve another workspace with a deeper revert history
  codoc-sync-server --workspace ~/src/app --max-history 50

  # Expose only read-only tools
  codoc-sync-server --permissions-file /etc/codoc/read-only.permissions

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )
    parser.add_argument(
        "--workspace",
        help="Workspace root (takes precedence over CODOC_WORKSPACE and config files)",
    )
    parser.add_argument(
        "--max-history",
        type=int,
        help="Snapshots kept for revert, 1-1000 (default: 10)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Log file path (default: LOG_FILE env var or /tmp/codoc-sync.log)",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one capability per line (SCHEMA_SYNC, SNAPSHOT_VIEW, "
        "SNAPSHOT_REVERT), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"codoc-sync version {__version__}",
    )
    return parser.parse_args(argv)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = parse_args()

    config_overrides: dict = {}
    if args.workspace:
        config_overrides["workspace"] = args.workspace
    if args.max_history is not None:
        config_overrides["max_history"] = args.max_history
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.permissions_file:
        config_overrides["permissions_file"] = args.permissions_file

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
