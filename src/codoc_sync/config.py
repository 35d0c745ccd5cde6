"""Runtime configuration for the codoc-sync MCP server.

Resolves the workspace and engine settings from CLI args, environment
variables, .env files and YAML config fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    CODOC_WORKSPACE: Workspace root directory (default: current directory)
    CODOC_MAX_HISTORY: Snapshots kept for revert (optional, default: 10)
    CODOC_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .sync.mutator import DEFAULT_STRUCTURAL_EXTENSIONS
from .sync.paths import DEFAULT_SOURCE_EXTENSIONS
from .sync.placeholders import PLACEHOLDER_SENTINEL

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 1000


@dataclass
class Config:
    workspace_root: str
    max_history: int = 10
    debug: bool = False
    structural_extensions: tuple[str, ...] = field(
        default=DEFAULT_STRUCTURAL_EXTENSIONS
    )
    source_extensions: tuple[str, ...] = field(
        default=DEFAULT_SOURCE_EXTENSIONS
    )
    placeholder_sentinel: str = PLACEHOLDER_SENTINEL
    log_file: str | None = None


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    The workspace root is normalised to an absolute path in place.

    Raises:
        ValueError: If the workspace is not an existing directory or the
            history size is out of range.
    """
    root = Path(config.workspace_root.strip()).expanduser()
    if not root.exists():
        raise ValueError(f"Workspace not found: {config.workspace_root}")
    if not root.is_dir():
        raise ValueError(
            f"Workspace is not a directory: {config.workspace_root}"
        )
    config.workspace_root = str(root.resolve())

    if not (1 <= config.max_history <= MAX_HISTORY_LIMIT):
        raise ValueError(
            f"Invalid max_history {config.max_history}: "
            f"must be a number between 1 and {MAX_HISTORY_LIMIT}"
        )

    if not config.placeholder_sentinel.strip():
        raise ValueError("Placeholder sentinel cannot be empty.")


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    workspace: str | None = None,
    max_history: int | None = None,
    debug: bool = False,
    log_file: str | None = None,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        workspace: Workspace root (CLI ``--workspace``).
        max_history: Snapshot history size (CLI ``--max-history``).
        debug: Enable debug logging (CLI flag).
        log_file: Log file path (CLI ``--log-file``).
        yaml_fallbacks: Flattened YAML values from
            ``config_schema.to_runtime_config``.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is malformed or fails validation.
    """
    fb = yaml_fallbacks or {}

    workspace_root = (
        workspace
        or os.getenv("CODOC_WORKSPACE")
        or fb.get("workspace_root")
        or os.getcwd()
    )

    if max_history is not None:
        final_max_history = max_history
    else:
        raw = os.getenv("CODOC_MAX_HISTORY")
        if raw is not None:
            try:
                final_max_history = int(raw)
            except ValueError:
                raise ValueError(
                    f"Invalid CODOC_MAX_HISTORY '{raw}': must be a number "
                    f"between 1 and {MAX_HISTORY_LIMIT}"
                ) from None
        else:
            final_max_history = int(fb.get("max_history", 10))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("CODOC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    config = Config(
        workspace_root=workspace_root,
        max_history=final_max_history,
        debug=final_debug,
        structural_extensions=tuple(
            fb.get("structural_extensions", DEFAULT_STRUCTURAL_EXTENSIONS)
        ),
        source_extensions=tuple(
            fb.get("source_extensions", DEFAULT_SOURCE_EXTENSIONS)
        ),
        placeholder_sentinel=fb.get(
            "placeholder_sentinel", PLACEHOLDER_SENTINEL
        ),
        log_file=log_file or fb.get("log_file"),
    )

    validate_config(config)

    return config
