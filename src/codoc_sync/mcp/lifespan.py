"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, to_runtime_config
from ..sync.engine import ReconciliationEngine
from ..sync.mutator import CodeMutator

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


def create_engine(config: Config) -> ReconciliationEngine:
    """Build the session's ``ReconciliationEngine`` from *config*."""
    mutator = CodeMutator(
        structural_extensions=config.structural_extensions,
        sentinel=config.placeholder_sentinel,
    )
    return ReconciliationEngine(
        Path(config.workspace_root),
        max_history=config.max_history,
        source_extensions=config.source_extensions,
        sentinel=config.placeholder_sentinel,
        mutator=mutator,
    )


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Build the ReconciliationEngine for the workspace

    On shutdown:
    - Drop the in-memory snapshot history

    Args:
        config_overrides: Optional dict with config values from CLI
            (workspace, max_history, debug, log_file)

    Yields:
        Dict with 'engine' and 'config' keys

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("codoc-sync MCP server starting...")

    try:
        # .env first so ${VAR} interpolation in YAML can see its values
        load_dotenv()

        yaml_fallbacks: dict[str, Any] | None = None
        sources = []
        config_files = discover_config_files()
        if config_files:
            unified = build_config(load_hierarchical_config())
            yaml_fallbacks = to_runtime_config(unified)
            sources.append(f"config file: {config_files[0]}")

        overrides = config_overrides or {}
        config = load_config(
            workspace=overrides.get("workspace"),
            max_history=overrides.get("max_history"),
            debug=overrides.get("debug", False),
            log_file=overrides.get("log_file"),
            yaml_fallbacks=yaml_fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure CODOC_WORKSPACE points at an existing directory.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure CODOC_WORKSPACE points at an existing directory."
        ) from e

    engine = create_engine(config)
    logger.info(
        "Workspace: %s (history %d)",
        config.workspace_root,
        config.max_history,
    )
    _stderr_print(f"  Workspace: {config.workspace_root}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"engine": engine, "config": config}
    finally:
        engine.clear_history()
        logger.info("MCP server shutting down")
        _stderr_print("codoc-sync MCP server shutting down.")
