"""Core helpers shared between the sync engine and the MCP server."""

from .async_utils import run_sync

__all__ = ["run_sync"]
