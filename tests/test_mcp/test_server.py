"""Tests for the MCP server module: ping, registry wiring and CLI parsing."""

from pathlib import Path

import mcp.types as types
import pytest

from codoc_sync import __version__
from codoc_sync.mcp import server
from codoc_sync.mcp.server import (
    PING_SPEC,
    build_registry,
    get_engine,
    get_registry,
    handle_call_tool,
    handle_list_tools,
    parse_args,
    set_engine,
    set_registry,
)


@pytest.fixture
def wired(engine):
    """Install the engine and an unrestricted registry as server globals."""
    set_engine(engine)
    set_registry(build_registry())
    yield engine
    set_engine(None)
    set_registry(None)


# ---------------------------------------------------------------------------
# Ping
# ---------------------------------------------------------------------------


class TestPing:
    async def test_reports_status(self, engine, workspace: Path):
        result = await PING_SPEC.handler(engine, {})

        text = result.content[0].text
        assert text.startswith(f"codoc-sync {__version__} ready.")
        assert f"Workspace: {workspace}." in text
        assert "Snapshots: 0/10." in text
        assert result.structuredContent == {
            "version": __version__,
            "workspace": str(workspace),
            "snapshots": 0,
            "max_history": 10,
        }

    def test_needs_no_permission(self):
        assert PING_SPEC.permissions == frozenset()


# ---------------------------------------------------------------------------
# Registry wiring
# ---------------------------------------------------------------------------


class TestBuildRegistry:
    def test_all_tools_without_permissions_file(self):
        names = [t.name for t in build_registry().list_tools()]
        assert names == [
            "ping",
            "schema_sync",
            "schema_sync_revert",
            "schema_sync_history",
            "schema_sync_clear_history",
        ]

    def test_permissions_file_filters(self, tmp_path: Path, capsys):
        perms = tmp_path / "read-only.permissions"
        perms.write_text("# view only\nSNAPSHOT_VIEW\n")

        registry = build_registry(str(perms))

        assert [t.name for t in registry.list_tools()] == [
            "ping",
            "schema_sync_history",
        ]
        assert "(2 of 5 tools enabled)" in capsys.readouterr().err

    def test_invalid_permissions_file(self, tmp_path: Path):
        perms = tmp_path / "bad.permissions"
        perms.write_text("schema-sync\n")
        with pytest.raises(ValueError, match="Invalid permission"):
            build_registry(str(perms))


# ---------------------------------------------------------------------------
# Global accessors and protocol handlers
# ---------------------------------------------------------------------------


class TestAccessors:
    def test_engine_not_initialized(self):
        set_engine(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            get_engine()

    def test_registry_not_initialized(self):
        set_registry(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            get_registry()

    def test_set_and_get(self, wired):
        assert get_engine() is wired
        assert server._registry is get_registry()


class TestProtocolHandlers:
    async def test_list_tools(self, wired):
        tools = await handle_list_tools()
        assert all(isinstance(t, types.Tool) for t in tools)
        assert len(tools) == 5

    async def test_call_ping(self, wired):
        result = await handle_call_tool("ping", None)
        assert result.structuredContent["snapshots"] == 0

    async def test_unknown_tool(self, wired):
        result = await handle_call_tool("wiki_get", {})
        assert result.isError is True
        text = result.content[0].text
        assert text.startswith("Error (unknown_tool): Unknown tool: wiki_get")
        assert "Use list_tools" in text


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.workspace is None
        assert args.max_history is None
        assert args.debug is False
        assert args.permissions_file is None

    def test_all_options(self):
        args = parse_args(
            [
                "--workspace",
                "/srv/app",
                "--max-history",
                "25",
                "--debug",
                "--log-file",
                "/tmp/x.log",
                "--permissions-file",
                "ro.permissions",
            ]
        )
        assert args.workspace == "/srv/app"
        assert args.max_history == 25
        assert args.debug is True
        assert args.log_file == "/tmp/x.log"
        assert args.permissions_file == "ro.permissions"

    def test_max_history_must_be_integer(self):
        with pytest.raises(SystemExit):
            parse_args(["--max-history", "many"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            parse_args(["--version"])
        assert exc.value.code == 0
        assert f"codoc-sync version {__version__}" in capsys.readouterr().out
