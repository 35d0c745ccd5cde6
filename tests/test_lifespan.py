"""Tests for codoc_sync.mcp.lifespan: server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Loads config from CLI overrides, env vars and YAML fallbacks
- Builds the ReconciliationEngine for the workspace
- Fails fast on config errors
- Drops the snapshot history on shutdown
"""

from unittest.mock import patch

import pytest

from codoc_sync.config import Config
from codoc_sync.mcp.lifespan import create_engine, server_lifespan
from codoc_sync.schema.models import SchemaTree, StructuralDiff
from codoc_sync.sync.engine import ReconciliationEngine


@pytest.fixture(autouse=True)
def no_ambient_config(monkeypatch):
    """Keep .env files and real config files out of these tests."""
    for key in ("CODOC_WORKSPACE", "CODOC_MAX_HISTORY", "CODOC_DEBUG"):
        monkeypatch.delenv(key, raising=False)
    with (
        patch("codoc_sync.mcp.lifespan.load_dotenv"),
        patch(
            "codoc_sync.mcp.lifespan.discover_config_files",
            return_value=[],
        ),
    ):
        yield


# -------------------------------------------------------------------------
# create_engine()
# -------------------------------------------------------------------------


class TestCreateEngine:
    def test_engine_uses_config(self, workspace):
        config = Config(
            workspace_root=str(workspace),
            max_history=4,
            structural_extensions=(".py",),
            placeholder_sentinel="FIXME",
        )

        engine = create_engine(config)

        assert isinstance(engine, ReconciliationEngine)
        assert engine.workspace_root == workspace
        assert engine.snapshots.max_history == 4
        assert engine.sentinel == "FIXME"
        assert [s.name for s in engine.mutator.strategies_for("a.ts")] == [
            "textual"
        ]


# -------------------------------------------------------------------------
# server_lifespan()
# -------------------------------------------------------------------------


class TestServerLifespanSuccess:
    """Tests for the happy path through server_lifespan()."""

    async def test_successful_startup(self, workspace):
        async with server_lifespan({"workspace": str(workspace)}) as ctx:
            assert isinstance(ctx["engine"], ReconciliationEngine)
            assert ctx["config"].workspace_root == str(workspace)

    async def test_overrides_reach_config(self, workspace):
        overrides = {"workspace": str(workspace), "max_history": 3}
        async with server_lifespan(overrides) as ctx:
            assert ctx["config"].max_history == 3
            assert ctx["engine"].snapshots.max_history == 3

    async def test_yaml_fallbacks_used(self, workspace, tmp_path):
        config_file = tmp_path / "config.yml"
        config_file.write_text("sync:\n  max_history: 12\n")
        raw = {"sync": {"max_history": 12}}

        with (
            patch(
                "codoc_sync.mcp.lifespan.discover_config_files",
                return_value=[config_file],
            ),
            patch(
                "codoc_sync.mcp.lifespan.load_hierarchical_config",
                return_value=raw,
            ),
        ):
            async with server_lifespan({"workspace": str(workspace)}) as ctx:
                assert ctx["config"].max_history == 12

    async def test_shutdown_clears_history(self, workspace):
        async with server_lifespan({"workspace": str(workspace)}) as ctx:
            engine = ctx["engine"]
            await engine.reconcile(StructuralDiff(), SchemaTree())
            assert len(engine.get_snapshot_history()) == 1

        assert engine.get_snapshot_history() == []

    async def test_status_printed_to_stderr(self, workspace, capsys):
        async with server_lifespan({"workspace": str(workspace)}):
            pass

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "codoc-sync MCP server starting..." in captured.err
        assert f"Workspace: {workspace}" in captured.err
        assert "shutting down" in captured.err


class TestServerLifespanConfigError:
    """Tests for configuration failures at startup."""

    async def test_missing_workspace_raises_runtime_error(self, tmp_path):
        overrides = {"workspace": str(tmp_path / "does-not-exist")}
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan(overrides):
                pass

    async def test_invalid_yaml_values_raise_runtime_error(
        self, workspace, tmp_path
    ):
        with (
            patch(
                "codoc_sync.mcp.lifespan.discover_config_files",
                return_value=[tmp_path / "config.yml"],
            ),
            patch(
                "codoc_sync.mcp.lifespan.load_hierarchical_config",
                return_value={"sync": {"max_history": 0}},
            ),
        ):
            with pytest.raises(RuntimeError, match="Configuration error"):
                async with server_lifespan({"workspace": str(workspace)}):
                    pass

    async def test_config_error_stderr_messages(self, tmp_path, capsys):
        overrides = {"workspace": str(tmp_path / "missing")}
        with pytest.raises(RuntimeError):
            async with server_lifespan(overrides):
                pass

        err = capsys.readouterr().err
        assert "ERROR: Configuration error" in err
        assert "CODOC_WORKSPACE" in err
