"""Shared pytest fixtures for codoc-sync tests."""

from pathlib import Path

import pytest

from codoc_sync.config import Config
from codoc_sync.sync.engine import ReconciliationEngine


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """An empty, resolved workspace directory."""
    root = tmp_path / "workspace"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def engine(workspace: Path) -> ReconciliationEngine:
    """A ReconciliationEngine bound to the temporary workspace."""
    return ReconciliationEngine(workspace)


@pytest.fixture
def mock_config(workspace: Path) -> Config:
    """Create a Config instance pointing at the temporary workspace."""
    return Config(workspace_root=str(workspace), max_history=5)


def write_files(root: Path, files: dict[str, str]) -> None:
    """Write ``{relative_path: content}`` below *root*."""
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


@pytest.fixture
def make_files(workspace: Path):
    """Factory fixture writing files into the workspace."""

    def _make(files: dict[str, str]) -> Path:
        write_files(workspace, files)
        return workspace

    return _make
