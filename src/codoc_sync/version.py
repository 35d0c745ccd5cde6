"""Version checking utilities for detecting a stale installed package."""

import tomllib
from pathlib import Path


def check_version_consistency() -> tuple[bool, str]:
    """Check if the runtime version matches the version in pyproject.toml.

    Returns:
        Tuple of (is_consistent, message).  An editable install whose
        ``__version__`` lags behind pyproject.toml reports a mismatch.
    """
    try:
        from . import __version__ as runtime_version
    except ImportError:
        return False, "Cannot import __version__ from codoc_sync"

    pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
    if not pyproject_path.exists():
        return False, "Cannot find pyproject.toml for version comparison"

    try:
        with open(pyproject_path, "rb") as f:
            source_version = (
                tomllib.load(f).get("project", {}).get("version", "unknown")
            )
    except Exception as e:
        return False, f"Failed to read version from pyproject.toml: {e}"

    if runtime_version != source_version:
        return False, (
            f"Version mismatch detected! "
            f"Runtime: {runtime_version}, Source: {source_version}. "
            f"Reinstall with: pip install -e ."
        )

    return True, f"Version verified: {runtime_version}"
