"""File handler module: workspace path validation and file-system primitives.

Provides the raw I/O primitives the reconciliation engine is built on:
encoding-aware read, write, recursive make-directory, force-tolerant
recursive remove, rename and existence checks.  All sync functions are
plain blocking calls; the async wrappers run them through ``run_sync()``
so every primitive is a suspension point for the caller.

"Already exists" and "not found" surface as ``FileExistsError`` and
``FileNotFoundError`` so callers can special-case them; every other
failure propagates as the underlying ``OSError``.
"""

import os
import shutil
from pathlib import Path

from charset_normalizer import from_bytes

from codoc_sync.core.async_utils import run_sync

# =============================================================================
# Path Validation
# =============================================================================


def validate_workspace_root(path_str: str) -> Path:
    """Validate and resolve the workspace root directory.

    Args:
        path_str: Path string to an existing directory.

    Returns:
        Resolved Path object pointing to the directory.

    Raises:
        ValueError: If the path doesn't exist or is not a directory.
    """
    resolved = Path(path_str).expanduser().resolve()
    if not resolved.exists():
        raise ValueError(f"Workspace not found: {path_str}")
    if not resolved.is_dir():
        raise ValueError(f"Workspace is not a directory: {path_str}")
    return resolved


def resolve_in_workspace(root: Path, relative: str) -> Path:
    """Resolve a workspace-relative path, refusing anything outside *root*.

    Args:
        root: Resolved workspace root.
        relative: Relative path from the schema (``src/app.ts``).

    Returns:
        Absolute Path under *root*.

    Raises:
        ValueError: If *relative* is empty, absolute, or escapes *root*.
    """
    if not relative or not relative.strip():
        raise ValueError("Path must not be empty")
    candidate = Path(relative)
    if candidate.is_absolute():
        raise ValueError(f"Path must be relative to the workspace: {relative}")
    resolved = (root / candidate).resolve()
    if resolved != root and not resolved.is_relative_to(root):
        raise ValueError(
            f"Path is outside the workspace: {relative} not under {root}"
        )
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # Normalize ascii to utf-8 (ascii is a strict subset of utf-8)
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content to a file, creating parent directories as needed.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    path.write_bytes(encoded)
    return len(encoded)


# =============================================================================
# Directory / Tree Primitives
# =============================================================================


def make_directory(path: Path) -> bool:
    """Create *path* and any missing parents.

    Returns:
        ``True`` if the directory was created, ``False`` if it existed.

    Raises:
        FileExistsError: If a non-directory already occupies *path*.
    """
    if path.is_dir():
        return False
    path.mkdir(parents=True, exist_ok=True)
    return True


def remove_path(path: Path) -> bool:
    """Remove a file or directory tree, tolerating a missing target.

    Returns:
        ``True`` if something was removed, ``False`` if *path* was absent.
    """
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


def rename_path(old: Path, new: Path) -> None:
    """Rename *old* to *new*, creating the destination's parents.

    Raises:
        FileNotFoundError: If *old* does not exist.
        FileExistsError: If *new* already exists.
    """
    if not old.exists():
        raise FileNotFoundError(f"Source not found: {old}")
    if new.exists():
        raise FileExistsError(f"Destination already exists: {new}")
    new.parent.mkdir(parents=True, exist_ok=True)
    os.rename(old, new)


def path_exists(path: Path) -> bool:
    """Return ``True`` if *path* exists."""
    return path.exists()


# =============================================================================
# Async Wrappers
# =============================================================================


async def read_file_async(path: Path) -> tuple[str, str]:
    """Async wrapper: read file with encoding detection.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    return await run_sync(read_file_with_encoding, path)


async def write_file_async(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Async wrapper: write file, creating parent directories."""
    return await run_sync(write_file, path, content, encoding)


async def make_directory_async(path: Path) -> bool:
    """Async wrapper: recursive, idempotent directory creation."""
    return await run_sync(make_directory, path)


async def remove_path_async(path: Path) -> bool:
    """Async wrapper: recursive, force-tolerant removal."""
    return await run_sync(remove_path, path)


async def rename_path_async(old: Path, new: Path) -> None:
    """Async wrapper: rename with parent creation."""
    await run_sync(rename_path, old, new)


async def path_exists_async(path: Path) -> bool:
    """Async wrapper: existence check."""
    return await run_sync(path_exists, path)
