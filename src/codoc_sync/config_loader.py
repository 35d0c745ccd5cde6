"""
Hierarchical YAML configuration loading for codoc-sync.

Discovers config files by convention, resolves ``!include`` directives,
interpolates ``${VAR}`` references and merges files so the project-level
file wins over the global one.

Usage:
    from codoc_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CODOC_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".codoc"

# ${VAR} or ${VAR:-fallback}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-fallback}`` in *value*.

    An unset or empty variable expands to its fallback, or to ``""`` when
    no fallback is given.  An unterminated ``${`` is kept literally.
    """

    def _expand(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_expand, value)


def _interpolate(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {key: _interpolate(val) for key, val in obj.items()}
    if isinstance(obj, list):
        return [_interpolate(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# YAML with !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """``SafeLoader`` subclass that understands ``!include``.

    The global ``yaml.SafeLoader`` is never modified.  Each load carries
    the chain of files being included so cycles are reported instead of
    recursing forever.
    """


def _include(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Load the file named by ``!include``, relative to the including file."""
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    chain: list[Path] = getattr(loader, "_include_stack", [])
    if target in chain:
        cycle = " -> ".join(str(p) for p in [*chain, target])
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} "
            f"(referenced from {Path(loader.name).resolve()})"
        )
    return load_yaml_file(target, _include_stack=[*chain, target])


ConfigLoader.add_constructor("!include", _include)


def load_yaml_file(
    path: Path, *, _include_stack: list[Path] | None = None
) -> Any:
    """Parse one YAML file, following ``!include`` directives."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``CODOC_SYNC_CONFIG`` (explicit path)
        2. ``./.codoc/config.yml``
        3. ``./.codoc/config.yaml``
        4. ``~/.config/codoc/config.yml``
    """
    candidates: list[Path] = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(Path.home() / ".config" / "codoc" / "config.yml")

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# codoc-sync configuration
#
# Values may reference environment variables: ${VAR} or ${VAR:-default}.
# CODOC_WORKSPACE, CODOC_MAX_HISTORY and CODOC_DEBUG override this file.
#
# workspace:
#   root: .
#
# sync:
#   max_history: 10
#   placeholder_sentinel: "TODO: Implement"
#   structural_extensions: [.py, .js, .jsx, .ts, .tsx]
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter one if none exists.

    Args:
        target: Where to write the starter file; defaults to
            ``./.codoc/config.yml``.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge every discovered config file.

    Files are applied from lowest to highest precedence; a top-level
    section from a higher-precedence file replaces the whole section.
    Env var interpolation runs after the merge.  Returns ``{}`` when no
    file exists.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = load_yaml_file(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise
        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has a %s root, expected a mapping; skipped",
                path,
                type(data).__name__,
            )

    return _interpolate(merged)
