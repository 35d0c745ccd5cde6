"""Unified configuration schema for codoc-sync.

Pydantic models for the YAML config file, one section per concern:
``workspace``, ``sync`` and ``logging``.  ``to_runtime_config`` flattens a
validated ``UnifiedConfig`` into the ``yaml_fallbacks`` mapping that
``config.load_config`` consumes.

Usage:
    from codoc_sync.config_schema import build_config

    unified = build_config(load_hierarchical_config())
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .sync.mutator import DEFAULT_STRUCTURAL_EXTENSIONS
from .sync.paths import DEFAULT_SOURCE_EXTENSIONS
from .sync.placeholders import PLACEHOLDER_SENTINEL

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class WorkspaceConfig(BaseModel):
    """Workspace location.

    ``root`` is optional so ``CODOC_WORKSPACE`` or ``--workspace`` can
    supply it at runtime instead.
    """

    root: str | None = Field(
        default=None, description="Workspace root directory"
    )

    model_config = {"frozen": True}


def _normalise_extensions(values: list[str]) -> list[str]:
    normalised = []
    for ext in values:
        ext = ext.strip().lower()
        if not ext:
            continue
        normalised.append(ext if ext.startswith(".") else "." + ext)
    return normalised


class SyncSettings(BaseModel):
    """Reconciliation engine settings."""

    max_history: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Snapshots kept for revert (1-1000)",
    )
    structural_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_STRUCTURAL_EXTENSIONS),
        description="Extensions edited with tree-sitter before the textual fallback",
    )
    source_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SOURCE_EXTENSIONS),
        description="Extensions that mark a bare node path as a file",
    )
    placeholder_sentinel: str = Field(
        default=PLACEHOLDER_SENTINEL,
        min_length=1,
        description="Comment text that marks a generated placeholder",
    )

    model_config = {"frozen": True}

    @field_validator("structural_extensions", "source_extensions")
    @classmethod
    def _dotted(cls, values: list[str]) -> list[str]:
        return _normalise_extensions(values)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration; ``UnifiedConfig()`` is always valid."""

    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict[str, Any] | None) -> UnifiedConfig:
    """Validate the merged YAML dict; absent sections get defaults.

    Raises:
        pydantic.ValidationError: If a section holds invalid values.
    """
    if not raw_data:
        return UnifiedConfig()
    return UnifiedConfig(**raw_data)


def to_runtime_config(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten *unified* into ``load_config`` YAML fallbacks.

    ``None`` values are dropped so they never shadow a default.
    """
    fallbacks: dict[str, Any] = {
        "workspace_root": unified.workspace.root,
        "max_history": unified.sync.max_history,
        "structural_extensions": tuple(unified.sync.structural_extensions),
        "source_extensions": tuple(unified.sync.source_extensions),
        "placeholder_sentinel": unified.sync.placeholder_sentinel,
        "log_file": unified.logging.file,
        "log_level": unified.logging.level,
    }
    return {k: v for k, v in fallbacks.items() if v is not None}
