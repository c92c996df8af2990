"""Data models for the migration engine."""

from .row import Row
from .pipeline import PipelineDefinition, normalize_steps, replace_placeholders
from .id_map import (
    SourceRowStatus,
    RollbackAction,
    MessageLevel,
    MapEntry,
    MessageEntry,
    UNRESOLVED_SOURCE_IDS_HASH,
)
from .migration import (
    MigrationConfig,
    MigrationRun,
    MigrationStatus,
)

__all__ = [
    "Row",
    "PipelineDefinition",
    "normalize_steps",
    "replace_placeholders",
    "SourceRowStatus",
    "RollbackAction",
    "MessageLevel",
    "MapEntry",
    "MessageEntry",
    "UNRESOLVED_SOURCE_IDS_HASH",
    "MigrationConfig",
    "MigrationRun",
    "MigrationStatus",
]
