"""Migration definition and execution models."""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError

_MIGRATION_ID_PATTERN = re.compile(r"^[a-z0-9_]+$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MigrationStatus(str, Enum):
    """Status of a migration run."""
    PENDING = "pending"
    IMPORTING = "importing"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"


@dataclass
class MigrationConfig:
    """
    Definition of one migration.

    The process map is keyed by destination property; each value is a step
    shorthand, a single step configuration or an ordered list of them.
    """
    id: str
    label: str = ""
    process: Dict[str, Any] = field(default_factory=dict)

    # Change tracking
    track_changes: bool = False
    track_last_imported: bool = False
    store_row_data: bool = False

    # Execution options
    max_errors: int = 0  # 0 means unlimited

    def __post_init__(self):
        if not self.id or not _MIGRATION_ID_PATTERN.match(self.id):
            raise ConfigurationError(
                f"Migration id must be lowercase alphanumerics and underscores, got {self.id!r}"
            )
        if not isinstance(self.process, dict):
            raise ConfigurationError(f"Migration {self.id} process must be a mapping")
        if self.max_errors < 0:
            raise ConfigurationError(f"Migration {self.id} max_errors must not be negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "label": self.label,
            "process": self.process,
            "track_changes": self.track_changes,
            "track_last_imported": self.track_last_imported,
            "store_row_data": self.store_row_data,
            "max_errors": self.max_errors,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create from dictionary representation."""
        return cls(
            id=data.get("id", ""),
            label=data.get("label", ""),
            process=data.get("process", {}),
            track_changes=data.get("track_changes", False),
            track_last_imported=data.get("track_last_imported", False),
            store_row_data=data.get("store_row_data", False),
            max_errors=data.get("max_errors", 0),
        )


@dataclass
class MigrationRun:
    """Summary of one import or rollback pass over a migration."""
    migration_id: str
    operation: str = "import"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: MigrationStatus = MigrationStatus.PENDING

    # Timing
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Statistics
    processed: int = 0
    imported: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    rolled_back: int = 0
    preserved: int = 0

    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def written(self) -> int:
        """Rows written to the destination, new and updated."""
        return self.imported + self.updated

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def start(self, status: MigrationStatus) -> None:
        self.status = status
        self.started_at = utcnow()

    def finish(self, status: MigrationStatus) -> None:
        self.status = status
        self.completed_at = utcnow()

    def add_error(self, message: str, source_ids_hash: Optional[str] = None) -> None:
        """Record a batch-level error."""
        self.errors.append({
            "message": message,
            "source_ids_hash": source_ids_hash,
            "timestamp": utcnow().isoformat(),
        })

    def summary(self) -> str:
        """One-line human readable summary."""
        if self.operation == "rollback":
            return (
                f"{self.migration_id}: rolled back {self.rolled_back}, "
                f"preserved {self.preserved} ({self.status.value})"
            )
        return (
            f"{self.migration_id}: processed {self.processed} "
            f"(written {self.written}: {self.imported} created, {self.updated} updated), "
            f"skipped {self.skipped}, failed {self.failed}, unchanged {self.unchanged} "
            f"({self.status.value})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "migration_id": self.migration_id,
            "operation": self.operation,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "processed": self.processed,
            "imported": self.imported,
            "updated": self.updated,
            "written": self.written,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "failed": self.failed,
            "rolled_back": self.rolled_back,
            "preserved": self.preserved,
            "errors": self.errors,
        }
