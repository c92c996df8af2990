"""Identity map and message log records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, List, Optional

# Message key used when a row has no resolvable source ids
UNRESOLVED_SOURCE_IDS_HASH = "unresolved"


class SourceRowStatus(IntEnum):
    """Processing status of a mapped source row."""
    IMPORTED = 0
    NEEDS_UPDATE = 1
    IGNORED = 2
    FAILED = 3

    @property
    def label(self) -> str:
        return self.name.lower()


class RollbackAction(IntEnum):
    """What a rollback does with the destination entity of a mapped row."""
    DELETE = 0
    PRESERVE = 1

    @property
    def label(self) -> str:
        return self.name.lower()


class MessageLevel(IntEnum):
    """Severity of a message log entry."""
    ERROR = 1
    WARNING = 2
    NOTICE = 3
    INFORMATIONAL = 4

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass
class MapEntry:
    """One row of an identity map."""
    source_ids_hash: str
    source_ids: List[Any] = field(default_factory=list)
    destination_ids: List[Any] = field(default_factory=list)
    status: SourceRowStatus = SourceRowStatus.IMPORTED
    rollback_action: RollbackAction = RollbackAction.DELETE
    hash: str = ""
    last_imported: Optional[int] = None
    source_data: Optional[Dict[str, Any]] = None
    destination_data: Optional[Dict[str, Any]] = None

    @property
    def needs_update(self) -> bool:
        return self.status == SourceRowStatus.NEEDS_UPDATE

    @property
    def last_imported_at(self) -> Optional[datetime]:
        """Last import time as an aware datetime."""
        if self.last_imported is None:
            return None
        return datetime.fromtimestamp(self.last_imported, tz=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "source_ids_hash": self.source_ids_hash,
            "source_ids": self.source_ids,
            "destination_ids": self.destination_ids,
            "status": self.status.label,
            "rollback_action": self.rollback_action.label,
            "hash": self.hash,
            "last_imported": self.last_imported_at.isoformat() if self.last_imported else None,
        }


@dataclass
class MessageEntry:
    """One row of a message log."""
    msgid: int
    source_ids_hash: str
    level: MessageLevel
    message: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "msgid": self.msgid,
            "source_ids_hash": self.source_ids_hash,
            "level": self.level.label,
            "message": self.message,
        }
