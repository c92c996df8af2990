"""Pydantic models for the reporting API."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SourceRowStatusEnum(str, Enum):
    IMPORTED = "imported"
    NEEDS_UPDATE = "needs_update"
    IGNORED = "ignored"
    FAILED = "failed"


class RollbackActionEnum(str, Enum):
    DELETE = "delete"
    PRESERVE = "preserve"


class MessageLevelEnum(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    INFORMATIONAL = "informational"


class MigrationStatusResponse(BaseModel):
    migration_id: str
    total: int
    imported: int
    needs_update: int
    ignored: int
    failed: int
    messages: int


class MessageResponse(BaseModel):
    msgid: int
    source_ids_hash: str
    level: MessageLevelEnum
    message: str


class MessageListResponse(BaseModel):
    messages: List[MessageResponse]
    total: int


class MapEntryResponse(BaseModel):
    source_ids_hash: str
    source_ids: List[Any]
    destination_ids: List[Any]
    status: SourceRowStatusEnum
    rollback_action: RollbackActionEnum
    hash: str
    last_imported: Optional[datetime] = None


class MapEntryDetailResponse(MapEntryResponse):
    source_data: Optional[Dict[str, Any]] = None
    destination_data: Optional[Dict[str, Any]] = None
    messages: List[MessageResponse] = Field(default_factory=list)


class MapListResponse(BaseModel):
    entries: List[MapEntryResponse]
    total: int
