"""Read-only reporting endpoints over identity maps and message logs."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ...models.id_map import MapEntry, MessageEntry, MessageLevel, SourceRowStatus
from ...storage.id_map import IdMap
from ..models import (
    MapEntryDetailResponse,
    MapEntryResponse,
    MapListResponse,
    MessageLevelEnum,
    MessageListResponse,
    MessageResponse,
    MigrationStatusResponse,
    SourceRowStatusEnum,
)

router = APIRouter()


def get_id_map(migration_id: str, request: Request) -> IdMap:
    """Resolve the identity map of a migration registered on the app."""
    id_map = request.app.state.id_maps.get(migration_id)
    if id_map is None:
        raise HTTPException(status_code=404, detail="Migration not found")
    return id_map


def _entry_fields(entry: MapEntry) -> dict:
    return {
        "source_ids_hash": entry.source_ids_hash,
        "source_ids": entry.source_ids,
        "destination_ids": entry.destination_ids,
        "status": entry.status.label,
        "rollback_action": entry.rollback_action.label,
        "hash": entry.hash,
        "last_imported": entry.last_imported_at,
    }


def _message(message: MessageEntry) -> MessageResponse:
    return MessageResponse(
        msgid=message.msgid,
        source_ids_hash=message.source_ids_hash,
        level=message.level.label,
        message=message.message,
    )


@router.get("/{migration_id}/status", response_model=MigrationStatusResponse)
def get_status(migration_id: str, id_map: IdMap = Depends(get_id_map)):
    """Counts of mapped rows per status."""
    return MigrationStatusResponse(
        migration_id=migration_id,
        total=id_map.processed_count(),
        imported=id_map.imported_count(),
        needs_update=id_map.update_count(),
        ignored=id_map.ignored_count(),
        failed=id_map.error_count(),
        messages=id_map.message_log.count(),
    )


@router.get("/{migration_id}/map", response_model=MapListResponse)
def list_map_entries(
    migration_id: str,
    status: Optional[SourceRowStatusEnum] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    id_map: IdMap = Depends(get_id_map),
):
    """List identity map entries."""
    row_status = SourceRowStatus[status.name] if status else None
    entries = id_map.entries(status=row_status, limit=limit, offset=offset)
    total = id_map.count(row_status)
    return MapListResponse(
        entries=[MapEntryResponse(**_entry_fields(entry)) for entry in entries],
        total=total,
    )


@router.get("/{migration_id}/map/{source_ids_hash}", response_model=MapEntryDetailResponse)
def get_map_entry(migration_id: str, source_ids_hash: str, id_map: IdMap = Depends(get_id_map)):
    """Get one identity map entry with its messages."""
    entry = id_map.lookup(source_ids_hash)
    if entry is None:
        raise HTTPException(status_code=404, detail="Map entry not found")
    return MapEntryDetailResponse(
        **_entry_fields(entry),
        source_data=entry.source_data,
        destination_data=entry.destination_data,
        messages=[_message(m) for m in id_map.message_log.query(source_ids_hash)],
    )


@router.get("/{migration_id}/messages", response_model=MessageListResponse)
def list_messages(
    migration_id: str,
    level: Optional[MessageLevelEnum] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    id_map: IdMap = Depends(get_id_map),
):
    """List messages, oldest first."""
    message_level = MessageLevel[level.name] if level else None
    messages: List[MessageEntry] = id_map.message_log.messages(level=message_level, limit=limit, offset=offset)
    return MessageListResponse(
        messages=[_message(m) for m in messages],
        total=id_map.message_log.count(level=message_level),
    )
