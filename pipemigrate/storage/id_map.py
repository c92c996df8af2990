"""Persistent identity map between source rows and destination entities."""

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, and_, delete, func, select, update
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import Connection, Engine

from ..errors import ConfigurationError, MapPersistenceError
from ..models.id_map import (
    UNRESOLVED_SOURCE_IDS_HASH,
    MapEntry,
    MessageLevel,
    RollbackAction,
    SourceRowStatus,
)
from ..models.row import Row
from .database import transaction
from .message_log import MessageLog

logger = logging.getLogger(__name__)

# Column types for declared id fields
ID_TYPES = {
    "string": lambda: String(255),
    "integer": lambda: Integer(),
}

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def compute_source_hash(source_id_values: Sequence[Any]) -> str:
    """
    Hash ordered source id values.

    Values are canonicalised to strings, so 42 and "42" hash identically,
    while the order of the values changes the hash.
    """
    encoded = json.dumps([str(value) for value in source_id_values])
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def _now_unix() -> int:
    return int(datetime.now(timezone.utc).timestamp())


class IdMap:
    """
    Source to destination correspondence of one migration.

    Backed by one ``migrate_map_<migration id>`` table keyed by the hash of
    the row's source ids, with one ``sourceidN`` column per declared source
    id field and one ``destidN`` column per destination key column. Writes
    are single dialect-native upserts, so an entry is never duplicated.
    """

    def __init__(
        self,
        engine: Engine,
        migration_id: str,
        source_ids: Dict[str, str],
        destination_ids: Dict[str, str],
        message_log: Optional[MessageLog] = None,
        track_last_imported: bool = False,
        store_row_data: bool = False,
    ):
        """
        Initialize the identity map, creating its table when missing.

        Args:
            engine: SQLAlchemy engine
            migration_id: Migration the map belongs to
            source_ids: Ordered source id field -> type ("string" or "integer")
            destination_ids: Ordered destination key column -> type
            message_log: Message log of the migration; created when omitted
            track_last_imported: Stamp last_imported on every save
            store_row_data: Keep source and destination payloads for diagnostics
        """
        if not source_ids:
            raise ConfigurationError(f"Migration {migration_id} declares no source ids")
        if not destination_ids:
            raise ConfigurationError(f"Migration {migration_id} declares no destination ids")

        self.engine = engine
        self.migration_id = migration_id
        self.source_ids = dict(source_ids)
        self.destination_ids = dict(destination_ids)
        self.message_log = message_log or MessageLog(engine, migration_id)
        self.track_last_imported = track_last_imported
        self.store_row_data = store_row_data

        self.metadata = MetaData()
        columns = [Column("source_ids_hash", String(64), primary_key=True)]
        for i, (name, id_type) in enumerate(self.source_ids.items(), start=1):
            columns.append(Column(f"sourceid{i}", self._column_type(name, id_type), nullable=False))
        for i, (name, id_type) in enumerate(self.destination_ids.items(), start=1):
            columns.append(Column(f"destid{i}", self._column_type(name, id_type), nullable=True))
        columns += [
            Column("source_row_status", Integer, nullable=False, default=int(SourceRowStatus.IMPORTED)),
            Column("rollback_action", Integer, nullable=False, default=int(RollbackAction.DELETE)),
            Column("last_imported", Integer, nullable=True),
            Column("hash", String(64), nullable=True),
        ]
        if store_row_data:
            columns += [
                Column("source_data", Text, nullable=True),
                Column("destination_data", Text, nullable=True),
            ]
        self.table = Table(f"migrate_map_{migration_id}", self.metadata, *columns)

        with transaction(self.engine, f"creating {self.table.name}") as conn:
            self.metadata.create_all(conn, tables=[self.table])

    @staticmethod
    def _column_type(name: str, id_type: str):
        factory = ID_TYPES.get(id_type)
        if factory is None:
            raise ConfigurationError(f"Unsupported type {id_type!r} for id field {name}")
        return factory()

    @property
    def source_id_columns(self) -> List[Column]:
        return [self.table.c[f"sourceid{i}"] for i in range(1, len(self.source_ids) + 1)]

    @property
    def destination_id_columns(self) -> List[Column]:
        return [self.table.c[f"destid{i}"] for i in range(1, len(self.destination_ids) + 1)]

    # Hashing

    def compute_source_hash(self, source_id_values: Sequence[Any]) -> str:
        return compute_source_hash(source_id_values)

    def row_source_id_values(self, row: Row) -> Optional[List[Any]]:
        """Declared source id values of a row in order, or None if any is missing."""
        values = [row.get_source_property(name) for name in self.source_ids]
        if any(value is None for value in values):
            return None
        return values

    def row_hash(self, row: Row) -> Optional[str]:
        """Source ids hash of a row, or None when its ids are incomplete."""
        values = self.row_source_id_values(row)
        return None if values is None else compute_source_hash(values)

    # Writes

    def save(
        self,
        row: Row,
        destination_id_values: Sequence[Any],
        status: SourceRowStatus = SourceRowStatus.IMPORTED,
        rollback_action: RollbackAction = RollbackAction.DELETE,
    ) -> bool:
        """
        Save the mapping of a row.

        Rows with a missing source id value or a destination key of the wrong
        length are not written; an error message is logged instead.

        Args:
            row: The processed row
            destination_id_values: Destination key values, empty when nothing was written
            status: Status of the source row
            rollback_action: What a rollback does with the destination entity

        Returns:
            True if the entry was written

        Raises:
            MapPersistenceError: If the database rejects the write
        """
        source_id_values = self.row_source_id_values(row)
        if source_id_values is None:
            missing = [name for name in self.source_ids if row.get_source_property(name) is None]
            message = (
                f"Did not save to map table {self.table.name} due to NULL value "
                f"for key field {', '.join(missing)}"
            )
            logger.error(message)
            self.message_log.append(UNRESOLVED_SOURCE_IDS_HASH, MessageLevel.ERROR, message)
            return False

        source_ids_hash = compute_source_hash(source_id_values)
        destination_id_values = list(destination_id_values or [])
        if destination_id_values and len(destination_id_values) != len(self.destination_ids):
            message = (
                f"Could not save to map table {self.table.name} due to wrong destination id "
                f"count: expected {len(self.destination_ids)}, got {len(destination_id_values)}"
            )
            logger.error(f"{message} ({source_ids_hash})")
            self.message_log.append(source_ids_hash, MessageLevel.ERROR, message)
            return False

        fields: Dict[str, Any] = {
            "source_row_status": int(status),
            "rollback_action": int(rollback_action),
            "hash": row.hash,
        }
        for column, value in zip(self.source_id_columns, source_id_values):
            fields[column.name] = value
        for i, column in enumerate(self.destination_id_columns):
            fields[column.name] = destination_id_values[i] if destination_id_values else None
        if self.track_last_imported:
            fields["last_imported"] = _now_unix()
        if self.store_row_data:
            fields["source_data"] = json.dumps(row.source, default=str)
            fields["destination_data"] = json.dumps(row.destination, default=str)

        # A save without destination ids keeps the ids already stored
        update_fields = fields
        if not destination_id_values:
            destination_columns = {column.name for column in self.destination_id_columns}
            update_fields = {name: value for name, value in fields.items() if name not in destination_columns}

        with transaction(self.engine, f"saving to {self.table.name}") as conn:
            self._upsert(conn, source_ids_hash, fields, update_fields)
        return True

    def _upsert(self, conn: Connection, source_ids_hash: str,
                fields: Dict[str, Any], update_fields: Dict[str, Any]) -> None:
        dialect = conn.dialect.name
        values = {"source_ids_hash": source_ids_hash, **fields}

        if dialect == "mysql":
            stmt = mysql.insert(self.table).values(**values)
            stmt = stmt.on_duplicate_key_update(**update_fields)
        elif dialect in _UPSERT_DIALECTS:
            stmt = _UPSERT_DIALECTS[dialect](self.table).values(**values)
            stmt = stmt.on_conflict_do_update(index_elements=["source_ids_hash"], set_=update_fields)
        else:
            raise MapPersistenceError(f"Identity map upsert is not supported on {dialect}")
        conn.execute(stmt)

    def prepare_update(self) -> int:
        """
        Flag every entry as needing an update.

        Returns:
            Number of entries flagged
        """
        stmt = update(self.table).values(source_row_status=int(SourceRowStatus.NEEDS_UPDATE))
        with transaction(self.engine, f"flagging {self.table.name}") as conn:
            flagged = conn.execute(stmt).rowcount
        logger.info(f"Flagged {flagged} entries of {self.migration_id} for update")
        return flagged

    def set_update(self, source_ids_hash: str) -> bool:
        """Flag one entry as needing an update. Returns False if it does not exist."""
        stmt = (
            update(self.table)
            .where(self.table.c.source_ids_hash == source_ids_hash)
            .values(source_row_status=int(SourceRowStatus.NEEDS_UPDATE))
        )
        with transaction(self.engine, f"flagging {self.table.name}") as conn:
            return conn.execute(stmt).rowcount > 0

    def delete(self, source_ids_hash: str, messages: bool = True) -> None:
        """Remove an entry and, by default, its messages."""
        stmt = delete(self.table).where(self.table.c.source_ids_hash == source_ids_hash)
        with transaction(self.engine, f"deleting from {self.table.name}") as conn:
            conn.execute(stmt)
        if messages:
            self.message_log.clear(source_ids_hash)

    def delete_destination(self, destination_id_values: Sequence[Any]) -> int:
        """
        Remove the entries pointing to a destination entity, with their messages.

        Returns:
            Number of entries removed
        """
        condition = self._destination_condition(destination_id_values)
        with transaction(self.engine, f"deleting from {self.table.name}") as conn:
            hashes = conn.execute(select(self.table.c.source_ids_hash).where(condition)).scalars().all()
            conn.execute(delete(self.table).where(condition))
        for source_ids_hash in hashes:
            self.message_log.clear(source_ids_hash)
        return len(hashes)

    # Reads

    def lookup(self, source_ids_hash: str) -> Optional[MapEntry]:
        """Get the entry of a source ids hash."""
        stmt = select(self.table).where(self.table.c.source_ids_hash == source_ids_hash)
        with transaction(self.engine, f"reading {self.table.name}") as conn:
            record = conn.execute(stmt).mappings().first()
        return None if record is None else self._to_entry(record)

    def lookup_by_source_ids(self, source_id_values: Union[Sequence[Any], Dict[str, Any]]) -> Optional[MapEntry]:
        """Get the entry of ordered source id values, or of a field -> value mapping."""
        if isinstance(source_id_values, dict):
            source_id_values = [source_id_values.get(name) for name in self.source_ids]
        return self.lookup(compute_source_hash(source_id_values))

    def lookup_destination_ids(self, source_id_values: Sequence[Any]) -> List[Any]:
        """Destination key a source row was written to, or [] if it was not."""
        entry = self.lookup_by_source_ids(source_id_values)
        if entry is None or any(value is None for value in entry.destination_ids):
            return []
        return entry.destination_ids

    def lookup_source_ids(self, destination_id_values: Sequence[Any]) -> List[Any]:
        """Source ids of the row written to a destination key, or [] if none was."""
        stmt = select(*self.source_id_columns).where(self._destination_condition(destination_id_values))
        with transaction(self.engine, f"reading {self.table.name}") as conn:
            record = conn.execute(stmt).first()
        return [] if record is None else list(record)

    def entries(self, status: Optional[SourceRowStatus] = None,
                limit: Optional[int] = None, offset: int = 0) -> List[MapEntry]:
        """Map entries ordered by hash, optionally filtered by status."""
        stmt = select(self.table).order_by(self.table.c.source_ids_hash)
        if status is not None:
            stmt = stmt.where(self.table.c.source_row_status == int(status))
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        with transaction(self.engine, f"reading {self.table.name}") as conn:
            records = conn.execute(stmt).mappings().all()
        return [self._to_entry(record) for record in records]

    # Counters

    def processed_count(self) -> int:
        """Number of source rows with an entry, whatever their status."""
        return self._count()

    def imported_count(self) -> int:
        return self._count(SourceRowStatus.IMPORTED, SourceRowStatus.NEEDS_UPDATE)

    def update_count(self) -> int:
        return self._count(SourceRowStatus.NEEDS_UPDATE)

    def error_count(self) -> int:
        return self._count(SourceRowStatus.FAILED)

    def ignored_count(self) -> int:
        return self._count(SourceRowStatus.IGNORED)

    def count(self, status: Optional[SourceRowStatus] = None) -> int:
        """Number of entries, optionally with one status only."""
        return self._count() if status is None else self._count(status)

    def _count(self, *statuses: SourceRowStatus) -> int:
        stmt = select(func.count()).select_from(self.table)
        if statuses:
            stmt = stmt.where(self.table.c.source_row_status.in_([int(s) for s in statuses]))
        with transaction(self.engine, f"counting {self.table.name}") as conn:
            return conn.execute(stmt).scalar_one()

    def _destination_condition(self, destination_id_values: Sequence[Any]):
        destination_id_values = list(destination_id_values)
        if len(destination_id_values) != len(self.destination_ids):
            raise ConfigurationError(
                f"Expected {len(self.destination_ids)} destination id values, got {len(destination_id_values)}"
            )
        return and_(*[
            column == value for column, value in zip(self.destination_id_columns, destination_id_values)
        ])

    def _to_entry(self, record) -> MapEntry:
        entry = MapEntry(
            source_ids_hash=record["source_ids_hash"],
            source_ids=[record[column.name] for column in self.source_id_columns],
            destination_ids=[record[column.name] for column in self.destination_id_columns],
            status=SourceRowStatus(record["source_row_status"]),
            rollback_action=RollbackAction(record["rollback_action"]),
            hash=record["hash"] or "",
            last_imported=record["last_imported"],
        )
        if self.store_row_data:
            entry.source_data = json.loads(record["source_data"]) if record["source_data"] else None
            entry.destination_data = json.loads(record["destination_data"]) if record["destination_data"] else None
        return entry
