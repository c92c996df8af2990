"""Per-migration message log table."""

import logging
from typing import List, Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, delete, func, insert, select
from sqlalchemy.engine import Engine

from ..models.id_map import MessageEntry, MessageLevel
from .database import transaction

logger = logging.getLogger(__name__)


class MessageLog:
    """
    Append-only messages correlated to identity map entries by source ids hash.

    Backed by one ``migrate_message_<migration id>`` table. Messages are read
    back in insertion order.
    """

    def __init__(self, engine: Engine, migration_id: str, metadata: Optional[MetaData] = None):
        self.engine = engine
        self.migration_id = migration_id
        self.metadata = metadata if metadata is not None else MetaData()
        self.table = Table(
            f"migrate_message_{migration_id}",
            self.metadata,
            Column("msgid", Integer, primary_key=True, autoincrement=True),
            Column("source_ids_hash", String(64), nullable=False, index=True),
            Column("level", Integer, nullable=False, default=int(MessageLevel.ERROR)),
            Column("message", Text, nullable=False),
        )
        with transaction(self.engine, f"creating {self.table.name}") as conn:
            self.metadata.create_all(conn, tables=[self.table])

    def append(self, source_ids_hash: str, level: MessageLevel, message: str) -> None:
        """
        Record a message for a source row.

        Args:
            source_ids_hash: Hash of the row's source ids
            level: Message severity
            message: Human readable text
        """
        with transaction(self.engine, f"writing to {self.table.name}") as conn:
            conn.execute(
                insert(self.table).values(
                    source_ids_hash=source_ids_hash,
                    level=int(level),
                    message=message,
                )
            )

    def query(self, source_ids_hash: str) -> List[MessageEntry]:
        """Messages of one source row, oldest first."""
        stmt = (
            select(self.table)
            .where(self.table.c.source_ids_hash == source_ids_hash)
            .order_by(self.table.c.msgid)
        )
        return self._fetch(stmt)

    def messages(self, level: Optional[MessageLevel] = None,
                 limit: Optional[int] = None, offset: int = 0) -> List[MessageEntry]:
        """All messages, optionally filtered by level, oldest first."""
        stmt = select(self.table).order_by(self.table.c.msgid)
        if level is not None:
            stmt = stmt.where(self.table.c.level == int(level))
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._fetch(stmt)

    def count(self, level: Optional[MessageLevel] = None) -> int:
        stmt = select(func.count()).select_from(self.table)
        if level is not None:
            stmt = stmt.where(self.table.c.level == int(level))
        with transaction(self.engine, f"counting {self.table.name}") as conn:
            return conn.execute(stmt).scalar_one()

    def clear(self, source_ids_hash: Optional[str] = None) -> int:
        """
        Delete the messages of one source row, or all of them.

        Returns:
            Number of messages deleted
        """
        stmt = delete(self.table)
        if source_ids_hash is not None:
            stmt = stmt.where(self.table.c.source_ids_hash == source_ids_hash)
        with transaction(self.engine, f"clearing {self.table.name}") as conn:
            return conn.execute(stmt).rowcount

    def _fetch(self, stmt) -> List[MessageEntry]:
        with transaction(self.engine, f"reading {self.table.name}") as conn:
            rows = conn.execute(stmt).mappings().all()
        return [
            MessageEntry(
                msgid=row["msgid"],
                source_ids_hash=row["source_ids_hash"],
                level=MessageLevel(row["level"]),
                message=row["message"],
            )
            for row in rows
        ]
