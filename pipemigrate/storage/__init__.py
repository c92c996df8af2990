"""Identity map and message log persistence."""

from .database import create_db_engine, transaction
from .id_map import IdMap, compute_source_hash
from .message_log import MessageLog

__all__ = ["create_db_engine", "transaction", "IdMap", "compute_source_hash", "MessageLog"]
