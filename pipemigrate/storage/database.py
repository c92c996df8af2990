"""SQLAlchemy engine construction and transaction helpers."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..errors import MapPersistenceError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///pipemigrate.db"


def create_db_engine(database_url: str = DEFAULT_DATABASE_URL, echo: bool = False) -> Engine:
    """
    Create the engine backing identity maps and message logs.

    In-memory SQLite databases share a single connection so every table
    created on the engine stays visible.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


@contextmanager
def transaction(engine: Engine, description: str) -> Iterator[Connection]:
    """
    Run statements in one transaction, wrapping storage failures.

    Raises:
        MapPersistenceError: If the database rejects the operation
    """
    try:
        with engine.begin() as conn:
            yield conn
    except SQLAlchemyError as e:
        logger.error(f"Storage failure during {description}: {e}")
        raise MapPersistenceError(f"Storage failure during {description}: {e}") from e
