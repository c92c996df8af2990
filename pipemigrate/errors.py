"""Exception hierarchy for the migration engine.

Each failure class maps to one recovery scope: the migration setup, a single
row, a single destination property, or the whole batch.
"""

from typing import Any, List, Optional


class MigrateError(Exception):
    """
    Base exception for all migration failures.

    Errors that abort a batch get the identity of the row being processed
    attached, so operators can find the offending record.
    """

    source_ids_hash: Optional[str] = None
    source_ids: Optional[List[Any]] = None

    def attach_row(self, source_ids_hash: str, source_ids: List[Any]) -> None:
        self.source_ids_hash = source_ids_hash
        self.source_ids = source_ids

    def __str__(self) -> str:
        message = super().__str__()
        if self.source_ids_hash:
            return f"{message} (source ids: {self.source_ids}, hash: {self.source_ids_hash})"
        return message


class ConfigurationError(MigrateError):
    """Raised when pipeline, step or migration configuration is invalid."""


class SkipRow(MigrateError):
    """
    Raised by a process plugin or source to abandon the current row.

    The row is not written to the destination. The message is recorded in the
    message log and, when ``save_to_map`` is set, the row is mapped as ignored
    so it is not picked up again on the next run.
    """

    def __init__(self, message: str = "", save_to_map: bool = True):
        super().__init__(message)
        self.message = message
        self.save_to_map = save_to_map


class StopPipeline(MigrateError):
    """Raised by a process plugin to stop processing the current property only."""


class FatalStepError(MigrateError):
    """Raised when the batch itself is unsafe to continue."""

    def __init__(self, message: str, source_ids_hash: Optional[str] = None,
                 source_ids: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.source_ids_hash = source_ids_hash
        self.source_ids = source_ids


class MapPersistenceError(MigrateError):
    """Raised when the identity map or message log cannot be written."""


class DestinationError(MigrateError):
    """Raised by a destination that cannot write a row."""
