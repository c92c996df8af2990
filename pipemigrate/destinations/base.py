"""Base destination interface."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError
from ..models.id_map import RollbackAction
from ..models.row import Row

logger = logging.getLogger(__name__)


class BaseDestination(ABC):
    """
    Base class for destinations.

    Destinations write the destination properties of a processed row and
    report the key of the written entity. The id declaration is an ordered
    mapping of destination key column -> type; the identity map stores one
    column per entry.
    """

    def __init__(self, ids: Dict[str, str], update_existing: bool = False):
        """
        Initialize the destination.

        Args:
            ids: Ordered destination key column -> type declaration
            update_existing: Only annotate entities that already exist in the
                destination instead of creating them
        """
        if not ids:
            raise ConfigurationError(f"{type(self).__name__} declares no destination ids")
        self.ids = dict(ids)
        self.update_existing = update_existing

    @property
    def rollback_action(self) -> RollbackAction:
        """
        What a rollback should do with entities written by this destination.

        Entities that existed before the migration are preserved.
        """
        return RollbackAction.PRESERVE if self.update_existing else RollbackAction.DELETE

    @abstractmethod
    def import_row(self, row: Row, old_destination_ids: Optional[List[Any]] = None) -> List[Any]:
        """
        Write a row to the destination.

        Args:
            row: Processed row
            old_destination_ids: Key the row was written to by a previous run

        Returns:
            Key values of the written entity, one per declared id column

        Raises:
            DestinationError: If the row cannot be written
        """
        pass

    @abstractmethod
    def rollback(self, destination_ids: List[Any]) -> None:
        """
        Delete an entity written by the migration.

        Raises:
            DestinationError: If the entity cannot be deleted
        """
        pass

    def validate_connection(self) -> bool:
        """Validate the connection to the destination."""
        return True
