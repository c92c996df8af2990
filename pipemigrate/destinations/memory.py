"""Destination keeping entities in memory."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..errors import DestinationError
from ..models.row import Row
from .base import BaseDestination

logger = logging.getLogger(__name__)


class MemoryDestination(BaseDestination):
    """
    Destination storing entities in a dictionary keyed by their id tuple.

    New entities take their key from the destination properties named like
    the id columns, or an auto-incremented integer for a single id column.
    With ``update_existing`` rows may only change entities that are already
    present, and rollback must leave those entities alone.
    """

    def __init__(self, ids: Optional[Dict[str, str]] = None, update_existing: bool = False,
                 required_properties: Optional[List[str]] = None,
                 entities: Optional[Dict[Tuple[Any, ...], Dict[str, Any]]] = None):
        super().__init__(ids or {"id": "integer"}, update_existing)
        self.required_properties = required_properties or []
        self.entities: Dict[Tuple[Any, ...], Dict[str, Any]] = dict(entities or {})
        self.import_calls = 0
        self.deleted: List[List[Any]] = []
        self._next_id = 1

    def import_row(self, row: Row, old_destination_ids: Optional[List[Any]] = None) -> List[Any]:
        self.import_calls += 1
        for name in self.required_properties:
            if row.get_destination_property(name) in (None, ""):
                raise DestinationError(f"Missing required field {name}")

        key = self._resolve_key(row, old_destination_ids)
        if self.update_existing:
            if key is None or key not in self.entities:
                raise DestinationError(f"No writable target for {row.destination}")
            self.entities[key].update(row.destination)
            return list(key)

        if key is None:
            key = self._generate_key()
        entity = dict(self.entities.get(key, {}))
        entity.update(row.destination)
        self.entities[key] = entity
        logger.debug(f"Wrote entity {key}")
        return list(key)

    def rollback(self, destination_ids: List[Any]) -> None:
        key = tuple(destination_ids)
        if key not in self.entities:
            raise DestinationError(f"Entity {key} does not exist")
        del self.entities[key]
        self.deleted.append(list(destination_ids))

    def _resolve_key(self, row: Row, old_destination_ids: Optional[List[Any]]) -> Optional[Tuple[Any, ...]]:
        if old_destination_ids and all(value is not None for value in old_destination_ids):
            return tuple(old_destination_ids)
        values = [row.get_destination_property(name) for name in self.ids]
        if all(value is not None for value in values):
            return tuple(values)
        return None

    def _generate_key(self) -> Tuple[Any, ...]:
        if len(self.ids) != 1:
            raise DestinationError("Cannot generate a compound destination key")
        while (self._next_id,) in self.entities:
            self._next_id += 1
        key = (self._next_id,)
        self._next_id += 1
        return key
