"""Base source interface."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List

from ..errors import ConfigurationError
from ..models.row import Row

logger = logging.getLogger(__name__)


class BaseSource(ABC):
    """
    Base class for all sources.

    A source produces a lazy, finite and restartable sequence of rows. Every
    iteration starts from the first record again. The id declaration is an
    ordered mapping of source property -> type ("string" or "integer"); its
    order is the order in which id values are hashed.
    """

    def __init__(self, ids: Dict[str, str]):
        """
        Initialize the source.

        Args:
            ids: Ordered source id field -> type declaration
        """
        if not ids:
            raise ConfigurationError(f"{type(self).__name__} declares no source ids")
        self.ids = dict(ids)

    @abstractmethod
    def records(self) -> Iterator[Dict[str, Any]]:
        """
        Yield raw source records.

        Yields:
            One dictionary of source properties per record
        """
        pass

    def __iter__(self) -> Iterator[Row]:
        for record in self.records():
            yield Row(source=dict(record), source_id_fields=list(self.ids))

    def prepare_row(self, row: Row) -> bool:
        """
        Hook run before a row enters the process pipelines.

        Sources may add derived source properties here. Returning False, or
        raising SkipRow, skips the row.
        """
        return True

    def count(self) -> int:
        """Number of records the source currently holds."""
        return sum(1 for _ in self.records())

    def validate_source(self) -> List[str]:
        """
        Validate the source configuration.

        Returns:
            List of validation error messages
        """
        return []
