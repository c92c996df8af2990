"""Source backed by an in-memory list of records."""

import copy
from typing import Any, Dict, Iterator, List, Optional

from .base import BaseSource


class MemorySource(BaseSource):
    """Source yielding records from a list, for tests and programmatic feeds."""

    def __init__(self, ids: Dict[str, str], records: Optional[List[Dict[str, Any]]] = None):
        super().__init__(ids)
        self._records = list(records or [])

    def records(self) -> Iterator[Dict[str, Any]]:
        for record in self._records:
            yield copy.deepcopy(record)

    def add(self, record: Dict[str, Any]) -> None:
        self._records.append(record)

    def count(self) -> int:
        return len(self._records)
