"""Sources producing rows for a migration."""

from .base import BaseSource
from .csv_source import CSVSource
from .memory import MemorySource

__all__ = ["BaseSource", "CSVSource", "MemorySource"]
