"""Destinations writing processed rows."""

from .api import APIDestination
from .base import BaseDestination
from .memory import MemoryDestination

__all__ = ["BaseDestination", "MemoryDestination", "APIDestination"]
