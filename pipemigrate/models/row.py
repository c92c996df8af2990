"""Row model carried through a migration pipeline."""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

PROPERTY_SEPARATOR = "/"
DESTINATION_PREFIX = "@"


def get_nested_value(data: Dict[str, Any], path: str) -> Any:
    """Get a nested value using slash notation (e.g., 'address/city')."""
    value: Any = data
    for part in path.split(PROPERTY_SEPARATOR):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        elif isinstance(value, list) and part.isdigit():
            idx = int(part)
            value = value[idx] if idx < len(value) else None
        else:
            return None
    return value


def has_nested_value(data: Dict[str, Any], path: str) -> bool:
    """Check whether a slash-notation path exists, even with a None value."""
    value: Any = data
    for part in path.split(PROPERTY_SEPARATOR):
        if isinstance(value, dict) and part in value:
            value = value[part]
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            return False
    return True


def set_nested_value(data: Dict[str, Any], path: str, value: Any) -> None:
    """Set a nested value using slash notation."""
    parts = path.split(PROPERTY_SEPARATOR)
    current = data

    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]

    current[parts[-1]] = value


@dataclass
class Row:
    """
    A single unit of work flowing through a migration.

    Source properties are populated by the source. Destination properties are
    built up one pipeline step at a time. The source id fields are declared by
    the source and their order defines the identity hash input order.
    """
    source: Dict[str, Any]
    source_id_fields: List[str] = field(default_factory=list)
    destination: Dict[str, Any] = field(default_factory=dict)
    id_map_entry: Optional[Any] = None  # MapEntry of a previous run, if any
    _hash: Optional[str] = field(default=None, repr=False)

    def get_source_property(self, path: str, default: Any = None) -> Any:
        """Get a source property by path."""
        value = get_nested_value(self.source, path)
        return default if value is None else value

    def has_source_property(self, path: str) -> bool:
        return has_nested_value(self.source, path)

    def set_source_property(self, path: str, value: Any) -> None:
        """
        Add or change a source property.

        Sources use this in their prepare hook to add derived properties before
        the pipeline starts. The content hash is not recomputed.
        """
        set_nested_value(self.source, path, value)

    def get_destination_property(self, path: str, default: Any = None) -> Any:
        """Get a destination property by path."""
        value = get_nested_value(self.destination, path)
        return default if value is None else value

    def has_destination_property(self, path: str) -> bool:
        return has_nested_value(self.destination, path)

    def set_destination_property(self, path: str, value: Any) -> None:
        """Set a destination property by path."""
        set_nested_value(self.destination, path, value)

    def remove_destination_property(self, path: str) -> None:
        """Remove a destination property if present."""
        parts = path.split(PROPERTY_SEPARATOR)
        current = self.destination
        for part in parts[:-1]:
            current = current.get(part)
            if not isinstance(current, dict):
                return
        current.pop(parts[-1], None)

    def get(self, property_name: str, default: Any = None) -> Any:
        """
        Read a property the way a pipeline step references it.

        Names starting with '@' read a destination property written by an
        earlier step, anything else reads a source property.
        """
        if property_name.startswith(DESTINATION_PREFIX):
            return self.get_destination_property(property_name[1:], default)
        return self.get_source_property(property_name, default)

    @property
    def source_id_values(self) -> Dict[str, Any]:
        """Values of the declared source id fields, in declaration order."""
        return {name: self.get_source_property(name) for name in self.source_id_fields}

    @property
    def hash(self) -> str:
        """Content hash of the source properties, computed on first access."""
        if self._hash is None:
            self.rehash()
        return self._hash

    def rehash(self) -> str:
        """Recompute the content hash from the current source properties."""
        encoded = json.dumps(self.source, sort_keys=True, default=str)
        self._hash = hashlib.sha256(encoded.encode("utf-8")).hexdigest()
        return self._hash

    def changed(self) -> bool:
        """Check if the source content differs from the previously mapped hash."""
        if self.id_map_entry is None:
            return True
        return self.id_map_entry.hash != self.hash

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "source": self.source,
            "destination": self.destination,
            "source_ids": self.source_id_values,
            "hash": self.hash,
        }
