"""Helpers shared by test modules."""

from typing import Any, Dict, List, Optional

from pipemigrate.models import Row


def make_row(source: Dict[str, Any], ids: Optional[List[str]] = None) -> Row:
    """Build a row keyed on "nid" unless other id fields are given."""
    return Row(source=source, source_id_fields=ids or ["nid"])
