"""Process plugin resolving ids through another migration's identity map."""

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ConfigurationError, SkipRow
from ..models.row import Row
from .base import ProcessPlugin

logger = logging.getLogger(__name__)


class MigrationLookup(ProcessPlugin):
    """
    Look up the destination ids a source id was migrated to.

    The incoming value is the source id (or the list of source id values for
    a compound key) of a row of one of the referenced migrations. Migrations
    are searched in the configured order, the first hit wins.

    Configuration:
        migration: Migration id or list of migration ids (required)
        skip_on_missing: Skip the row when nothing is found (default False)

    Returns a single destination id for single-column destination keys and
    the list of ids otherwise; None when nothing is found.
    """
    required_keys = ("migration",)

    def __init__(self, configuration: Dict[str, Any], plugin_id: str,
                 id_maps: Optional[Mapping[str, Any]] = None):
        self.id_maps = id_maps if id_maps is not None else {}
        super().__init__(configuration, plugin_id)

    def validate_configuration(self) -> None:
        super().validate_configuration()
        for migration_id in self.migrations:
            if not isinstance(migration_id, str):
                raise ConfigurationError(f"Invalid migration reference in migration_lookup: {migration_id!r}")
            if migration_id not in self.id_maps:
                raise ConfigurationError(f'The migration_lookup plugin references an unknown migration "{migration_id}".')

    @property
    def migrations(self) -> List[str]:
        migrations = self.configuration["migration"]
        return migrations if isinstance(migrations, list) else [migrations]

    def transform(self, value: Any, executor: Any, row: Row, destination_property: str) -> Any:
        if value is None or value == "":
            return None

        source_ids = list(value) if isinstance(value, (list, tuple)) else [value]
        for migration_id in self.migrations:
            destination_ids = self.id_maps[migration_id].lookup_destination_ids(source_ids)
            if destination_ids:
                return destination_ids[0] if len(destination_ids) == 1 else destination_ids

        if self.configuration.get("skip_on_missing", False):
            raise SkipRow(
                f"No destination found for source ids {source_ids} in {', '.join(self.migrations)}"
            )
        logger.debug(f"migration_lookup found nothing for {source_ids} ({destination_property})")
        return None
