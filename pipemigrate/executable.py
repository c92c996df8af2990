"""Migration executable - runs the row loop of one migration."""

import logging
from typing import Any, List, Optional

from .destinations.base import BaseDestination
from .errors import ConfigurationError, DestinationError, FatalStepError, MigrateError, SkipRow
from .models.id_map import UNRESOLVED_SOURCE_IDS_HASH, MapEntry, MessageLevel, RollbackAction, SourceRowStatus
from .models.migration import MigrationConfig, MigrationRun, MigrationStatus
from .models.row import Row
from .services.executor import ProcessExecutor
from .sources.base import BaseSource
from .storage.id_map import IdMap
from .storage.message_log import MessageLog

logger = logging.getLogger(__name__)


class MigrationExecutable:
    """
    Imports or rolls back one migration.

    Handles:
    - Skipping rows that are already mapped and unchanged
    - Running the process pipelines of each row
    - Writing rows to the destination and recording the mapping
    - Recording skipped and failed rows in the message log
    - Policy-driven rollback

    Rows are processed one at a time, in source order. A fatal error stops
    the batch; rows mapped before it stay mapped, so the next run resumes
    where this one stopped.
    """

    def __init__(
        self,
        migration: MigrationConfig,
        source: BaseSource,
        destination: BaseDestination,
        executor: ProcessExecutor,
        id_map: IdMap,
        message_log: Optional[MessageLog] = None,
    ):
        """
        Initialize the executable and validate the migration.

        Args:
            migration: Migration definition
            source: Source producing the rows
            destination: Destination writing them
            executor: Process executor with every plugin the migration uses
            id_map: Identity map of the migration
            message_log: Message log; defaults to the identity map's

        Raises:
            ConfigurationError: If the migration cannot run as configured
        """
        self.migration = migration
        self.source = source
        self.destination = destination
        self.executor = executor
        self.id_map = id_map
        self.message_log = message_log or id_map.message_log
        self.run: Optional[MigrationRun] = None

        self._validate()

    def _validate(self) -> None:
        if list(self.source.ids) != list(self.id_map.source_ids):
            raise ConfigurationError(
                f"Migration {self.migration.id}: source ids {list(self.source.ids)} do not match "
                f"the identity map's {list(self.id_map.source_ids)}"
            )
        if len(self.destination.ids) != len(self.id_map.destination_ids):
            raise ConfigurationError(
                f"Migration {self.migration.id}: destination declares {len(self.destination.ids)} "
                f"key columns, identity map {len(self.id_map.destination_ids)}"
            )
        self.executor.validate(self.migration.process)

    def import_rows(self, update: bool = False, limit: Optional[int] = None) -> MigrationRun:
        """
        Import every source row that has not been imported yet.

        Args:
            update: Reprocess rows that were already imported
            limit: Maximum number of rows to process

        Returns:
            MigrationRun with the counts of the pass

        Raises:
            MigrateError: If a row left the batch unsafe to continue; the
                error carries the hash and source ids of that row. Errors
                that are not MigrateErrors are raised as FatalStepError.
        """
        run = MigrationRun(migration_id=self.migration.id, operation="import")
        run.start(MigrationStatus.IMPORTING)
        self.run = run
        logger.info(f"=== IMPORT {self.migration.id} ===")

        if update:
            self.id_map.prepare_update()

        for row in self.source:
            if limit is not None and run.processed >= limit:
                break

            try:
                self._import_row(row, run)
            except MigrateError as e:
                self._abort(run, e, row)
                raise
            except Exception as e:
                fatal = FatalStepError(f"{type(e).__name__}: {e}")
                self._abort(run, fatal, row)
                raise fatal from e

            if self.migration.max_errors and run.failed >= self.migration.max_errors:
                message = f"Stopped after {run.failed} failed rows"
                logger.error(f"{self.migration.id}: {message}")
                run.add_error(message)
                run.finish(MigrationStatus.FAILED)
                return run

        run.finish(MigrationStatus.COMPLETED)
        logger.info(run.summary())
        return run

    def _import_row(self, row: Row, run: MigrationRun) -> None:
        source_ids_hash = self.id_map.row_hash(row)
        if source_ids_hash is None:
            run.processed += 1
            run.skipped += 1
            missing = [name for name, value in row.source_id_values.items() if value is None]
            message = f"Row has no value for source id field(s) {', '.join(missing)}"
            logger.warning(f"{self.migration.id}: {message}")
            self.message_log.append(UNRESOLVED_SOURCE_IDS_HASH, MessageLevel.ERROR, message)
            return

        # Content hash covers the row as the source produced it, before prepare_row
        row.rehash()
        entry = self.id_map.lookup(source_ids_hash)
        row.id_map_entry = entry
        if entry is not None and not self._needs_processing(row, entry):
            run.unchanged += 1
            return

        run.processed += 1
        old_destination_ids = self._destination_ids(entry)
        try:
            if not self.source.prepare_row(row):
                raise SkipRow(f"Row skipped by {type(self.source).__name__}")
            self.executor.process_row(row, self.migration.process)
            destination_ids = self.destination.import_row(row, old_destination_ids)
        except SkipRow as e:
            self._record_skip(row, source_ids_hash, e, run)
            return
        except DestinationError as e:
            self._record_failure(row, source_ids_hash, e, old_destination_ids, run)
            return

        saved = self.id_map.save(
            row, destination_ids, SourceRowStatus.IMPORTED, self.destination.rollback_action
        )
        if not saved:
            run.skipped += 1
        elif entry is None:
            run.imported += 1
        else:
            run.updated += 1

    def _needs_processing(self, row: Row, entry: MapEntry) -> bool:
        if entry.needs_update:
            return True
        return self.migration.track_changes and row.changed()

    @staticmethod
    def _destination_ids(entry: Optional[MapEntry]) -> Optional[List[Any]]:
        if entry is None or not entry.destination_ids:
            return None
        if any(value is None for value in entry.destination_ids):
            return None
        return entry.destination_ids

    def _record_skip(self, row: Row, source_ids_hash: str, error: SkipRow, run: MigrationRun) -> None:
        run.skipped += 1
        message = error.message or "Row skipped"
        logger.warning(f"{self.migration.id}: skipped {source_ids_hash}: {message}")
        self.message_log.append(source_ids_hash, MessageLevel.INFORMATIONAL, message)
        if error.save_to_map:
            self.id_map.save(row, [], SourceRowStatus.IGNORED, self.destination.rollback_action)

    def _record_failure(self, row: Row, source_ids_hash: str, error: DestinationError,
                        old_destination_ids: Optional[List[Any]], run: MigrationRun) -> None:
        run.failed += 1
        logger.error(f"{self.migration.id}: failed to write {source_ids_hash}: {error}")
        self.message_log.append(source_ids_hash, MessageLevel.ERROR, str(error))
        self.id_map.save(
            row, old_destination_ids or [], SourceRowStatus.FAILED, self.destination.rollback_action
        )

    def _abort(self, run: MigrationRun, error: MigrateError, row: Row) -> None:
        if error.source_ids_hash is None:
            error.attach_row(
                self.id_map.row_hash(row) or UNRESOLVED_SOURCE_IDS_HASH,
                list(row.source_id_values.values()),
            )
        logger.error(f"{self.migration.id}: migration failed: {error}")
        run.add_error(str(error), error.source_ids_hash)
        run.finish(MigrationStatus.FAILED)

    def rollback(self) -> MigrationRun:
        """
        Roll back every mapped row.

        Entities whose entry asks for deletion are removed from the
        destination; preserved entities are left untouched. The entry and
        its messages are dropped either way, unless the deletion failed.

        Returns:
            MigrationRun with the counts of the pass
        """
        run = MigrationRun(migration_id=self.migration.id, operation="rollback")
        run.start(MigrationStatus.ROLLING_BACK)
        self.run = run
        logger.info(f"=== ROLLBACK {self.migration.id} ===")

        try:
            for entry in self.id_map.entries():
                destination_ids = self._destination_ids(entry)
                if destination_ids is not None and entry.rollback_action == RollbackAction.DELETE:
                    try:
                        self.destination.rollback(destination_ids)
                    except DestinationError as e:
                        run.failed += 1
                        logger.error(f"{self.migration.id}: could not roll back {destination_ids}: {e}")
                        self.message_log.append(entry.source_ids_hash, MessageLevel.ERROR, str(e))
                        continue
                    run.rolled_back += 1
                elif entry.rollback_action == RollbackAction.PRESERVE:
                    run.preserved += 1

                self.id_map.delete(entry.source_ids_hash, messages=False)
                self.message_log.clear(entry.source_ids_hash)
        except Exception as e:
            logger.error(f"{self.migration.id}: rollback failed: {e}")
            run.add_error(str(e))
            run.finish(MigrationStatus.FAILED)
            raise

        run.finish(MigrationStatus.ROLLED_BACK)
        logger.info(run.summary())
        return run
