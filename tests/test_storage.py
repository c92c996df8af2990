"""Tests for the identity map and message log."""

import pytest

from pipemigrate.errors import ConfigurationError, MapPersistenceError
from pipemigrate.models import (
    UNRESOLVED_SOURCE_IDS_HASH,
    MessageLevel,
    RollbackAction,
    SourceRowStatus,
)
from pipemigrate.storage import IdMap, MessageLog, compute_source_hash

from .helpers import make_row


class TestComputeSourceHash:

    def test_deterministic(self):
        assert compute_source_hash([1, "a"]) == compute_source_hash([1, "a"])
        assert len(compute_source_hash([1])) == 64

    def test_order_sensitive(self):
        assert compute_source_hash([1, 2]) != compute_source_hash([2, 1])

    def test_values_are_canonicalised(self):
        assert compute_source_hash([42]) == compute_source_hash(["42"])

    def test_no_ambiguity_between_boundaries(self):
        assert compute_source_hash(["ab", "c"]) != compute_source_hash(["a", "bc"])

    def test_declared_order_drives_row_hash(self, engine):
        first = IdMap(engine, "compound_a", {"type": "string", "nid": "integer"}, {"id": "integer"})
        second = IdMap(engine, "compound_b", {"nid": "integer", "type": "string"}, {"id": "integer"})
        row = make_row({"nid": 1, "type": "page"}, ids=["nid", "type"])
        assert first.row_hash(row) == compute_source_hash(["page", 1])
        assert first.row_hash(row) != second.row_hash(row)


class TestIdMapSave:

    def test_save_and_lookup(self, id_map):
        row = make_row({"nid": 5, "title": "x"})
        assert id_map.save(row, [50], SourceRowStatus.IMPORTED, RollbackAction.PRESERVE)

        entry = id_map.lookup(compute_source_hash([5]))
        assert entry.source_ids == [5]
        assert entry.destination_ids == [50]
        assert entry.status == SourceRowStatus.IMPORTED
        assert entry.rollback_action == RollbackAction.PRESERVE
        assert entry.hash == row.hash
        assert entry.last_imported is None

    def test_save_twice_is_idempotent(self, id_map):
        id_map.save(make_row({"nid": 5, "title": "x"}), [50])
        first = id_map.lookup(compute_source_hash([5]))
        id_map.save(make_row({"nid": 5, "title": "x"}), [50])

        assert id_map.processed_count() == 1
        assert id_map.lookup(compute_source_hash([5])) == first

    def test_upsert_overwrites(self, id_map):
        id_map.save(make_row({"nid": 5}), [], SourceRowStatus.IGNORED)
        id_map.save(make_row({"nid": 5, "title": "new"}), [51])

        entry = id_map.lookup_by_source_ids([5])
        assert entry.status == SourceRowStatus.IMPORTED
        assert entry.destination_ids == [51]
        assert entry.hash == make_row({"nid": 5, "title": "new"}).hash
        assert id_map.processed_count() == 1

    def test_destination_arity_mismatch(self, engine, message_log):
        id_map = IdMap(engine, "triples", {"nid": "integer"}, {"a": "integer", "b": "integer", "c": "integer"}, message_log)
        row = make_row({"nid": 1})

        assert not id_map.save(row, [1, 2])

        source_ids_hash = compute_source_hash([1])
        assert id_map.lookup(source_ids_hash) is None
        messages = message_log.query(source_ids_hash)
        assert len(messages) == 1
        assert messages[0].level == MessageLevel.ERROR

    def test_missing_source_id(self, id_map, message_log):
        assert not id_map.save(make_row({"title": "no id"}), [1])
        assert id_map.processed_count() == 0
        messages = message_log.query(UNRESOLVED_SOURCE_IDS_HASH)
        assert len(messages) == 1
        assert "nid" in messages[0].message

    def test_empty_destination_ids_are_allowed(self, id_map):
        assert id_map.save(make_row({"nid": 1}), [], SourceRowStatus.IGNORED)
        assert id_map.lookup_by_source_ids({"nid": 1}).destination_ids == [None]

    def test_save_without_destination_ids_keeps_stored_ids(self, id_map):
        id_map.save(make_row({"nid": 1}), [10])
        assert id_map.save(make_row({"nid": 1}), [], SourceRowStatus.IGNORED)

        entry = id_map.lookup_by_source_ids([1])
        assert entry.status == SourceRowStatus.IGNORED
        assert entry.destination_ids == [10]

    def test_empty_string_source_id_is_a_value(self, engine, message_log):
        id_map = IdMap(engine, "paths", {"path": "string"}, {"id": "integer"}, message_log)

        assert id_map.save(make_row({"path": ""}, ids=["path"]), [1])
        assert id_map.lookup_destination_ids([""]) == [1]
        assert message_log.count() == 0

    def test_last_imported_tracking(self, engine):
        id_map = IdMap(engine, "tracked", {"nid": "integer"}, {"id": "integer"}, track_last_imported=True)
        id_map.save(make_row({"nid": 1}), [1])
        entry = id_map.lookup_by_source_ids([1])
        assert entry.last_imported > 0
        assert entry.last_imported_at is not None

    def test_row_data_storage(self, engine):
        id_map = IdMap(engine, "diagnostic", {"nid": "integer"}, {"id": "integer"}, store_row_data=True)
        row = make_row({"nid": 1, "title": "x"})
        row.set_destination_property("title", "X")
        id_map.save(row, [1])
        entry = id_map.lookup_by_source_ids([1])
        assert entry.source_data == {"nid": 1, "title": "x"}
        assert entry.destination_data == {"title": "X"}

    def test_storage_failure_is_wrapped(self, engine, id_map):
        with engine.begin() as conn:
            id_map.table.drop(conn)
        with pytest.raises(MapPersistenceError):
            id_map.save(make_row({"nid": 1}), [1])


class TestIdMapQueries:

    @pytest.fixture
    def populated(self, id_map):
        id_map.save(make_row({"nid": 1}), [10])
        id_map.save(make_row({"nid": 2}), [20])
        id_map.save(make_row({"nid": 3}), [], SourceRowStatus.IGNORED)
        id_map.save(make_row({"nid": 4}), [], SourceRowStatus.FAILED)
        return id_map

    def test_lookup_destination_ids(self, populated):
        assert populated.lookup_destination_ids([2]) == [20]
        assert populated.lookup_destination_ids([3]) == []
        assert populated.lookup_destination_ids([99]) == []

    def test_lookup_source_ids(self, populated):
        assert populated.lookup_source_ids([20]) == [2]
        assert populated.lookup_source_ids([99]) == []
        with pytest.raises(ConfigurationError):
            populated.lookup_source_ids([1, 2])

    def test_counters(self, populated):
        assert populated.processed_count() == 4
        assert populated.imported_count() == 2
        assert populated.ignored_count() == 1
        assert populated.error_count() == 1
        assert populated.update_count() == 0
        assert populated.count(SourceRowStatus.IGNORED) == 1

    def test_prepare_update(self, populated):
        assert populated.prepare_update() == 4
        assert populated.update_count() == 4
        assert populated.imported_count() == 4
        assert populated.lookup_by_source_ids([1]).needs_update

    def test_set_update(self, populated):
        assert populated.set_update(compute_source_hash([1]))
        assert not populated.set_update("missing")
        assert populated.update_count() == 1

    def test_entries(self, populated):
        entries = populated.entries()
        assert len(entries) == 4
        assert [e.source_ids_hash for e in entries] == sorted(e.source_ids_hash for e in entries)
        assert [e.source_ids for e in populated.entries(status=SourceRowStatus.FAILED)] == [[4]]
        assert len(populated.entries(limit=2, offset=3)) == 1

    def test_delete_drops_messages(self, populated, message_log):
        source_ids_hash = compute_source_hash([1])
        message_log.append(source_ids_hash, MessageLevel.NOTICE, "note")
        populated.delete(source_ids_hash)
        assert populated.lookup(source_ids_hash) is None
        assert message_log.query(source_ids_hash) == []

    def test_delete_destination(self, populated, message_log):
        source_ids_hash = compute_source_hash([2])
        message_log.append(source_ids_hash, MessageLevel.NOTICE, "note")
        assert populated.delete_destination([20]) == 1
        assert populated.lookup(source_ids_hash) is None
        assert message_log.count() == 0


class TestIdMapDeclaration:

    def test_requires_ids(self, engine):
        with pytest.raises(ConfigurationError):
            IdMap(engine, "empty", {}, {"id": "integer"})
        with pytest.raises(ConfigurationError):
            IdMap(engine, "empty", {"nid": "integer"}, {})

    def test_unsupported_type(self, engine):
        with pytest.raises(ConfigurationError):
            IdMap(engine, "bad", {"nid": "uuid"}, {"id": "integer"})

    def test_reopening_keeps_entries(self, engine, id_map):
        id_map.save(make_row({"nid": 1}), [10])
        reopened = IdMap(engine, "articles", {"nid": "integer"}, {"id": "integer"})
        assert reopened.lookup_destination_ids([1]) == [10]


class TestMessageLog:

    def test_query_in_insertion_order(self, message_log):
        message_log.append("h1", MessageLevel.ERROR, "first")
        message_log.append("h2", MessageLevel.WARNING, "other row")
        message_log.append("h1", MessageLevel.NOTICE, "second")

        messages = message_log.query("h1")
        assert [m.message for m in messages] == ["first", "second"]
        assert messages[0].msgid < messages[1].msgid
        assert message_log.query("missing") == []

    def test_messages_by_level(self, message_log):
        message_log.append("h1", MessageLevel.ERROR, "bad")
        message_log.append("h2", MessageLevel.INFORMATIONAL, "skipped")

        assert [m.message for m in message_log.messages(MessageLevel.ERROR)] == ["bad"]
        assert len(message_log.messages()) == 2
        assert message_log.count(MessageLevel.INFORMATIONAL) == 1

    def test_clear(self, message_log):
        message_log.append("h1", MessageLevel.ERROR, "a")
        message_log.append("h2", MessageLevel.ERROR, "b")

        assert message_log.clear("h1") == 1
        assert message_log.count() == 1
        assert message_log.clear() == 1
        assert message_log.count() == 0

    def test_logs_are_per_migration(self, engine, message_log):
        other = MessageLog(engine, "users")
        message_log.append("h1", MessageLevel.ERROR, "a")
        assert other.count() == 0
        assert other.table.name == "migrate_message_users"
