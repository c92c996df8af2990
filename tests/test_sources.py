"""Tests for the reference sources."""

import json

import pytest

from pipemigrate.errors import ConfigurationError
from pipemigrate.sources import CSVSource, MemorySource


class TestMemorySource:

    def test_rows_carry_id_declaration(self):
        source = MemorySource({"nid": "integer", "type": "string"}, [{"nid": 1, "type": "page"}])
        rows = list(source)
        assert rows[0].source_id_fields == ["nid", "type"]
        assert rows[0].source == {"nid": 1, "type": "page"}

    def test_restartable_and_isolated(self):
        source = MemorySource({"nid": "integer"}, [{"nid": 1, "tags": ["a"]}])
        first = next(iter(source))
        first.source["tags"].append("b")
        assert next(iter(source)).source == {"nid": 1, "tags": ["a"]}
        assert source.count() == 1

    def test_requires_ids(self):
        with pytest.raises(ConfigurationError):
            MemorySource({}, [])


class TestCSVSource:

    def test_reads_csv(self, tmp_path):
        path = tmp_path / "articles.csv"
        path.write_text("nid,title,summary\n1, Hello ,\n2,World,short\n\n")
        source = CSVSource({"nid": "string"}, str(path))

        records = list(source.records())

        assert records == [
            {"nid": "1", "title": "Hello", "summary": None},
            {"nid": "2", "title": "World", "summary": "short"},
        ]
        assert source.count() == 2

    def test_sniffs_delimiter_and_infers_types(self, tmp_path):
        path = tmp_path / "prices.csv"
        path.write_text("nid;price;name\n1;9.5;a\n2;10;b\n")
        source = CSVSource({"nid": "integer"}, str(path), infer_types=True)

        assert list(source.records()) == [
            {"nid": 1, "price": 9.5, "name": "a"},
            {"nid": 2, "price": 10, "name": "b"},
        ]

    def test_column_mapping(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_text("ID,Name\n7,Ada\n")
        source = CSVSource({"uid": "string"}, str(path), column_mapping={"ID": "uid"}, delimiter=",")

        row = next(iter(source))
        assert row.source == {"uid": "7", "Name": "Ada"}
        assert row.source_id_values == {"uid": "7"}

    def test_reads_wrapped_json(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text(json.dumps({"data": [{"uid": 1}, {"uid": 2}]}))
        assert [r["uid"] for r in CSVSource({"uid": "integer"}, str(path)).records()] == [1, 2]

    def test_reads_json_lines(self, tmp_path):
        path = tmp_path / "users.jsonl"
        path.write_text('{"uid": 1}\n\n{"uid": 2}\n')
        assert [r["uid"] for r in CSVSource({"uid": "integer"}, str(path)).records()] == [1, 2]

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text("{broken")
        with pytest.raises(ConfigurationError):
            list(CSVSource({"uid": "integer"}, str(path)).records())

    def test_missing_file(self, tmp_path):
        source = CSVSource({"uid": "integer"}, str(tmp_path / "missing.csv"))
        assert source.validate_source() == [f"File not found: {tmp_path / 'missing.csv'}"]
        with pytest.raises(ConfigurationError):
            list(source)

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "users.xml"
        path.write_text("<users/>")
        assert source_errors(path) == ["Unsupported file format: .xml"]


def source_errors(path):
    return CSVSource({"uid": "integer"}, str(path)).validate_source()
