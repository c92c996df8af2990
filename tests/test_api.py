"""Tests for the reporting API."""

import pytest
from fastapi.testclient import TestClient

from pipemigrate.api import create_app
from pipemigrate.models import MessageLevel, SourceRowStatus

from .helpers import make_row


@pytest.fixture
def populated(id_map, message_log):
    id_map.save(make_row({"nid": 1, "title": "First"}), [10])
    id_map.save(make_row({"nid": 2, "title": "Second"}), [20])
    id_map.save(make_row({"nid": 3, "title": "Spam"}), [], SourceRowStatus.IGNORED)
    id_map.save(make_row({"nid": 4, "title": "Broken"}), [], SourceRowStatus.FAILED)
    failed_hash = id_map.row_hash(make_row({"nid": 4}))
    message_log.append(failed_hash, MessageLevel.ERROR, "Missing required field title")
    message_log.append(id_map.row_hash(make_row({"nid": 3})), MessageLevel.INFORMATIONAL, "Spam article")
    return id_map


@pytest.fixture
def client(populated):
    return TestClient(create_app({"articles": populated}))


class TestReportsAPI:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_status(self, client):
        response = client.get("/api/migrations/articles/status")

        assert response.status_code == 200
        assert response.json() == {
            "migration_id": "articles",
            "total": 4,
            "imported": 2,
            "needs_update": 0,
            "ignored": 1,
            "failed": 1,
            "messages": 2,
        }

    def test_unknown_migration(self, client):
        response = client.get("/api/migrations/pages/status")
        assert response.status_code == 404
        assert response.json()["detail"] == "Migration not found"

    def test_list_map(self, client):
        data = client.get("/api/migrations/articles/map").json()

        assert data["total"] == 4
        assert sorted(entry["source_ids"][0] for entry in data["entries"]) == [1, 2, 3, 4]
        assert {entry["status"] for entry in data["entries"]} == {"imported", "ignored", "failed"}

    def test_list_map_filtered(self, client):
        data = client.get("/api/migrations/articles/map", params={"status": "imported", "limit": 1}).json()

        assert data["total"] == 2
        assert len(data["entries"]) == 1
        assert data["entries"][0]["status"] == "imported"
        assert data["entries"][0]["rollback_action"] == "delete"

    def test_invalid_status_filter(self, client):
        response = client.get("/api/migrations/articles/map", params={"status": "lost"})
        assert response.status_code == 422

    def test_map_entry_with_messages(self, client, populated):
        source_ids_hash = populated.row_hash(make_row({"nid": 4}))

        data = client.get(f"/api/migrations/articles/map/{source_ids_hash}").json()

        assert data["source_ids"] == [4]
        assert data["destination_ids"] == [None]
        assert data["status"] == "failed"
        assert [m["message"] for m in data["messages"]] == ["Missing required field title"]
        assert data["messages"][0]["level"] == "error"

    def test_unknown_map_entry(self, client):
        response = client.get("/api/migrations/articles/map/nope")
        assert response.status_code == 404
        assert response.json()["detail"] == "Map entry not found"

    def test_messages(self, client):
        data = client.get("/api/migrations/articles/messages").json()
        assert data["total"] == 2
        assert [m["message"] for m in data["messages"]] == ["Missing required field title", "Spam article"]

        data = client.get("/api/migrations/articles/messages", params={"level": "informational"}).json()
        assert data["total"] == 1
        assert data["messages"][0]["message"] == "Spam article"
