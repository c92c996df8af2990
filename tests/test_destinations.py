"""Tests for the reference destinations."""

from unittest.mock import MagicMock, call

import pytest
import requests

from pipemigrate.destinations import APIDestination, MemoryDestination
from pipemigrate.errors import DestinationError
from pipemigrate.models import RollbackAction

from .helpers import make_row


def make_response(status_code=200, data=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = "" if data is None else "body"
    response.json.return_value = data
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Error", response=response
        )
    return response


def processed_row(**destination):
    row = make_row({"nid": 1})
    for name, value in destination.items():
        row.set_destination_property(name, value)
    return row


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def api(session):
    return APIDestination("https://api.example.com/", "customers", rate_limit=0, session=session)


class TestMemoryDestination:

    def test_creates_with_generated_ids(self):
        destination = MemoryDestination()
        assert destination.import_row(processed_row(name="a")) == [1]
        assert destination.import_row(processed_row(name="b")) == [2]
        assert destination.rollback_action == RollbackAction.DELETE

    def test_updates_previous_entity(self):
        destination = MemoryDestination()
        destination.import_row(processed_row(name="a", extra=1))
        assert destination.import_row(processed_row(name="b"), [1]) == [1]
        assert destination.entities[(1,)] == {"name": "b", "extra": 1}

    def test_update_existing_requires_target(self):
        destination = MemoryDestination(update_existing=True, entities={(5,): {}})
        assert destination.rollback_action == RollbackAction.PRESERVE
        assert destination.import_row(processed_row(id=5, name="x")) == [5]
        with pytest.raises(DestinationError, match="No writable target"):
            destination.import_row(processed_row(id=6))

    def test_compound_key_must_be_provided(self):
        destination = MemoryDestination({"id": "integer", "langcode": "string"})
        assert destination.import_row(processed_row(id=1, langcode="en")) == [1, "en"]
        with pytest.raises(DestinationError):
            destination.import_row(processed_row(id=1))

    def test_rollback_missing_entity(self):
        with pytest.raises(DestinationError):
            MemoryDestination().rollback([1])


class TestAPIDestination:

    def test_creates_entity(self, api, session):
        session.request.return_value = make_response(201, {"id": "cus_1"})

        assert api.import_row(processed_row(name="Ada")) == ["cus_1"]
        session.request.assert_called_once_with(
            "post", "https://api.example.com/customers", json={"name": "Ada"}, timeout=30.0
        )

    def test_updates_previous_entity(self, api, session):
        session.request.return_value = make_response(200, {"data": {"id": "cus_1"}})

        assert api.import_row(processed_row(name="Ada"), ["cus_1"]) == ["cus_1"]
        assert session.request.call_args == call(
            "put", "https://api.example.com/customers/cus_1", json={"name": "Ada"}, timeout=30.0
        )

    def test_conflict_falls_back_to_update(self, api, session):
        session.request.side_effect = [make_response(409, {"error": "exists"}), make_response(200, None)]

        assert api.import_row(processed_row(id="cus_9", name="Ada")) == ["cus_9"]
        assert session.request.call_args_list[1][0] == ("put", "https://api.example.com/customers/cus_9")

    def test_http_error_becomes_destination_error(self, api, session):
        session.request.return_value = make_response(422, {"message": "email is invalid"})

        with pytest.raises(DestinationError, match="HTTP 422: email is invalid"):
            api.import_row(processed_row(name="Ada"))

    def test_connection_error_becomes_destination_error(self, api, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(DestinationError, match="refused"):
            api.import_row(processed_row(name="Ada"))

    def test_response_without_id(self, api, session):
        session.request.return_value = make_response(201, {})

        with pytest.raises(DestinationError):
            api.import_row(processed_row(name="Ada"))

    def test_update_existing(self, session):
        api = APIDestination("https://api.example.com", "/customers", rate_limit=0,
                             update_existing=True, session=session)
        session.request.return_value = make_response(200, {"id": "cus_2"})

        assert api.rollback_action == RollbackAction.PRESERVE
        assert api.import_row(processed_row(id="cus_2")) == ["cus_2"]
        with pytest.raises(DestinationError, match="No writable target"):
            api.import_row(processed_row(name="Ada"))

    def test_rollback_deletes(self, api, session):
        session.request.return_value = make_response(204)

        api.rollback(["cus_1"])

        session.request.assert_called_once_with("delete", "https://api.example.com/customers/cus_1", timeout=30.0)

    def test_rollback_failure(self, api, session):
        session.request.return_value = make_response(404, {"error": "not found"})

        with pytest.raises(DestinationError, match="not found"):
            api.rollback(["cus_1"])

    def test_authentication_headers(self):
        api = APIDestination("https://api.example.com", "customers", api_key="secret")
        assert api._session.headers["Authorization"] == "Bearer secret"

        api = APIDestination("https://api.example.com", "customers", api_key="secret",
                             auth_type="header", auth_header="X-Api-Key")
        assert api._session.headers["X-Api-Key"] == "secret"

    def test_single_id_column_only(self):
        with pytest.raises(DestinationError):
            APIDestination("https://api.example.com", "customers", ids={"id": "string", "rev": "integer"})
