"""Destination writing entities to a REST API."""

import base64
import logging
import time
from typing import Any, Dict, List, Optional

import requests

from ..errors import DestinationError
from ..models.row import Row
from .base import BaseDestination

logger = logging.getLogger(__name__)


class APIDestination(BaseDestination):
    """
    Destination for REST endpoints.

    New rows are POSTed to the collection endpoint; rows that were written
    before, or that annotate existing entities, are PUT to the entity URL.
    A 409 on create falls back to an update of the entity named by the
    payload's id field.
    """

    def __init__(
        self,
        base_url: str,
        endpoint: str,
        ids: Optional[Dict[str, str]] = None,
        api_key: Optional[str] = None,
        auth_type: str = "bearer",  # bearer, basic, header
        auth_header: str = "Authorization",
        rate_limit: float = 10.0,
        update_existing: bool = False,
        id_field: str = "id",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the API destination.

        Args:
            base_url: Base URL for the API
            endpoint: Collection path, e.g. "/customers"
            ids: Destination key declaration (single column)
            api_key: API key for authentication
            auth_type: Type of authentication
            auth_header: Header name for authentication
            rate_limit: Max requests per second, 0 to disable
            update_existing: Only update entities that already exist
            id_field: Payload and response field holding the entity id
            timeout: Request timeout in seconds
            session: Preconfigured session to use instead of a new one
        """
        super().__init__(ids or {"id": "string"}, update_existing)
        if len(self.ids) != 1:
            raise DestinationError("APIDestination supports a single destination id column")
        self.base_url = base_url.rstrip("/")
        self.endpoint = "/" + endpoint.strip("/")
        self.api_key = api_key
        self.auth_type = auth_type
        self.auth_header = auth_header
        self.rate_limit = rate_limit
        self.id_field = id_field
        self.timeout = timeout
        self._last_request_time = 0.0
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with authentication."""
        session = requests.Session()

        if self.api_key:
            if self.auth_type == "bearer":
                session.headers["Authorization"] = f"Bearer {self.api_key}"
            elif self.auth_type == "basic":
                credentials = base64.b64encode(f"{self.api_key}:".encode()).decode()
                session.headers["Authorization"] = f"Basic {credentials}"
            elif self.auth_type == "header":
                session.headers[self.auth_header] = self.api_key

        session.headers["Content-Type"] = "application/json"

        return session

    def _rate_limit_wait(self):
        """Wait to respect rate limits."""
        if self.rate_limit > 0:
            elapsed = time.time() - self._last_request_time
            wait_time = (1.0 / self.rate_limit) - elapsed
            if wait_time > 0:
                time.sleep(wait_time)
        self._last_request_time = time.time()

    @property
    def collection_url(self) -> str:
        return f"{self.base_url}{self.endpoint}"

    def entity_url(self, entity_id: Any) -> str:
        return f"{self.collection_url}/{entity_id}"

    def import_row(self, row: Row, old_destination_ids: Optional[List[Any]] = None) -> List[Any]:
        """Write a row to the API."""
        payload = row.destination
        existing_id = old_destination_ids[0] if old_destination_ids else None
        if existing_id is None and self.update_existing:
            existing_id = payload.get(self.id_field)
            if existing_id is None:
                raise DestinationError(f"No writable target: payload has no {self.id_field}")

        try:
            if existing_id is not None:
                response = self._request("put", self.entity_url(existing_id), payload)
            else:
                response = self._request("post", self.collection_url, payload)
                if response.status_code == 409 and payload.get(self.id_field) is not None:
                    # Conflict - update the entity instead
                    existing_id = payload[self.id_field]
                    response = self._request("put", self.entity_url(existing_id), payload)

            response.raise_for_status()
            response_data = response.json() if response.text else {}

        except requests.exceptions.HTTPError as e:
            raise DestinationError(self._error_message(e)) from e
        except requests.exceptions.RequestException as e:
            raise DestinationError(f"Request to {self.collection_url} failed: {e}") from e

        target_id = (
            response_data.get(self.id_field)
            or (response_data.get("data") or {}).get(self.id_field)
            or existing_id
        )
        if target_id is None:
            raise DestinationError(f"Response of {self.collection_url} carries no {self.id_field}")
        return [target_id]

    def rollback(self, destination_ids: List[Any]) -> None:
        """Delete an entity from the API."""
        url = self.entity_url(destination_ids[0])
        try:
            response = self._request("delete", url)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise DestinationError(self._error_message(e)) from e
        except requests.exceptions.RequestException as e:
            raise DestinationError(f"Failed to delete {url}: {e}") from e

    def validate_connection(self) -> bool:
        """Validate connection to the API."""
        try:
            response = self._request("get", self.base_url)
            return response.status_code < 500
        except requests.exceptions.RequestException as e:
            logger.error(f"API connection validation failed: {e}")
            return False

    def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> requests.Response:
        self._rate_limit_wait()
        logger.debug(f"{method.upper()} {url}")
        if payload is None:
            return self._session.request(method, url, timeout=self.timeout)
        return self._session.request(method, url, json=payload, timeout=self.timeout)

    @staticmethod
    def _error_message(error: requests.exceptions.HTTPError) -> str:
        response = error.response
        if response is None:
            return str(error)
        try:
            error_data = response.json()
        except ValueError:
            return f"HTTP {response.status_code}: {response.text or error}"
        if isinstance(error_data, dict):
            detail = error_data.get("message") or error_data.get("error") or str(error_data)
        else:
            detail = str(error_data)
        return f"HTTP {response.status_code}: {detail}"
