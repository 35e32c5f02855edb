"""Tests for the HTTP API.

The web app exposes shared maps over JSON.  Tests use
``pytest.importorskip`` so they are skipped gracefully when Flask is
not installed.
"""

from __future__ import annotations

from typing import Any

import pytest

flask = pytest.importorskip("flask")

from sharedmap.lifecycle import ReferenceManager  # noqa: E402
from sharedmap.web.app import create_app  # noqa: E402

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404


def _create_client(manager: ReferenceManager) -> Any:
    """Create a test client from a fresh app."""
    app = create_app(manager)
    app.config["TESTING"] = True
    return app.test_client()


def _open(client: Any, identifier: str | None = None) -> str:
    """Open a map through the API and return its identifier."""
    body = {} if identifier is None else {"identifier": identifier}
    response = client.post("/api/maps", json=body)
    assert response.status_code == HTTP_CREATED
    return response.get_json()["identifier"]


class TestAppCreation:
    """Verify the app factory."""

    def test_create_app_returns_flask(self, manager: ReferenceManager) -> None:
        """create_app should return a Flask application."""
        assert isinstance(create_app(manager), flask.Flask)


class TestMapEndpoints:
    """Verify opening, showing, and releasing maps."""

    def test_open_new_map(self, manager: ReferenceManager) -> None:
        """POST /api/maps opens a fresh map with one reference."""
        client = _create_client(manager)
        response = client.post("/api/maps", json={})
        data = response.get_json()
        assert response.status_code == HTTP_CREATED
        assert data["refs"] == 1
        assert manager.ref_count(data["identifier"]) == 1

    def test_open_existing_identifier_adds_reference(self, manager: ReferenceManager) -> None:
        """Opening an identifier held elsewhere adds the app's reference."""
        outside = manager.open()
        outside.put("k", "v")
        client = _create_client(manager)
        _open(client, outside.identifier)
        assert manager.ref_count(outside.identifier) == 2
        data = client.get(f"/api/maps/{outside.identifier}").get_json()
        assert data["entries"] == {"k": "v"}
        assert data["size"] == 1
        assert data["refs"] == 2

    def test_reopen_reuses_held_handle(self, manager: ReferenceManager) -> None:
        """Opening an identifier the app already holds does not add a reference."""
        client = _create_client(manager)
        identifier = _open(client)
        _open(client, identifier)
        assert manager.ref_count(identifier) == 1

    def test_empty_identifier_is_bad_request(self, manager: ReferenceManager) -> None:
        """An empty identifier is rejected with 400."""
        client = _create_client(manager)
        response = client.post("/api/maps", json={"identifier": ""})
        assert response.status_code == HTTP_BAD_REQUEST

    def test_non_object_body_is_bad_request(self, manager: ReferenceManager) -> None:
        """A JSON array or string body is rejected with 400, not a crash."""
        client = _create_client(manager)
        assert client.post("/api/maps", json=["x"]).status_code == HTTP_BAD_REQUEST
        assert client.post("/api/maps", json="x").status_code == HTTP_BAD_REQUEST
        assert client.get("/api/status").get_json() == {"maps": {}}

    def test_non_string_identifier_is_bad_request(self, manager: ReferenceManager) -> None:
        """A list identifier is rejected with 400."""
        client = _create_client(manager)
        response = client.post("/api/maps", json={"identifier": ["x"]})
        assert response.status_code == HTTP_BAD_REQUEST

    def test_show_unheld_map_is_not_found(self, manager: ReferenceManager) -> None:
        """Maps the app does not hold are 404."""
        client = _create_client(manager)
        assert client.get("/api/maps/nope").status_code == HTTP_NOT_FOUND

    def test_release_evicts_last_reference(self, manager: ReferenceManager) -> None:
        """DELETE /api/maps/<id> releases; the last release evicts."""
        client = _create_client(manager)
        identifier = _open(client)
        client.put(f"/api/maps/{identifier}/entries/k", json={"value": "v"})
        response = client.delete(f"/api/maps/{identifier}")
        assert response.status_code == HTTP_OK
        assert response.get_json()["evicted"] is True
        assert manager.store.hash_get_all(identifier) == {}
        assert client.delete(f"/api/maps/{identifier}").status_code == HTTP_NOT_FOUND


class TestEntryEndpoints:
    """Verify single-entry reads and writes."""

    def test_put_get_delete(self, manager: ReferenceManager) -> None:
        """An entry can be written, read back, and deleted."""
        client = _create_client(manager)
        identifier = _open(client)
        url = f"/api/maps/{identifier}/entries/one"

        first = client.put(url, json={"value": "1"}).get_json()
        assert first["previous"] is None
        second = client.put(url, json={"value": "first"}).get_json()
        assert second["previous"] == "1"

        assert client.get(url).get_json() == {"key": "one", "value": "first"}
        assert client.delete(url).get_json() == {"key": "one", "previous": "first"}
        assert client.get(url).status_code == HTTP_NOT_FOUND
        assert client.delete(url).status_code == HTTP_NOT_FOUND

    def test_put_without_value_is_bad_request(self, manager: ReferenceManager) -> None:
        """A PUT body without 'value' is rejected."""
        client = _create_client(manager)
        identifier = _open(client)
        response = client.put(f"/api/maps/{identifier}/entries/k", json={})
        assert response.status_code == HTTP_BAD_REQUEST

    def test_put_non_object_body_is_bad_request(self, manager: ReferenceManager) -> None:
        """A bare JSON string is not a PUT body."""
        client = _create_client(manager)
        identifier = _open(client)
        response = client.put(f"/api/maps/{identifier}/entries/k", json="value")
        assert response.status_code == HTTP_BAD_REQUEST
        assert manager.store.hash_get_all(identifier) == {}

    def test_put_non_string_is_bad_request(self, manager: ReferenceManager) -> None:
        """Only string values are accepted."""
        client = _create_client(manager)
        identifier = _open(client)
        response = client.put(f"/api/maps/{identifier}/entries/k", json={"value": 12})
        assert response.status_code == HTTP_BAD_REQUEST
        assert "value" in response.get_json()["error"]

    def test_entries_of_unheld_map_are_not_found(self, manager: ReferenceManager) -> None:
        """Entry endpoints need a held map."""
        client = _create_client(manager)
        assert client.get("/api/maps/nope/entries/k").status_code == HTTP_NOT_FOUND
        assert client.put("/api/maps/nope/entries/k", json={"value": "v"}).status_code == HTTP_NOT_FOUND


class TestStatusEndpoint:
    """Verify the /api/status endpoint."""

    def test_status_lists_held_maps(self, manager: ReferenceManager) -> None:
        """Held maps appear with their reference counts."""
        client = _create_client(manager)
        identifier = _open(client)
        peer = manager.open(identifier)
        data = client.get("/api/status").get_json()
        assert data == {"maps": {identifier: 2}}
        peer.release()
