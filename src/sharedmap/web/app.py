"""Flask application factory for the shared map HTTP API.

The ``create_app`` function wires a reference manager into a Flask app
with these endpoints:

- ``POST /api/maps`` — open a handle (on a new or existing map).
- ``GET /api/maps/<id>`` — snapshot of a held map.
- ``DELETE /api/maps/<id>`` — release the held handle.
- ``GET|PUT|DELETE /api/maps/<id>/entries/<key>`` — single entries.
- ``GET /api/status`` — held maps and their reference counts.
"""

from __future__ import annotations

import threading

from flask import Flask, Response, jsonify, request

from sharedmap.errors import InvalidArgumentError
from sharedmap.handle import SharedMap
from sharedmap.lifecycle import ReferenceManager, default_manager, require_identifier

_HTTP_CREATED = 201
_HTTP_BAD_REQUEST = 400
_HTTP_NOT_FOUND = 404


def create_app(manager: ReferenceManager | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        manager: Reference manager to open handles through; the
            process-wide default if None.

    Returns:
        A configured Flask application ready to serve.

    """
    manager = manager if manager is not None else default_manager()
    handles: dict[str, SharedMap] = {}
    handles_lock = threading.Lock()

    app = Flask(__name__)
    app.extensions["sharedmap"] = {"manager": manager, "handles": handles}

    def _not_held(identifier: str) -> tuple[Response, int]:
        return jsonify({"error": f"No handle held on '{identifier}'"}), _HTTP_NOT_FOUND

    def _held(identifier: str) -> SharedMap | None:
        with handles_lock:
            return handles.get(identifier)

    @app.errorhandler(InvalidArgumentError)
    def invalid_argument(exc: InvalidArgumentError) -> tuple[Response, int]:  # pyright: ignore[reportUnusedFunction]
        """Report invalid arguments as 400."""
        return jsonify({"error": str(exc)}), _HTTP_BAD_REQUEST

    @app.route("/api/maps", methods=["POST"])
    def open_map() -> tuple[Response, int]:  # pyright: ignore[reportUnusedFunction]
        """Open a handle.

        Expects an optional JSON body: ``{"identifier": "..."}``.  If a
        handle on that identifier is already held, it is reused.

        Returns:
            JSON with ``identifier`` and ``refs`` fields.

        """
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return jsonify({"error": "Expected a JSON object"}), _HTTP_BAD_REQUEST
        identifier = data.get("identifier")
        if identifier is not None:
            identifier = require_identifier(identifier)
        with handles_lock:
            handle = handles.get(identifier) if identifier is not None else None
            if handle is None:
                handle = manager.open(identifier)
                handles[handle.identifier] = handle
        refs = manager.ref_count(handle.identifier)
        return jsonify({"identifier": handle.identifier, "refs": refs}), _HTTP_CREATED

    @app.route("/api/maps/<identifier>")
    def show_map(identifier: str) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return a snapshot of a held map."""
        handle = _held(identifier)
        if handle is None:
            return _not_held(identifier)
        entries = handle.to_dict()
        return jsonify(
            {
                "identifier": identifier,
                "entries": entries,
                "size": len(entries),
                "refs": manager.ref_count(identifier),
            }
        )

    @app.route("/api/maps/<identifier>", methods=["DELETE"])
    def release_map(identifier: str) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Release the held handle on a map."""
        with handles_lock:
            handle = handles.pop(identifier, None)
        if handle is None:
            return _not_held(identifier)
        evicted = handle.release()
        return jsonify({"identifier": identifier, "evicted": evicted})

    @app.route("/api/maps/<identifier>/entries/<key>")
    def get_entry(identifier: str, key: str) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return one entry."""
        handle = _held(identifier)
        if handle is None:
            return _not_held(identifier)
        value = handle.get(key)
        if value is None:
            return jsonify({"error": f"Key '{key}' not found"}), _HTTP_NOT_FOUND
        return jsonify({"key": key, "value": value})

    @app.route("/api/maps/<identifier>/entries/<key>", methods=["PUT"])
    def put_entry(identifier: str, key: str) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Set one entry.

        Expects JSON body: ``{"value": "..."}``

        Returns:
            JSON with ``key``, ``value`` and ``previous`` fields.

        """
        handle = _held(identifier)
        if handle is None:
            return _not_held(identifier)
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "value" not in data:
            return jsonify({"error": "Missing 'value' field"}), _HTTP_BAD_REQUEST
        previous = handle.put(key, data["value"])
        return jsonify({"key": key, "value": data["value"], "previous": previous})

    @app.route("/api/maps/<identifier>/entries/<key>", methods=["DELETE"])
    def delete_entry(identifier: str, key: str) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Delete one entry."""
        handle = _held(identifier)
        if handle is None:
            return _not_held(identifier)
        previous = handle.remove(key)
        if previous is None:
            return jsonify({"error": f"Key '{key}' not found"}), _HTTP_NOT_FOUND
        return jsonify({"key": key, "previous": previous})

    @app.route("/api/status")
    def status() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return held maps and their reference counts."""
        with handles_lock:
            held = sorted(handles)
        return jsonify({"maps": {identifier: manager.ref_count(identifier) for identifier in held}})

    return app
