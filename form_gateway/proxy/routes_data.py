from flask import jsonify, request

from .errors import _error
from .exceptions import StoreError
from .forms_store import FormStore

DEFAULT_LIMIT = 100


def _json_object_body():
    """Return ``(body, error_response)`` for a request that must carry a JSON object."""
    if "application/json" not in (request.headers.get("Content-Type") or "").lower():
        return None, _error("Content-Type must be application/json", status=400)
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return None, _error("Request body must be a valid JSON object", status=400)
    return body, None


def _int_arg(name, default):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


def _not_found():
    return _error("Data not found", status=404)


def register_data_routes(app, settings):
    store = FormStore(settings.database_path)
    store.initialize()
    app.extensions["form_store"] = store

    @app.errorhandler(StoreError)
    def _store_error(error):
        return _error("Internal server error", status=500, error=error.message)

    @app.post("/api/data")
    def store_form_data():
        body, body_error = _json_object_body()
        if body_error:
            return body_error
        stored = store.store(body)
        return (
            jsonify({"success": True, "message": "Data stored successfully", "data": stored.to_json()}),
            201,
        )

    @app.get("/api/data")
    def list_form_data():
        limit = _int_arg("limit", DEFAULT_LIMIT)
        offset = _int_arg("offset", 0)
        if limit is None or offset is None:
            return _error("limit and offset must be non-negative integers", status=400)
        forms = store.list(limit=limit, offset=offset)
        return jsonify(
            {
                "success": True,
                "message": "Data retrieved successfully",
                "data": [form.to_json() for form in forms],
                "pagination": {"limit": limit, "offset": offset, "count": len(forms)},
            }
        )

    @app.get("/api/data/<int:form_id>")
    def get_form_data(form_id):
        form = store.get(form_id)
        if form is None:
            return _not_found()
        return jsonify({"success": True, "message": "Data retrieved successfully", "data": form.to_json()})

    @app.put("/api/data/<int:form_id>")
    def update_form_data(form_id):
        body, body_error = _json_object_body()
        if body_error:
            return body_error
        updated = store.update(form_id, body)
        if updated is None:
            return _not_found()
        return jsonify({"success": True, "message": "Data updated successfully", "data": updated.to_json()})

    @app.delete("/api/data/<int:form_id>")
    def delete_form_data(form_id):
        if not store.delete(form_id):
            return _not_found()
        return jsonify({"success": True, "message": "Data deleted successfully"})
