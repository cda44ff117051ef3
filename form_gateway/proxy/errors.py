import json

from flask import jsonify


def _error_payload(message, error=None, **extra):
    payload = {"success": False, "message": message}
    if error is not None:
        payload["error"] = error
    payload.update({key: value for key, value in extra.items() if value is not None})
    return payload


def _error(message, status=400, error=None, **extra):
    payload = _error_payload(message, error=error, **extra)
    return jsonify(payload), status


def _upstream_error_payload(error):
    status = getattr(error, "status_code", 502)
    body = getattr(error, "body", None)
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            body = None
    if isinstance(body, dict):
        return body, status
    message = getattr(error, "message", None) or str(error)
    return _error_payload("Upstream LLM request failed", error=message), status


def _handle_upstream_error(error):
    payload, status = _upstream_error_payload(error)
    return jsonify(payload), status
