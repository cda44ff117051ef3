from flask import request

from .errors import _error


def _request_origin():
    origin = request.headers.get("Origin") or ""
    return origin.strip().rstrip("/")


def _authorize_origin(settings):
    if settings.is_dev:
        return None
    origin = _request_origin()
    if origin and origin in settings.allowed_origins:
        return None
    return _error("Forbidden: invalid origin", status=403)


def _resolve_upstream_authorization(settings):
    """Return ``(authorization_header, error_response)`` for the outbound call.

    A ``system-key`` header swaps the caller's credentials for a key held in
    configuration; otherwise the caller's ``Authorization`` is passed through.
    """
    system_key = (request.headers.get("system-key") or "").strip().lower()
    if system_key:
        api_key = settings.system_keys.get(system_key)
        if not api_key:
            return None, _error(f"Unknown system key: {system_key}", status=400)
        return f"Bearer {api_key}", None
    return request.headers.get("Authorization", ""), None
