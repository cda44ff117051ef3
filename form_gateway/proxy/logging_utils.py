import json
import time

from flask import g, has_app_context, request

from .config import (
    LOG_MAX_CHARS,
    LOG_PAYLOAD_MAX_CHARS,
    LOG_PAYLOAD_MAX_DEPTH,
    LOG_PAYLOAD_MAX_ITEMS,
    LOG_PAYLOADS,
    LOG_TOOL_CALLS,
)
from .logger import logger

# Never written to the log, whatever the payload logging settings say.
SECRET_KEYS = frozenset(
    {
        "authorization",
        "system-key",
        "cookie",
        "access_token",
        "client_secret",
        "netlifyaccesstoken",
        "api_key",
    }
)
# Large opaque blobs are logged by size only.
BLOB_KEYS = frozenset({"zipcontents"})


def _truncate(value, limit):
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...<truncated>"


def _safe_json_dumps(value):
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def _summarize_value(key, value, depth):
    lowered = str(key).lower()
    if lowered in SECRET_KEYS and value:
        return "<redacted>"
    if lowered in BLOB_KEYS and isinstance(value, (str, bytes)):
        return f"<{type(value).__name__}:{len(value)}>"
    return _summarize_payload(value, depth + 1)


def _summarize_payload(value, depth=0):
    """Shrink ``value`` to something safe and small enough to log."""
    if depth >= LOG_PAYLOAD_MAX_DEPTH:
        return "<max_depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _truncate(value, LOG_PAYLOAD_MAX_CHARS)
    if isinstance(value, bytes):
        return f"<bytes:{len(value)}>"
    if isinstance(value, dict):
        keys = list(value)
        result = {str(key): _summarize_value(key, value[key], depth) for key in keys[:LOG_PAYLOAD_MAX_ITEMS]}
        if len(keys) > LOG_PAYLOAD_MAX_ITEMS:
            result["<truncated_keys>"] = len(keys) - LOG_PAYLOAD_MAX_ITEMS
        return result
    if isinstance(value, (list, tuple)):
        summarized = [_summarize_payload(item, depth + 1) for item in value[:LOG_PAYLOAD_MAX_ITEMS]]
        if len(value) > LOG_PAYLOAD_MAX_ITEMS:
            summarized.append(f"<truncated_items:{len(value) - LOG_PAYLOAD_MAX_ITEMS}>")
        return summarized
    return _truncate(str(value), LOG_PAYLOAD_MAX_CHARS)


def _log_payload(label, payload):
    if not LOG_PAYLOADS:
        return
    text = _safe_json_dumps(_summarize_payload(payload))
    logger.info("%s=%s", label, _truncate(text, LOG_PAYLOAD_MAX_CHARS))


def _log_tool_call(name, arguments, call_id, source):
    if not LOG_TOOL_CALLS:
        return
    logger.info(
        "Tool call (%s) name=%s call_id=%s arguments=%s",
        source,
        name,
        call_id,
        _truncate(arguments, LOG_MAX_CHARS),
    )


def _request_id():
    return getattr(g, "request_id", None) if has_app_context() else None


def _log_request_complete(status_code, stream=False):
    start_time = getattr(g, "start_time", None)
    duration_ms = (time.time() - start_time) * 1000.0 if start_time else 0.0
    logger.info(
        "request.complete request_id=%s method=%s path=%s status=%s duration_ms=%.2f stream=%s",
        _request_id(),
        request.method,
        request.path,
        status_code,
        duration_ms,
        stream,
    )


def _log_upstream_call(method, url, status_code, started_at, headers=None):
    """Log one outbound call; usable outside a request (tool round trips in tests)."""
    duration_ms = (time.time() - started_at) * 1000.0
    logger.info(
        "upstream.complete request_id=%s method=%s url=%s status=%s duration_ms=%.2f",
        _request_id(),
        method,
        url,
        status_code,
        duration_ms,
    )
    if headers is not None:
        _log_payload("upstream.headers", headers)
