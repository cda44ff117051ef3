import time
import uuid

from flask import g, request
from werkzeug.exceptions import HTTPException

from .errors import _error
from .logger import logger
from .logging_utils import _log_request_complete

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}

_STATUS_MESSAGES = {
    404: "Endpoint not found",
    405: "Method not allowed",
}


def register_request_hooks(app):
    @app.before_request
    def _start_request():
        request_id = request.headers.get("X-Request-ID") or request.headers.get("X-Request-Id")
        if not request_id:
            request_id = uuid.uuid4().hex
        g.request_id = request_id
        g.start_time = time.time()
        if request.method == "OPTIONS":
            return "", 204, PREFLIGHT_HEADERS
        return None

    @app.after_request
    def _finalize_request(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers.setdefault("X-Request-ID", request_id)
        _log_request_complete(response.status_code, stream=response.is_streamed)
        return response

    @app.errorhandler(Exception)
    def _handle_exception(error):
        if isinstance(error, HTTPException):
            logger.warning(
                "HTTP error request_id=%s method=%s path=%s status=%s message=%s",
                getattr(g, "request_id", None),
                request.method,
                request.path,
                error.code,
                error.description,
            )
            message = _STATUS_MESSAGES.get(error.code, error.name)
            return _error(message, status=error.code, error=error.description)
        logger.exception(
            "Unhandled error request_id=%s method=%s path=%s",
            getattr(g, "request_id", None),
            request.method,
            request.path,
        )
        return _error("Internal server error", status=500, error=str(error))
