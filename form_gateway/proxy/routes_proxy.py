import json
import time

import requests
from flask import Response, jsonify, request, stream_with_context
from openai import APIConnectionError, APIStatusError

from .client import _extract_bearer_token, _get_client
from .errors import _error, _handle_upstream_error
from .logger import logger
from .logging_utils import _log_payload, _log_upstream_call
from .normalize import _serialize_model
from .openapi_tools import TOOL_FLAG, has_openapi_tool_config, process_llm_request, run_tool_round_trip
from .routes_auth import _authorize_origin, _resolve_upstream_authorization

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]
_BODYLESS_METHODS = {"GET", "HEAD"}


def _target_url(api_url, api_path):
    target = f"{api_url.rstrip('/')}/{api_path.lstrip('/')}"
    query = request.query_string.decode("utf-8", errors="replace")
    if query:
        separator = "&" if "?" in target else "?"
        target = f"{target}{separator}{query}"
    return target


def _upload_size(storage):
    stream = storage.stream
    try:
        position = stream.tell()
        size = stream.seek(0, 2)
        stream.seek(position)
        return size
    except (AttributeError, OSError):
        # Unseekable part: trust the declared length, never consume the stream.
        return storage.content_length or 0


def _validate_uploads(settings):
    for field_name, storage in request.files.items(multi=True):
        mimetype = (storage.mimetype or "").lower()
        if mimetype not in settings.allowed_upload_types:
            return _error("Invalid file type", status=400, error="Invalid file type", field=field_name)
        if _upload_size(storage) > settings.max_upload_bytes:
            return _error("File too large", status=400, error="File too large", field=field_name)
    return None


def _is_chat_completions(api_path):
    return api_path.strip("/").endswith("chat/completions")


def register_proxy_routes(app, settings):
    def _forward(target, authorization, body, content_type):
        headers = {"Authorization": authorization or "", "Content-Type": content_type}
        started_at = time.time()
        try:
            upstream = requests.request(
                request.method,
                target,
                headers=headers,
                data=body,
                timeout=settings.upstream_timeout,
                stream=True,
            )
        except requests.RequestException:
            logger.exception("Upstream error on %s %s.", request.method, target)
            return _error("Error connecting to AI Gateway", status=502)
        _log_upstream_call(request.method, target, upstream.status_code, started_at, headers=headers)

        upstream_type = upstream.headers.get("Content-Type") or "application/json"
        if "text/event-stream" in upstream_type.lower():
            return Response(
                stream_with_context(upstream.iter_content(chunk_size=None)),
                status=upstream.status_code,
                content_type=upstream_type,
                headers={"Cache-Control": "no-cache"},
            )
        try:
            content = upstream.content
        except requests.RequestException:
            logger.exception("Upstream body read failed on %s %s.", request.method, target)
            return _error("Error connecting to AI Gateway", status=502)
        finally:
            upstream.close()
        return Response(content, status=upstream.status_code, content_type=upstream_type)

    def _tool_round_trip(api_url, authorization, payload):
        model = payload.get("model")
        if not model:
            return _error("model is required when useOpenAPITool is enabled", status=400)
        client = _get_client(api_url.rstrip("/"), _extract_bearer_token(authorization), settings)

        def create_completion(request_payload):
            extra = dict(request_payload)
            extra.pop("stream", None)
            extra.pop("model", None)
            messages = extra.pop("messages", None) or []
            _log_payload("outgoing.payload", request_payload)
            response = client.chat.completions.create(model=model, messages=messages, extra_body=extra)
            return _serialize_model(response)

        try:
            completion = run_tool_round_trip(
                create_completion, payload, timeout=settings.openapi_fetch_timeout
            )
        except APIConnectionError:
            logger.exception("Upstream connection error on tool-enabled chat completion.")
            return _error("Error connecting to AI Gateway", status=502)
        except APIStatusError as exc:
            logger.warning("Upstream LLM returned %s on tool-enabled chat completion.", exc.status_code)
            return _handle_upstream_error(exc)
        return jsonify(completion)

    @app.route("/", methods=PROXY_METHODS)
    def reverse_proxy():
        origin_error = _authorize_origin(settings)
        if origin_error:
            return origin_error

        api_url = request.headers.get("api-url")
        api_path = request.headers.get("api-path")
        if not api_url or not api_path:
            return _error("Missing api-url or api-path header", status=400)

        authorization, auth_error = _resolve_upstream_authorization(settings)
        if auth_error:
            return auth_error

        target = _target_url(api_url, api_path)
        if request.method in _BODYLESS_METHODS:
            return _forward(target, authorization, None, "application/json")

        content_type = request.headers.get("Content-Type", "")
        if content_type.lower().startswith("multipart/form-data"):
            body = request.get_data(cache=True)
            upload_error = _validate_uploads(settings)
            if upload_error:
                return upload_error
            return _forward(target, authorization, body, content_type)

        body = request.get_data()
        if body:
            try:
                payload = json.loads(body)
            except ValueError:
                payload = None
            if isinstance(payload, dict) and TOOL_FLAG in payload:
                _log_payload("incoming.raw", payload)
                processed = process_llm_request(payload)
                if has_openapi_tool_config(payload) and _is_chat_completions(api_path):
                    return _tool_round_trip(api_url, authorization, processed)
                body = json.dumps(processed).encode("utf-8")
        return _forward(target, authorization, body or None, "application/json")
