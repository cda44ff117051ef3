"""Function-calling integration that lets the LLM pull OpenAPI documentation.

The round trip is linear: inject the tool into the outbound request, forward
it, execute any matching tool calls, and replay their results to the LLM once.
"""

import copy
import json
import re
import time
from urllib.parse import quote, urlencode

import requests
from pydantic import ValidationError

from .config import USER_AGENT
from .exceptions import OpenAPIFetchError, OpenAPIHTTPError, UnsupportedContentError
from .logger import logger
from .logging_utils import _log_payload, _log_upstream_call
from .models import FunctionMetadata, OpenAPIToolArguments, first_error_message
from .normalize import _assistant_replay_message, _extract_tool_calls
from .openapi_fetch import YAML_NOTE, fetch_openapi_document, is_valid_url, summarize_spec

OPENAPI_TOOL_NAME = "get_openapi_documentation"
TOOL_FLAG = "useOpenAPITool"

_PATH_PARAM = re.compile(r"\{([^{}]+)\}")


def build_openapi_tool():
    return {
        "type": "function",
        "function": {
            "name": OPENAPI_TOOL_NAME,
            "description": (
                "Fetch OpenAPI/Swagger documentation from a URL. Use this when you need to "
                "understand an API specification, endpoints, parameters, or schemas. Extract "
                "URLs from the user's message or conversation context."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "url": {
                        "type": "string",
                        "description": (
                            "The URL of the OpenAPI/Swagger specification (JSON or YAML format). "
                            "Extract this URL from the user's message or conversation context."
                        ),
                    },
                    "format": {
                        "type": "string",
                        "enum": ["json", "yaml"],
                        "description": "Preferred format for the response (defaults to json)",
                    },
                },
                "required": ["url"],
            },
        },
    }


def has_openapi_tool_config(payload):
    if not isinstance(payload, dict):
        return False
    flag = payload.get(TOOL_FLAG)
    if isinstance(flag, dict):
        return flag.get(TOOL_FLAG) is True
    return flag is True


def process_llm_request(payload):
    """Return a copy of ``payload`` ready to forward to the LLM.

    The ``useOpenAPITool`` flag is always dropped. When it was enabled the
    documentation tool is appended to ``tools`` and ``tool_choice`` is set to
    ``auto``; messages are left exactly as they were.
    """
    if not isinstance(payload, dict):
        return payload
    data = copy.deepcopy(payload)
    enabled = has_openapi_tool_config(data)
    data.pop(TOOL_FLAG, None)
    if enabled:
        tools = data.get("tools")
        if not isinstance(tools, list):
            tools = []
        tools.append(build_openapi_tool())
        data["tools"] = tools
        data["tool_choice"] = "auto"
    return data


def _failure(error, **extra):
    result = {"success": False, "error": error}
    result.update(extra)
    return result


def _fetch_documentation(arguments, timeout):
    try:
        args = OpenAPIToolArguments.model_validate(arguments or {})
    except ValidationError as exc:
        if not (arguments or {}).get("url"):
            return _failure("URL parameter is required")
        return _failure(first_error_message(exc))

    if not is_valid_url(args.url):
        return _failure("Invalid URL format")

    logger.info("Fetching OpenAPI documentation from: %s", args.url)
    try:
        document = fetch_openapi_document(args.url, timeout=timeout)
    except OpenAPIHTTPError as exc:
        return _failure(
            f"Failed to fetch OpenAPI specification: HTTP {exc.status_code} {exc.reason}".rstrip()
        )
    except UnsupportedContentError as exc:
        return _failure(
            f"Unsupported content type: {exc.content_type}. "
            "Please provide a JSON or YAML OpenAPI specification."
        )
    except OpenAPIFetchError as exc:
        return _failure(exc.message)

    if document.is_yaml:
        return {
            "success": True,
            "data": {
                "content": document.data,
                "contentType": "yaml",
                "url": args.url,
                "note": YAML_NOTE,
            },
            "format": "yaml",
        }

    summary = summarize_spec(document.data)
    if args.format == "yaml":
        data = dict(summary)
        data["note"] = 'Full specification available in JSON format. Use format: "json" to get complete details.'
        data["url"] = args.url
        return {"success": True, "data": data, "format": "yaml"}

    return {
        "success": True,
        "data": document.data,
        "format": "json",
        "url": args.url,
        "summary": summary,
    }


def _build_api_url(metadata, arguments):
    path = metadata.path

    def _substitute(match):
        name = match.group(1)
        if name in arguments:
            return quote(str(arguments[name]), safe="")
        return match.group(0)

    url = metadata.server_url.rstrip("/") + "/" + _PATH_PARAM.sub(_substitute, path).lstrip("/")
    query = [
        (key[len("query_"):], value)
        for key, value in arguments.items()
        if key.startswith("query_") and value is not None
    ]
    if query:
        url = f"{url}?{urlencode(query)}"
    return url


def execute_api_call(arguments, metadata, timeout=30.0):
    """Run a function call described by ``metadata`` as a plain HTTP request."""
    arguments = arguments or {}
    try:
        meta = FunctionMetadata.model_validate(metadata)
    except ValidationError as exc:
        return _failure(f"Invalid function metadata: {first_error_message(exc)}")

    method = meta.method.upper()
    url = _build_api_url(meta, arguments)
    headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
    extra_headers = arguments.get("headers")
    if isinstance(extra_headers, dict):
        headers.update({str(key): str(value) for key, value in extra_headers.items()})
    body = None
    if "request_body" in arguments and method not in {"GET", "HEAD"}:
        body = json.dumps(arguments["request_body"])

    started_at = time.time()
    try:
        response = requests.request(method, url, headers=headers, data=body, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Function call %s %s failed: %s", method, url, exc)
        return _failure(str(exc))
    _log_upstream_call(method, url, response.status_code, started_at)

    content_type = (response.headers.get("Content-Type") or "").lower()
    if "application/json" in content_type:
        try:
            data = response.json()
        except ValueError:
            data = response.text
    else:
        data = response.text
    return {"success": response.ok, "status": response.status_code, "data": data}


def execute_tool_call(name, arguments, metadata=None, timeout=30.0):
    """Execute one LLM tool call. Failures come back as ``{success: False, error}``."""
    if name == OPENAPI_TOOL_NAME:
        return _fetch_documentation(arguments, timeout)
    if metadata:
        return execute_api_call(arguments, metadata, timeout=timeout)
    return _failure(f"Unknown function: {name}")


def run_tool_round_trip(create_completion, payload, timeout=30.0):
    """Forward ``payload``, execute documentation tool calls, replay results once.

    ``create_completion`` takes a request payload and returns the completion as
    a dict. Returns the completion the caller should see.
    """
    completion = create_completion(payload)
    message, calls = _extract_tool_calls(completion)
    calls = [call for call in calls if call["name"] == OPENAPI_TOOL_NAME or call["metadata"]]
    if not calls:
        return completion

    tool_messages = []
    for call in calls:
        result = execute_tool_call(call["name"], call["arguments"], call["metadata"], timeout=timeout)
        _log_payload("tool.result", {"id": call["id"], "name": call["name"], "success": result.get("success")})
        tool_messages.append(
            {
                "role": "tool",
                "tool_call_id": call["id"],
                "content": json.dumps(result, ensure_ascii=False),
            }
        )

    follow_up = dict(payload)
    replay = _assistant_replay_message(message, {call["id"] for call in calls})
    follow_up["messages"] = list(payload.get("messages") or []) + [replay] + tool_messages
    logger.info("Replaying %s tool result(s) to the LLM.", len(tool_messages))
    return create_completion(follow_up)
