"""Fetching and shape-checking of remote OpenAPI/Swagger documents.

Shared by the ``/api/openapi`` endpoint and the ``get_openapi_documentation``
tool. Failures are raised as :class:`OpenAPIFetchError` subclasses, each of
which carries the HTTP status the endpoint answers with.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

import requests

from .config import USER_AGENT
from .exceptions import (
    InvalidSpecError,
    OpenAPIHTTPError,
    OpenAPINetworkError,
    OpenAPITimeoutError,
    UnsupportedContentError,
)
from .logger import logger
from .logging_utils import _log_upstream_call

ACCEPT_HEADER = "application/json, application/yaml, text/yaml, */*"
YAML_NOTE = "YAML content returned as text. Consider converting to JSON for better parsing."
YAML_CONTENT_TYPES = ("application/yaml", "text/yaml")


@dataclass
class FetchedDocument:
    url: str
    content_type: str
    kind: str
    data: Any

    @property
    def is_yaml(self) -> bool:
        return self.kind == "yaml"


def is_valid_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def is_openapi_spec(content: Any) -> bool:
    if not isinstance(content, dict):
        return False
    openapi_version = content.get("openapi")
    if isinstance(openapi_version, str) and openapi_version.startswith("3."):
        return True
    swagger_version = content.get("swagger")
    if isinstance(swagger_version, str) and swagger_version.startswith("2."):
        return True
    return isinstance(content.get("info"), dict) and isinstance(content.get("paths"), dict)


def summarize_spec(spec: dict) -> dict:
    info = spec.get("info") if isinstance(spec.get("info"), dict) else {}
    paths = spec.get("paths") if isinstance(spec.get("paths"), dict) else {}
    return {
        "title": info.get("title") or "Unknown API",
        "version": info.get("version") or "Unknown version",
        "description": info.get("description") or "No description available",
        "endpoints": list(paths.keys()),
        "servers": spec.get("servers") or [],
    }


def _parse_body(response, url):
    content_type = response.headers.get("Content-Type", "") or ""
    lowered = content_type.lower()
    if "application/json" in lowered:
        try:
            return FetchedDocument(url, content_type, "json", response.json())
        except ValueError as exc:
            raise UnsupportedContentError(content_type) from exc
    if any(kind in lowered for kind in YAML_CONTENT_TYPES):
        return FetchedDocument(url, content_type, "yaml", response.text)
    try:
        return FetchedDocument(url, content_type, "json", json.loads(response.text))
    except ValueError as exc:
        raise UnsupportedContentError(content_type) from exc


def fetch_openapi_document(url: str, timeout: float = 30.0, validate: bool = True) -> FetchedDocument:
    """Fetch ``url`` and return the parsed document.

    YAML bodies are returned untouched as text and are not validated. JSON
    bodies (or bodies that parse as JSON whatever their content type) are
    checked with :func:`is_openapi_spec` when ``validate`` is true.
    """
    logger.info("Fetching OpenAPI/Swagger spec from: %s", url)
    started_at = time.time()
    try:
        response = requests.get(
            url,
            headers={"Accept": ACCEPT_HEADER, "User-Agent": USER_AGENT},
            timeout=timeout,
        )
    except requests.Timeout as exc:
        logger.warning("Timed out fetching OpenAPI spec from %s", url)
        raise OpenAPITimeoutError(
            "Request timeout - the OpenAPI specification took too long to fetch"
        ) from exc
    except requests.RequestException as exc:
        logger.warning("Network error fetching OpenAPI spec from %s: %s", url, exc)
        raise OpenAPINetworkError("Network error - unable to reach the provided URL") from exc

    _log_upstream_call("GET", url, response.status_code, started_at)
    if not response.ok:
        raise OpenAPIHTTPError(response.status_code, response.reason or "")

    document = _parse_body(response, url)
    if validate and not document.is_yaml and not is_openapi_spec(document.data):
        raise InvalidSpecError()
    return document
