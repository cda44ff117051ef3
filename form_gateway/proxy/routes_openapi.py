from flask import jsonify, request

from .errors import _error
from .exceptions import (
    InvalidSpecError,
    OpenAPIFetchError,
    OpenAPIHTTPError,
    OpenAPINetworkError,
    OpenAPITimeoutError,
    UnsupportedContentError,
)
from .logger import logger
from .openapi_fetch import YAML_NOTE, fetch_openapi_document, is_valid_url

FETCH_FAILED = "Failed to fetch OpenAPI specification"


def register_openapi_routes(app, settings):
    def fetch_specification():
        spec_url = request.args.get("url")
        if not spec_url:
            return _error(
                "Please provide a URL parameter with the OpenAPI/Swagger specification URL",
                status=400,
                error="Missing required parameter: url",
            )
        if not is_valid_url(spec_url):
            return _error(
                "Please provide a valid HTTP or HTTPS URL",
                status=400,
                error="Invalid URL format",
                url=spec_url,
            )

        try:
            document = fetch_openapi_document(spec_url, timeout=settings.openapi_fetch_timeout)
        except OpenAPIHTTPError as exc:
            return _error(exc.message, status=exc.status, error=FETCH_FAILED, url=spec_url)
        except UnsupportedContentError as exc:
            return _error(exc.message, status=exc.status, error="Unsupported content type", url=spec_url)
        except InvalidSpecError as exc:
            return _error(
                exc.message,
                status=exc.status,
                error="Invalid OpenAPI/Swagger specification",
                url=spec_url,
                hint="Make sure the URL points to a valid OpenAPI or Swagger specification file",
            )
        except (OpenAPITimeoutError, OpenAPINetworkError) as exc:
            return _error(FETCH_FAILED, status=exc.status, error=exc.message, url=spec_url)
        except OpenAPIFetchError as exc:
            logger.warning("OpenAPI fetch error for %s: %s", spec_url, exc.message)
            return _error(FETCH_FAILED, status=exc.status, error=exc.message, url=spec_url)

        if document.is_yaml:
            return jsonify(
                {
                    "success": True,
                    "data": document.data,
                    "contentType": "yaml",
                    "url": spec_url,
                    "message": YAML_NOTE,
                }
            )
        return jsonify({"success": True, "data": document.data, "url": spec_url, "contentType": "json"})

    app.add_url_rule("/api/openapi", "fetch_openapi", fetch_specification, methods=["GET"])
    app.add_url_rule("/api/swagger", "fetch_swagger", fetch_specification, methods=["GET"])
