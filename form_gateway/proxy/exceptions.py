class GatewayError(Exception):
    """Base exception for errors that map onto an HTTP status."""

    status = 500

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class OpenAPIFetchError(GatewayError):
    """An OpenAPI/Swagger document could not be fetched or accepted."""

    status = 400


class OpenAPITimeoutError(OpenAPIFetchError):
    status = 408


class OpenAPINetworkError(OpenAPIFetchError):
    status = 502


class OpenAPIHTTPError(OpenAPIFetchError):
    """The document URL answered with a non-2xx status."""

    def __init__(self, status_code, reason):
        super().__init__(f"HTTP {status_code}: {reason}", status=status_code)
        self.status_code = status_code
        self.reason = reason


class UnsupportedContentError(OpenAPIFetchError):
    def __init__(self, content_type):
        super().__init__(
            f"Content type '{content_type}' is not supported. "
            "Please provide a JSON or YAML OpenAPI specification."
        )
        self.content_type = content_type


class InvalidSpecError(OpenAPIFetchError):
    def __init__(self):
        super().__init__(
            "The provided URL does not contain a valid OpenAPI 3.x or Swagger 2.x specification"
        )


class StoreError(GatewayError):
    """The form data store failed to run a statement."""


class NetlifyAPIError(GatewayError):
    """Netlify answered with a non-2xx status or an unusable body."""

    status = 502

    def __init__(self, message, status_code, body):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
