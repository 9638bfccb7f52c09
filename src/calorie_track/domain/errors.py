"""Error taxonomy for the estimation proxy."""


class ProxyError(Exception):
    """Base error rendered as a JSON error body by the proxy."""

    status_code = 500

    def __init__(self, message: str, context: dict[str, object] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_payload(self) -> dict[str, object]:
        """Return the JSON body for this error."""
        return {"error": self.message, **self.context}


class InputValidationError(ProxyError):
    """The request body is malformed or has an unrecognized shape."""

    status_code = 400


class AuthError(ProxyError):
    """The bearer credential is missing, malformed or rejected."""

    status_code = 401


class RateLimitError(ProxyError):
    """The caller has used all of today's credits."""

    status_code = 429


class UpstreamError(ProxyError):
    """The upstream model call failed."""

    status_code = 503


class InvalidUpstreamResponseError(UpstreamError):
    """The model answered, but the content was unusable."""

    status_code = 502


class UpstreamUnavailableError(UpstreamError):
    """The model could not be reached or returned a transport error."""

    status_code = 503


class InternalError(ProxyError):
    """Unexpected failure inside the proxy."""

    status_code = 500
