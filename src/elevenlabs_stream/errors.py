"""Exception taxonomy and HTTP status mapping for the ElevenLabs API."""

import json
from typing import Any

MAX_MESSAGE_LENGTH = 200

# Body fields consulted, in order, when extracting a human-readable message
_MESSAGE_FIELDS = ("detail", "message", "error", "errors")


class ElevenLabsError(Exception):
    """Base error for everything raised by this package."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class APIError(ElevenLabsError):
    """Error reported by the ElevenLabs API (catch-all for non-2xx)."""

    pass


class BadRequestError(APIError):
    pass


class AuthenticationError(APIError):
    pass


class PaymentRequiredError(APIError):
    pass


class ForbiddenError(APIError):
    pass


class NotFoundError(APIError):
    pass


class RequestTimeoutError(APIError):
    pass


class UnprocessableEntityError(APIError):
    pass


class RateLimitError(APIError):
    pass


class ServiceUnavailableError(APIError):
    pass


class ValidationError(ElevenLabsError):
    """Caller-supplied arguments are missing or invalid.

    Raised before any network I/O happens.
    """

    pass


class ContextStateError(ValidationError):
    """A context was addressed in a state that does not allow the operation."""

    pass


class ConnectionStateError(ElevenLabsError):
    """The streaming connection cannot carry the requested frame."""

    pass


class ProtocolError(ElevenLabsError):
    """An inbound frame could not be decoded."""

    pass


STATUS_ERRORS: dict[int, tuple[type[APIError], str]] = {
    400: (BadRequestError, "Bad request - invalid parameters"),
    401: (AuthenticationError, "Invalid API key or authentication failed"),
    402: (PaymentRequiredError, "Payment required"),
    403: (ForbiddenError, "Access forbidden"),
    404: (NotFoundError, "Resource not found"),
    408: (RequestTimeoutError, "Request timeout"),
    422: (UnprocessableEntityError, "Unprocessable entity - invalid data"),
    429: (RateLimitError, "Rate limit exceeded"),
    503: (ServiceUnavailableError, "Service unavailable"),
}


def truncate_message(message: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    """Cut a message to ``limit`` characters, marking the cut with an ellipsis."""
    if len(message) > limit:
        return f"{message[:limit]}..."
    return message


def _message_from_value(value: Any) -> str:
    """Pull a message out of a ``detail``-style value."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("message", "msg"):
            if value.get(key):
                return str(value[key])
        return json.dumps(value)
    if isinstance(value, list):
        return _message_from_value(value[0]) if value else ""
    return str(value)


def extract_error_message(body: Any) -> str:
    """Extract a human-readable error message from a response body.

    Args:
        body: Raw bytes/str body, an already parsed JSON value, or None.

    Returns:
        The extracted message (possibly empty), truncated to 200 characters.
    """
    if body is None:
        return ""

    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")

    if isinstance(body, str):
        if not body.strip():
            return ""
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError:
            return truncate_message(body)
    else:
        parsed = body

    if isinstance(parsed, dict):
        for field in _MESSAGE_FIELDS:
            if parsed.get(field):
                return truncate_message(_message_from_value(parsed[field]))
        return ""

    return truncate_message(_message_from_value(parsed))


def error_for_status(status_code: int, body: Any = None) -> APIError:
    """Map a non-success status code and body to a typed error.

    Args:
        status_code: HTTP (or WebSocket handshake) status code.
        body: Response body in any form accepted by extract_error_message.

    Returns:
        An APIError subclass instance; the caller decides whether to raise it.
    """
    message = extract_error_message(body)
    error_cls, default_message = STATUS_ERRORS.get(
        status_code,
        (APIError, f"API request failed with status {status_code}"),
    )
    return error_cls(message or default_message, status_code=status_code)
