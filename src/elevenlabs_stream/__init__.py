"""ElevenLabs Stream - ElevenLabs API client with WebSocket text-to-speech streaming."""

__version__ = "0.1.0"

from .client import ElevenLabsClient, WebSocketTextToSpeech
from .config import ClientConfig, configure, get_default_config, reset_default_config
from .errors import (
    APIError,
    AuthenticationError,
    BadRequestError,
    ConnectionStateError,
    ContextStateError,
    ElevenLabsError,
    ForbiddenError,
    NotFoundError,
    PaymentRequiredError,
    ProtocolError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
    UnprocessableEntityError,
    ValidationError,
    error_for_status,
)
from .transport import HTTPTransport

__all__ = [
    "ElevenLabsClient",
    "WebSocketTextToSpeech",
    "HTTPTransport",
    "ClientConfig",
    "configure",
    "get_default_config",
    "reset_default_config",
    "error_for_status",
    "ElevenLabsError",
    "APIError",
    "BadRequestError",
    "AuthenticationError",
    "PaymentRequiredError",
    "ForbiddenError",
    "NotFoundError",
    "RequestTimeoutError",
    "UnprocessableEntityError",
    "RateLimitError",
    "ServiceUnavailableError",
    "ValidationError",
    "ContextStateError",
    "ConnectionStateError",
    "ProtocolError",
]
