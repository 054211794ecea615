# pylint: disable=missing-module-docstring,missing-function-docstring

import json

import pytest

from elevenlabs_stream.errors import (
    APIError,
    AuthenticationError,
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    PaymentRequiredError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
    UnprocessableEntityError,
    error_for_status,
    extract_error_message,
)


# ---------------------------------------------------------------------
# Status table
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    "status, error_cls",
    [
        (400, BadRequestError),
        (401, AuthenticationError),
        (402, PaymentRequiredError),
        (403, ForbiddenError),
        (404, NotFoundError),
        (408, RequestTimeoutError),
        (422, UnprocessableEntityError),
        (429, RateLimitError),
        (503, ServiceUnavailableError),
    ],
)
def test_status_maps_to_error_kind(status, error_cls):
    error = error_for_status(status)

    assert type(error) is error_cls
    assert error.status_code == status
    assert error.message


def test_unlisted_status_is_generic_api_error():
    error = error_for_status(500, None)

    assert type(error) is APIError
    assert "500" in error.message

    assert type(error_for_status(418)) is APIError


# ---------------------------------------------------------------------
# Message extraction
# ---------------------------------------------------------------------

def test_422_detail_list_uses_first_entry():
    body = json.dumps({"detail": [{"msg": "File size must be less than 1GB"}]})

    error = error_for_status(422, body)

    assert isinstance(error, UnprocessableEntityError)
    assert error.message == "File size must be less than 1GB"


def test_detail_nested_message():
    body = {"detail": {"status": "invalid_api_key", "message": "Invalid API key"}}

    assert error_for_status(401, body).message == "Invalid API key"


def test_detail_plain_string():
    assert error_for_status(400, b'{"detail": "text is required"}').message == "text is required"


def test_429_empty_body_uses_stable_default():
    first = error_for_status(429, b"")
    second = error_for_status(429, None)

    assert isinstance(first, RateLimitError)
    assert first.message == second.message == "Rate limit exceeded"


def test_non_json_body_is_used_verbatim():
    assert extract_error_message("upstream exploded") == "upstream exploded"


def test_long_message_truncated_with_ellipsis():
    body = "x" * 250

    message = extract_error_message(body)

    assert message == "x" * 200 + "..."


def test_long_detail_truncated():
    error = error_for_status(400, {"detail": "y" * 300})

    assert error.message == "y" * 200 + "..."


def test_json_without_known_fields_falls_back_to_default():
    assert error_for_status(404, {"foo": "bar"}).message == "Resource not found"
