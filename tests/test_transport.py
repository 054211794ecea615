# pylint: disable=missing-module-docstring,missing-function-docstring

import httpx
import pytest

from elevenlabs_stream.errors import APIError, NotFoundError, RequestTimeoutError, UnprocessableEntityError
from elevenlabs_stream.transport import HTTPTransport


def make_transport(config, handler) -> HTTPTransport:
    return HTTPTransport(config, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_json_response_parsed_and_auth_header_sent(config):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["key"] = request.headers["xi-api-key"]
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"voices": []})

    async with make_transport(config, handler) as transport:
        body = await transport.get("/v1/voices", params={"page_size": 10, "search": None})

    assert body == {"voices": []}
    assert seen["key"] == "test-key"
    assert seen["url"] == "https://api.example.test/v1/voices?page_size=10"


@pytest.mark.asyncio
async def test_binary_response_returned_as_bytes(config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"ID3audio", headers={"content-type": "audio/mpeg"})

    async with make_transport(config, handler) as transport:
        body = await transport.post("/v1/text-to-speech/v", json={"text": "hi"})

    assert body == b"ID3audio"


@pytest.mark.asyncio
async def test_error_status_mapped(config):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("missing"):
            return httpx.Response(404, json={"detail": {"message": "Voice not found"}})
        return httpx.Response(422, json={"detail": [{"msg": "File size must be less than 1GB"}]})

    async with make_transport(config, handler) as transport:
        with pytest.raises(NotFoundError, match="Voice not found"):
            await transport.get("/v1/voices/missing")
        with pytest.raises(UnprocessableEntityError) as exc:
            await transport.post("/v1/dubbing")

    assert exc.value.message == "File size must be less than 1GB"
    assert exc.value.status_code == 422


@pytest.mark.asyncio
async def test_transport_failures_wrapped(config):
    def timeout_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    def broken_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with make_transport(config, timeout_handler) as transport:
        with pytest.raises(RequestTimeoutError):
            await transport.get("/v1/models")

    async with make_transport(config, broken_handler) as transport:
        with pytest.raises(APIError):
            await transport.delete("/v1/history/1")
