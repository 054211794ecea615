import asyncio
import base64
import json
from typing import Any, Callable

import pytest

from elevenlabs_stream.config import ClientConfig

_CLOSE = object()


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection.

    `responder(frame, ws)` runs for every sent frame and may push replies.
    """

    def __init__(self, responder: Callable[[dict[str, Any], "FakeWebSocket"], None] | None = None) -> None:
        self.sent: list[str] = []
        self.responder = responder
        self.close_code: int | None = None
        self.close_reason: str = ""
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    @property
    def sent_frames(self) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.sent]

    async def send(self, message: str) -> None:
        self.sent.append(message)
        if self.responder is not None:
            self.responder(json.loads(message), self)

    def push(self, payload: dict[str, Any] | str) -> None:
        self._incoming.put_nowait(payload if isinstance(payload, str) else json.dumps(payload))

    def push_error(self, exc: Exception) -> None:
        self._incoming.put_nowait(exc)

    def finish(self, code: int = 1000, reason: str = "") -> None:
        self.close_code = code
        self.close_reason = reason
        self._incoming.put_nowait(_CLOSE)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.finish()

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item


class FakeConnector:
    """Replaces websockets.connect; records the URL and keyword arguments."""

    def __init__(self, ws: FakeWebSocket | None = None, exc: Exception | None = None) -> None:
        self.ws = ws or FakeWebSocket()
        self.exc = exc
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def __call__(self, url: str, **kwargs: Any) -> FakeWebSocket:
        self.calls.append((url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.ws


def audio_b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(api_key="test-key", base_url="https://api.example.test")


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()
