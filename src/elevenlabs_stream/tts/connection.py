"""Duplex WebSocket connection with listener-based event dispatch."""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus, InvalidURI

from ..errors import APIError, ConnectionStateError, ElevenLabsError, error_for_status

logger = logging.getLogger(__name__)

EVENTS = ("open", "message", "error", "close")

Handler = Callable[..., Any]
Connector = Callable[..., Awaitable[Any]]


async def call_handler(handler: Handler, *args: Any) -> None:
    """Call a listener, awaiting it when it is a coroutine function."""
    result = handler(*args)
    if inspect.isawaitable(result):
        await result


class ConnectionState(str, Enum):
    PENDING = "pending"
    OPEN = "open"
    CLOSED = "closed"


class StreamConnection:
    """One WebSocket to a streaming endpoint.

    `open()` only schedules the handshake and returns at once. Outcomes are
    reported to listeners registered with `on()`:

    - ``open()``: handshake completed
    - ``message(raw)``: one call per inbound frame, in arrival order
    - ``error(exc)``: handshake failure (mapped to a typed error), receive
      failure, or an exception raised by a message listener
    - ``close(code, reason)``: socket gone, after any error

    Listeners may be plain functions or coroutine functions. Registration may
    happen before or after `open()`; nothing is dispatched until the event
    loop runs the connection task.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str],
        *,
        connector: Connector | None = None,
        open_timeout: float = 10.0,
        ping_interval: float | None = 20.0,
        user_agent: str | None = None,
    ) -> None:
        """Initialize the connection.

        Args:
            url: Full ws:// or wss:// URL including query parameters.
            headers: Handshake headers (carries the API key).
            connector: Coroutine that opens the socket; defaults to websockets.connect.
            open_timeout: Handshake timeout in seconds.
            ping_interval: Keepalive ping interval in seconds, None to disable.
            user_agent: User-Agent header for the handshake.
        """
        self.url = url
        self._headers = headers
        self._connector = connector or websockets.connect
        self._open_timeout = open_timeout
        self._ping_interval = ping_interval
        self._user_agent = user_agent

        self._ws = None
        self._task: asyncio.Task[None] | None = None
        self._closing: asyncio.Future[None] | None = None
        self._state = ConnectionState.PENDING
        self._handlers: dict[str, list[Handler]] = {event: [] for event in EVENTS}
        self._opened = asyncio.Event()
        self._closed = asyncio.Event()
        self._open_error: ElevenLabsError | None = None
        self.close_code: int | None = None
        self.close_reason: str = ""

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    def on(self, event: str, handler: Handler) -> None:
        """Register a listener for one of open/message/error/close."""
        if event not in self._handlers:
            raise ValueError(f"Unknown event {event!r}; expected one of {EVENTS}")
        self._handlers[event].append(handler)

    def open(self) -> "StreamConnection":
        """Schedule the handshake and return immediately.

        Must be called from a running event loop.
        """
        if self._task is not None:
            raise ConnectionStateError("Connection already opened")
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    async def wait_open(self) -> None:
        """Wait for the handshake to finish.

        Raises:
            ElevenLabsError: The mapped handshake failure.
            ConnectionStateError: If the socket closed before opening.
        """
        if self._task is None:
            raise ConnectionStateError("Connection was never opened")
        opened = asyncio.ensure_future(self._opened.wait())
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({opened, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            opened.cancel()
            closed.cancel()
        if self._open_error is not None:
            raise self._open_error
        if not self._opened.is_set():
            raise ConnectionStateError("Connection closed before the handshake completed")

    async def send(self, raw: str) -> None:
        """Transmit one serialized frame. No queuing and no acknowledgement."""
        if self._state != ConnectionState.OPEN or self._ws is None:
            raise ConnectionStateError(f"Cannot send on a {self._state.value} connection")
        logger.debug(f"-> {raw[:200]}")
        try:
            await self._ws.send(raw)
        except ConnectionClosed as e:
            raise ConnectionStateError(f"Connection closed while sending: {e}") from e

    async def close(self) -> None:
        """Start a graceful close; returns without waiting for the close handshake."""
        if self._ws is not None and self._state == ConnectionState.OPEN:
            if self._closing is None:
                self._closing = asyncio.ensure_future(self._ws.close())
                self._closing.add_done_callback(self._close_done)
        elif self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def _close_done(self, future: asyncio.Future[None]) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning(f"WebSocket close handshake failed: {error}")

    async def _run(self) -> None:
        try:
            self._ws = await self._connector(
                self.url,
                additional_headers=self._headers,
                user_agent_header=self._user_agent,
                open_timeout=self._open_timeout,
                ping_interval=self._ping_interval,
                close_timeout=5,
            )
        except InvalidStatus as e:
            response = e.response
            error = error_for_status(response.status_code, response.body)
            logger.error(f"WebSocket handshake rejected ({response.status_code}): {error.message}")
            await self._fail_open(error)
            return
        except (InvalidHandshake, InvalidURI, OSError, asyncio.TimeoutError) as e:
            logger.error(f"WebSocket connection failed: {e}")
            await self._fail_open(APIError(f"WebSocket connection failed: {e}"))
            return
        except asyncio.CancelledError:
            await self._finish(None, "cancelled")
            raise

        self._state = ConnectionState.OPEN
        self._opened.set()
        logger.info(f"WebSocket connected: {self.url.split('?')[0]}")
        await self._emit("open")

        try:
            async for message in self._ws:
                await self._dispatch_message(message)
        except ConnectionClosed as e:
            await self._emit("error", APIError(f"WebSocket closed unexpectedly: {e}"))
        finally:
            await self._finish(
                getattr(self._ws, "close_code", None),
                getattr(self._ws, "close_reason", None) or "",
            )

    async def _dispatch_message(self, message: str | bytes) -> None:
        for handler in list(self._handlers["message"]):
            try:
                await call_handler(handler, message)
            except Exception as e:
                logger.exception(f"Message listener failed: {e}")
                await self._emit("error", e)

    async def _fail_open(self, error: ElevenLabsError) -> None:
        self._open_error = error
        await self._emit("error", error)
        await self._finish(None, error.message)

    async def _finish(self, code: int | None, reason: str) -> None:
        if self._state == ConnectionState.CLOSED:
            return
        self._state = ConnectionState.CLOSED
        self.close_code = code
        self.close_reason = reason
        self._closed.set()
        logger.info(f"WebSocket closed (code={code}, reason={reason!r})")
        await self._emit("close", code, reason)

    async def _emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers[event]):
            await call_handler(handler, *args)
