"""Multi-context text-to-speech streaming over one WebSocket."""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Mapping

from ..config import ClientConfig
from ..errors import APIError, ConnectionStateError, ContextStateError
from .connection import Connector, StreamConnection, call_handler
from .options import StreamOptions, VoiceSettings, build_stream_url
from .protocol import (
    INITIAL_TEXT,
    InboundFrame,
    close_context_frame,
    close_socket_frame,
    decode_multi_frame,
    encode_frame,
    flush_context_frame,
    initialize_context_frame,
    initialize_multi_frame,
    keep_context_alive_frame,
    text_multi_frame,
)
from .registry import ContextRegistry, ContextState

logger = logging.getLogger(__name__)

FrameListener = Callable[[str | None, InboundFrame], Any]


class MultiContextSession:
    """Several independently generating contexts on one connection.

    Each context is opened with `initialize_context()` (or
    `create_context()`), fed with `send_text()`, and retired with
    `close_context()`. Inbound frames are demultiplexed by context id to
    listeners added with `add_listener()` and to the per-context iterators
    returned by `iter_context()`.

    Frames that arrive for a context after its close frame was sent are still
    delivered. Nothing is dropped after `close_socket()` either; delivery
    stops only when the socket closes.

    A server error frame naming a context ends only that context's iterator
    (see `context_error()`). Errors without a context id, and transport
    failures, end every iterator.
    """

    def __init__(
        self,
        voice_id: str,
        *,
        config: ClientConfig,
        options: StreamOptions | None = None,
        connector: Connector | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            voice_id: Voice used by every context on this connection.
            config: Client configuration (credentials, base URL).
            options: Connection-level options sent as query parameters.
            connector: Socket factory override, mainly for tests.

        Raises:
            ValidationError: If voice_id is empty.
        """
        self.voice_id = voice_id
        self.options = options or StreamOptions()
        self.url = build_stream_url(config.ws_base_url, voice_id, self.options, multi=True)
        self.registry = ContextRegistry(multi=True)

        self._connection = StreamConnection(
            self.url,
            config.auth_headers,
            connector=connector,
            open_timeout=config.open_timeout,
            ping_interval=config.ping_interval,
            user_agent=config.user_agent,
        )
        self._connection.on("message", self._handle_message)
        self._connection.on("error", self._handle_error)
        self._connection.on("close", self._handle_close)

        self._listeners: list[FrameListener] = []
        self._queues: dict[str, asyncio.Queue[InboundFrame | None]] = {}
        self._error: Exception | None = None
        self._context_errors: dict[str, Exception] = {}
        self._ended: set[str] = set()
        self._finished: set[str] = set()
        self._socket_closing = False

    @property
    def connection(self) -> StreamConnection:
        return self._connection

    @property
    def error(self) -> Exception | None:
        """First error observed on the connection, if any."""
        return self._error

    def context_error(self, context_id: str) -> Exception | None:
        """Server error reported for one context, if any."""
        return self._context_errors.get(context_id)

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        """Register a raw connection listener (open/message/error/close)."""
        self._connection.on(event, handler)

    def add_listener(self, listener: FrameListener) -> None:
        """Receive every non-heartbeat frame as ``listener(context_id, frame)``."""
        self._listeners.append(listener)

    def open(self) -> "MultiContextSession":
        """Start the handshake without waiting for it."""
        self._connection.open()
        return self

    async def connect(self) -> "MultiContextSession":
        """Open the connection and wait until it is usable."""
        self.open()
        await self._connection.wait_open()
        return self

    async def initialize_context(
        self,
        context_id: str,
        text: str = INITIAL_TEXT,
        *,
        voice_settings: VoiceSettings | Mapping[str, Any] | None = None,
        generation_config: Mapping[str, Any] | None = None,
    ) -> None:
        """Open a context, sending initial text (a single space by default)."""
        frame = initialize_multi_frame(
            context_id, text, voice_settings=voice_settings, generation_config=generation_config
        )
        await self._open_context(context_id, frame)

    async def create_context(
        self,
        context_id: str,
        *,
        voice_settings: VoiceSettings | Mapping[str, Any] | None = None,
        model_id: str | None = None,
        language_code: str | None = None,
    ) -> None:
        """Open a context without sending any text."""
        frame = initialize_context_frame(
            context_id, voice_settings=voice_settings, model_id=model_id, language_code=language_code
        )
        await self._open_context(context_id, frame)

    async def send_text(self, context_id: str, text: str, *, flush: bool | None = None) -> None:
        """Send a text chunk to a live context.

        Raises:
            ContextStateError: If the context was never initialized or is closing.
        """
        frame = text_multi_frame(text, context_id, flush=flush)
        self._require_sendable()
        self.registry.require_live(context_id)
        await self._send(frame)
        if flush:
            self.registry.mark_flushed(context_id)
        else:
            self.registry.mark_streaming(context_id)

    async def flush_context(self, context_id: str) -> None:
        """Ask the server to generate audio for everything buffered so far."""
        frame = flush_context_frame(context_id)
        self._require_sendable()
        self.registry.require_live(context_id)
        await self._send(frame)
        self.registry.mark_flushed(context_id)

    async def keep_context_alive(self, context_id: str) -> None:
        """Reset the server-side inactivity timer of a context."""
        frame = keep_context_alive_frame(context_id)
        self._require_sendable()
        self.registry.require_live(context_id)
        await self._send(frame)

    async def close_context(self, context_id: str) -> None:
        """Close one context; other contexts are unaffected."""
        frame = close_context_frame(context_id)
        self._require_sendable()
        self.registry.require_live(context_id)
        self.registry.begin_close(context_id)
        await self._send(frame)
        logger.info(f"Closing context {context_id!r}")

    async def close_socket(self) -> None:
        """Ask the server to close every context and then the socket."""
        self._require_sendable()
        await self._send(close_socket_frame())
        self._socket_closing = True
        for context_id in self.registry.live_contexts():
            self.registry.begin_close(context_id)
        logger.info("Close-socket requested")

    async def iter_context(self, context_id: str) -> AsyncIterator[InboundFrame]:
        """Iterate over the frames of one context until its final frame.

        Once the final frame has been consumed the context's queue is
        released; iterating it again yields nothing.

        Raises:
            ContextStateError: If the context was never initialized here.
            APIError: The server error reported for this context.
            Exception: The connection error, if the socket failed mid-stream.
        """
        queue = self._queues.get(context_id)
        if queue is None:
            if self.registry.state(context_id) is None:
                raise ContextStateError(f"Context {context_id!r} has not been initialized")
            self._raise_for_context(context_id)
            return

        while True:
            frame = await queue.get()
            if frame is None:
                self._queues.pop(context_id, None)
                self._raise_for_context(context_id)
                return
            yield frame
            if frame.is_final:
                self._queues.pop(context_id, None)
                return

    async def close(self) -> None:
        """Close the socket without waiting for the server."""
        await self._connection.close()

    async def wait_closed(self) -> None:
        await self._connection.wait_closed()

    async def __aenter__(self) -> "MultiContextSession":
        return await self.connect()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _open_context(self, context_id: str, frame: dict[str, Any]) -> None:
        self._require_sendable()
        self.registry.register(context_id)
        self._queues[context_id] = asyncio.Queue()
        await self._send(frame)
        logger.info(f"Context {context_id!r} initialized")

    async def _send(self, frame: dict[str, Any]) -> None:
        await self._connection.send(encode_frame(frame))

    def _require_sendable(self) -> None:
        if self._socket_closing:
            raise ConnectionStateError("Close-socket already sent on this connection")
        if not self._connection.is_open:
            raise ConnectionStateError(
                f"Connection is {self._connection.state.value}; await connect() first"
            )

    async def _handle_message(self, raw: str | bytes) -> None:
        frame = decode_multi_frame(raw)

        if frame.error is not None:
            await self._handle_error_frame(frame)
            return

        if frame.is_heartbeat:
            logger.debug(f"Heartbeat frame for context {frame.context_id!r}")
            return

        context_id = self.registry.route(frame)
        state = self.registry.state(context_id) if context_id else None
        if state is None:
            logger.warning(f"Frame for unknown context {context_id!r}")
        elif state == ContextState.CLOSED:
            logger.debug(f"Late frame for closed context {context_id!r}")

        for listener in list(self._listeners):
            await call_handler(listener, context_id, frame)

        if context_id and context_id not in self._ended:
            queue = self._queues.get(context_id)
            if queue is not None:
                queue.put_nowait(frame)
                if frame.is_final:
                    self._ended.add(context_id)
                    self._finished.add(context_id)
        elif context_id:
            logger.debug(f"Frame for context {context_id!r} after its iterator ended")

        if frame.is_final and state == ContextState.CLOSING:
            self.registry.mark_closed(context_id)

    async def _handle_error_frame(self, frame: InboundFrame) -> None:
        context_id = frame.context_id
        if not context_id or self.registry.state(context_id) is None:
            logger.error(f"Server error on connection: {frame.error}")
            self._record_error(APIError(frame.error))
            return

        # Scoped to one context; the others keep streaming
        logger.error(f"Server error on context {context_id!r}: {frame.error}")
        self._context_errors.setdefault(context_id, APIError(frame.error))
        for listener in list(self._listeners):
            await call_handler(listener, context_id, frame)
        self.registry.mark_closed(context_id)
        self._end_queue(context_id)

    def _handle_error(self, error: Exception) -> None:
        self._record_error(error)

    def _handle_close(self, code: int | None, reason: str) -> None:
        self.registry.close_all()
        for context_id in list(self._queues):
            self._end_queue(context_id)

    def _record_error(self, error: Exception) -> None:
        if self._error is None:
            self._error = error
        for context_id in list(self._queues):
            self._end_queue(context_id)

    def _end_queue(self, context_id: str) -> None:
        queue = self._queues.get(context_id)
        if queue is None or context_id in self._ended:
            return
        self._ended.add(context_id)
        queue.put_nowait(None)

    def _raise_for_context(self, context_id: str) -> None:
        if context_id in self._finished:
            return
        error = self._context_errors.get(context_id) or self._error
        if error is not None:
            raise error
