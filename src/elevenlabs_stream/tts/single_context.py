"""Single-context text-to-speech streaming (stream-input endpoint)."""

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Callable, Mapping

from ..config import ClientConfig
from ..errors import APIError, ConnectionStateError, ContextStateError, ValidationError
from .connection import Connector, StreamConnection, call_handler
from .options import StreamOptions, VoiceSettings, build_stream_url
from .protocol import (
    INITIAL_TEXT,
    InboundFrame,
    TimedAudio,
    close_connection_frame,
    decode_single_frame,
    encode_frame,
    initialize_frame,
    text_frame,
)
from .registry import SINGLE_CONTEXT, ContextRegistry

logger = logging.getLogger(__name__)

AudioListener = Callable[[InboundFrame], Any]


class StreamState(str, Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    INITIALIZED = "initialized"
    STREAMING = "streaming"
    CLOSED = "closed"


class SingleContextStream:
    """WebSocket client for one implicit context per connection.

    Flow: `connect()` -> `initialize()` -> `send_text()` ... ->
    `close_input()` -> frames until ``isFinal`` -> socket closes.

    Audio frames are delivered to listeners added with `on_audio()` and
    through `iter_frames()` / `iter_audio_with_timing()`.
    """

    def __init__(
        self,
        voice_id: str,
        *,
        config: ClientConfig,
        options: StreamOptions | None = None,
        connector: Connector | None = None,
    ) -> None:
        """Initialize the stream.

        Args:
            voice_id: Voice to synthesize with.
            config: Client configuration (credentials, base URL).
            options: Connection-level options sent as query parameters.
            connector: Socket factory override, mainly for tests.

        Raises:
            ValidationError: If voice_id is empty.
        """
        self.voice_id = voice_id
        self.options = options or StreamOptions()
        self.url = build_stream_url(config.ws_base_url, voice_id, self.options)
        self.registry = ContextRegistry(multi=False)

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

        self._state = StreamState.UNOPENED
        self._audio_listeners: list[AudioListener] = []
        self._frames: asyncio.Queue[InboundFrame | None] = asyncio.Queue()
        self._done = asyncio.Event()
        self._error: Exception | None = None
        self._input_ended = False

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def connection(self) -> StreamConnection:
        return self._connection

    @property
    def error(self) -> Exception | None:
        """First error observed on the connection, if any."""
        return self._error

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        """Register a raw connection listener (open/message/error/close)."""
        self._connection.on(event, handler)

    def on_audio(self, listener: AudioListener) -> None:
        """Call ``listener(frame)`` for every frame that carries audio."""
        self._audio_listeners.append(listener)

    def raise_for_error(self) -> None:
        if self._error is not None:
            raise self._error

    async def connect(self) -> "SingleContextStream":
        """Open the connection and wait until it is usable.

        Raises:
            ElevenLabsError: The mapped handshake failure (e.g. AuthenticationError).
        """
        if self._state != StreamState.UNOPENED:
            raise ConnectionStateError(f"Stream is already {self._state.value}")
        self._connection.open()
        await self._connection.wait_open()
        self._state = StreamState.OPEN
        return self

    async def initialize(
        self,
        text: str = INITIAL_TEXT,
        *,
        voice_settings: VoiceSettings | Mapping[str, Any] | None = None,
        generation_config: Mapping[str, Any] | None = None,
    ) -> None:
        """Send the initialize frame for the implicit context.

        Raises:
            ContextStateError: If the stream was already initialized; a
                single-context stream cannot address a second context.
        """
        frame = initialize_frame(text, voice_settings=voice_settings, generation_config=generation_config)
        if self._state in (StreamState.INITIALIZED, StreamState.STREAMING):
            raise ContextStateError("Single-context stream is already initialized")
        self._require_open()
        self.registry.register(SINGLE_CONTEXT)
        await self._send(frame)
        self._state = StreamState.INITIALIZED

    async def send_text(
        self,
        text: str,
        *,
        try_trigger_generation: bool | None = None,
        voice_settings: VoiceSettings | Mapping[str, Any] | None = None,
        flush: bool | None = None,
    ) -> None:
        """Send a text chunk.

        Raises:
            ValidationError: If text is empty (use close_input() to end input).
            ContextStateError: If the stream is not initialized or input has ended.
        """
        frame = text_frame(
            text,
            try_trigger_generation=try_trigger_generation,
            voice_settings=voice_settings,
            flush=flush,
        )
        if not text:
            raise ValidationError("text must not be empty; call close_input() to end input")
        self._require_initialized()
        await self._send(frame)
        self.registry.mark_streaming(SINGLE_CONTEXT)
        self._state = StreamState.STREAMING

    async def close_input(self) -> None:
        """Signal end of input; the server flushes and then closes the socket."""
        self._require_initialized()
        self._input_ended = True
        await self._send(close_connection_frame())
        self.registry.begin_close(SINGLE_CONTEXT)

    async def iter_frames(self) -> AsyncIterator[InboundFrame]:
        """Iterate over audio-bearing frames until the final frame.

        Raises:
            Exception: The connection error, if the socket failed mid-stream.
        """
        while True:
            frame = await self._frames.get()
            if frame is None:
                self.raise_for_error()
                return
            yield frame
            if frame.is_final:
                return

    async def iter_audio(self) -> AsyncIterator[bytes]:
        """Iterate over received audio bytes (no timing)."""
        async for frame in self.iter_frames():
            if frame.audio:
                yield frame.audio

    async def iter_audio_with_timing(self) -> AsyncIterator[TimedAudio]:
        """Iterate over audio chunks with word timing.

        Requires ``sync_alignment`` or an alignment-producing model; chunks
        without alignment carry an empty word list.
        """
        async for frame in self.iter_frames():
            if frame.audio:
                yield TimedAudio(audio=frame.audio, words=frame.words())

    async def wait_done(self, timeout: float | None = None) -> None:
        """Wait for the final frame or the socket closing, then re-raise any error."""
        await asyncio.wait_for(self._done.wait(), timeout)
        self.raise_for_error()

    async def close(self) -> None:
        """Close WebSocket connection."""
        await self._connection.close()

    async def __aenter__(self) -> "SingleContextStream":
        return await self.connect()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _require_open(self) -> None:
        if not self._connection.is_open:
            raise ConnectionStateError(
                f"Connection is {self._connection.state.value}; await connect() first"
            )

    def _require_initialized(self) -> None:
        if self._input_ended:
            raise ContextStateError("Input already ended. Cannot send more text.")
        if self._state not in (StreamState.INITIALIZED, StreamState.STREAMING):
            raise ContextStateError(f"Stream is {self._state.value}; call initialize() first")
        self._require_open()

    async def _send(self, frame: dict[str, Any]) -> None:
        await self._connection.send(encode_frame(frame))

    async def _handle_message(self, raw: str | bytes) -> None:
        frame = decode_single_frame(raw)

        if frame.error is not None:
            logger.error(f"Server error: {frame.error}")
            self._record_error(APIError(frame.error))
            return

        if frame.is_heartbeat:
            logger.debug("Heartbeat frame")
            return

        if frame.audio:
            for listener in list(self._audio_listeners):
                await call_handler(listener, frame)

        self._frames.put_nowait(frame)

        if frame.is_final:
            self.registry.mark_closed(SINGLE_CONTEXT)
            self._done.set()

    def _handle_error(self, error: Exception) -> None:
        self._record_error(error)

    def _handle_close(self, code: int | None, reason: str) -> None:
        self._state = StreamState.CLOSED
        self.registry.close_all()
        self._frames.put_nowait(None)
        self._done.set()

    def _record_error(self, error: Exception) -> None:
        if self._error is None:
            self._error = error
        self._frames.put_nowait(None)
        self._done.set()
