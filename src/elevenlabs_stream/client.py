"""Top-level client binding a configuration to the REST and streaming APIs."""

from typing import Any, Mapping, Sequence

from .config import ClientConfig, get_default_config
from .transport import HTTPTransport
from .tts.connection import Connector
from .tts.multi_context import MultiContextSession
from .tts.options import StreamOptions, VoiceSettings
from .tts.orchestrator import AudioCallback, stream_text_to_speech
from .tts.single_context import SingleContextStream


class WebSocketTextToSpeech:
    """Factory for streaming sessions that share one configuration."""

    def __init__(self, config: ClientConfig, connector: Connector | None = None) -> None:
        self.config = config
        self._connector = connector

    async def connect_stream_input(
        self,
        voice_id: str,
        options: StreamOptions | None = None,
    ) -> SingleContextStream:
        """Open a single-context stream and wait for the handshake."""
        stream = SingleContextStream(
            voice_id, config=self.config, options=options, connector=self._connector
        )
        return await stream.connect()

    async def connect_multi_stream_input(
        self,
        voice_id: str,
        options: StreamOptions | None = None,
    ) -> MultiContextSession:
        """Open a multi-context session and wait for the handshake."""
        session = MultiContextSession(
            voice_id, config=self.config, options=options, connector=self._connector
        )
        return await session.connect()

    connect_single_stream = connect_stream_input
    connect_multi_context = connect_multi_stream_input

    async def stream_text_to_speech(
        self,
        voice_id: str,
        text_chunks: Sequence[str],
        on_audio: AudioCallback,
        *,
        options: StreamOptions | None = None,
        voice_settings: VoiceSettings | Mapping[str, Any] | None = None,
        generation_config: Mapping[str, Any] | None = None,
    ) -> SingleContextStream:
        """See elevenlabs_stream.tts.orchestrator.stream_text_to_speech."""
        return await stream_text_to_speech(
            voice_id,
            text_chunks,
            on_audio,
            config=self.config,
            options=options,
            voice_settings=voice_settings,
            generation_config=generation_config,
            connector=self._connector,
        )


class ElevenLabsClient:
    """Entry point: `client.http` for REST calls, `client.text_to_speech_ws` for streaming.

    Without an explicit config the process-wide default is used (see
    elevenlabs_stream.config.configure).
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        connector: Connector | None = None,
        http_transport: Any = None,
    ) -> None:
        self.config = config or get_default_config()
        self.http = HTTPTransport(self.config, transport=http_transport)
        self.text_to_speech_ws = WebSocketTextToSpeech(self.config, connector=connector)

    async def close(self) -> None:
        await self.http.close()

    async def __aenter__(self) -> "ElevenLabsClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
