"""End-to-end single-context streaming from a list of text chunks."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Sequence

from ..config import ClientConfig
from ..errors import ValidationError
from .connection import Connector, call_handler
from .options import StreamOptions, VoiceSettings
from .protocol import InboundFrame
from .single_context import SingleContextStream

logger = logging.getLogger(__name__)

AudioCallback = Callable[[bytes, dict[str, Any] | None], Awaitable[None] | None]


async def stream_text_to_speech(
    voice_id: str,
    text_chunks: Sequence[str],
    on_audio: AudioCallback,
    *,
    config: ClientConfig,
    options: StreamOptions | None = None,
    voice_settings: VoiceSettings | Mapping[str, Any] | None = None,
    generation_config: Mapping[str, Any] | None = None,
    connector: Connector | None = None,
) -> SingleContextStream:
    """Stream text chunks to speech over one single-context connection.

    Opens the connection, sends the initialize frame and one text frame per
    chunk (the last one with ``try_trigger_generation``), and calls
    ``on_audio(audio_bytes, alignment)`` for every audio-bearing frame, where
    ``alignment`` is the raw alignment object of the frame or None.

    The connection is left open: call ``close_input()`` on the returned
    stream for a bounded session, then ``wait_done()`` to wait for the last
    audio and surface late errors, or ``close()`` to drop it.

    Args:
        voice_id: Voice to synthesize with.
        text_chunks: Ordered text chunks.
        on_audio: Sync or async callback for decoded audio.
        config: Client configuration.
        options: Connection-level options.
        voice_settings: Voice settings sent with the initialize frame.
        generation_config: Generation config sent with the initialize frame.
        connector: Socket factory override, mainly for tests.

    Returns:
        The open SingleContextStream.

    Raises:
        ValidationError: Before connecting, for a missing voice_id or no chunks.
        ElevenLabsError: Handshake failure, or any error reported while the
            chunks were being sent; audio already delivered is not rolled back.
    """
    if not voice_id:
        raise ValidationError("voice_id is required")
    if not text_chunks:
        raise ValidationError("text_chunks must contain at least one chunk")
    if any(not isinstance(chunk, str) or not chunk for chunk in text_chunks):
        raise ValidationError("text_chunks must be non-empty strings")

    stream = SingleContextStream(voice_id, config=config, options=options, connector=connector)

    async def deliver(frame: InboundFrame) -> None:
        await call_handler(on_audio, frame.audio, frame.raw.get("alignment"))

    stream.on_audio(deliver)

    await stream.connect()
    try:
        await stream.initialize(voice_settings=voice_settings, generation_config=generation_config)
        last = len(text_chunks) - 1
        for index, chunk in enumerate(text_chunks):
            # Let the receive loop deliver anything that arrived since the last send
            await asyncio.sleep(0)
            stream.raise_for_error()
            await stream.send_text(chunk, try_trigger_generation=index == last)
        await asyncio.sleep(0)
        stream.raise_for_error()
    except Exception:
        await stream.close()
        raise

    logger.debug(f"Sent {len(text_chunks)} chunks to voice {voice_id}")
    return stream
