"""Frame codec for the stream-input and multi-stream-input WebSocket protocols.

Outbound frames are flat dicts. Optional fields are only present when the
caller set them, since the server reacts to field presence rather than
value. Inbound frames decode into `InboundFrame`; the single- and
multi-context protocols use different keys for the final flag, so each has
its own decoder.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from itertools import groupby
from typing import Any, Mapping

from ..errors import ProtocolError, ValidationError
from .options import VoiceSettings, voice_settings_payload

INITIAL_TEXT = " "


# -----------------------------------------------------------------------------
# Inbound frames
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class WordTiming:
    """A spoken word and the span of audio it covers, in seconds."""

    text: str
    start: float
    end: float


@dataclass(frozen=True)
class Alignment:
    """Character-level timing, normalized to seconds."""

    characters: list[str]
    start_times: list[float]
    end_times: list[float]

    def to_words(self) -> list[WordTiming]:
        """Fold runs of non-whitespace characters into words."""
        words = []
        positions = range(len(self.characters))
        for blank, run in groupby(positions, key=lambda i: self.characters[i].isspace()):
            if blank:
                continue
            run = list(run)
            words.append(WordTiming(
                text="".join(self.characters[i] for i in run),
                start=self.start_times[run[0]],
                end=self.end_times[run[-1]],
            ))
        return words


@dataclass(frozen=True)
class InboundFrame:
    """One decoded server-to-client message."""

    audio: bytes | None = None
    is_final: bool = False
    alignment: Alignment | None = None
    normalized_alignment: Alignment | None = None
    context_id: str | None = None
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_heartbeat(self) -> bool:
        """Frame carries neither audio, a final flag nor an error."""
        return not self.audio and not self.is_final and self.error is None

    def words(self) -> list[WordTiming]:
        """Word timing from the alignment, falling back to the normalized alignment."""
        alignment = self.alignment or self.normalized_alignment
        return alignment.to_words() if alignment else []


@dataclass(frozen=True)
class TimedAudio:
    """Decoded audio of one frame with the words it speaks."""

    audio: bytes
    words: list[WordTiming]


def decode_alignment(data: Mapping[str, Any] | None) -> Alignment | None:
    """Decode an alignment object in either the ms or the seconds schema.

    The streaming protocols send ``chars``/``charStartTimesMs``/
    ``charsDurationsMs``; the REST timestamp endpoints send ``characters``/
    ``character_start_times_seconds``/``character_end_times_seconds``.

    Raises:
        ProtocolError: If the schema is unknown or the arrays differ in length.
    """
    if not data:
        return None

    if "chars" in data:
        characters = list(data.get("chars") or [])
        starts_ms = data.get("charStartTimesMs") or []
        durations_ms = data.get("charsDurationsMs", data.get("charDurationsMs")) or []
        if not len(characters) == len(starts_ms) == len(durations_ms):
            raise ProtocolError(
                f"Alignment arrays differ in length: {len(characters)} chars, "
                f"{len(starts_ms)} starts, {len(durations_ms)} durations"
            )
        start_times = [start / 1000 for start in starts_ms]
        end_times = [(start + duration) / 1000 for start, duration in zip(starts_ms, durations_ms)]
    elif "characters" in data:
        characters = list(data.get("characters") or [])
        start_times = [float(t) for t in data.get("character_start_times_seconds") or []]
        end_times = [float(t) for t in data.get("character_end_times_seconds") or []]
        if not len(characters) == len(start_times) == len(end_times):
            raise ProtocolError(
                f"Alignment arrays differ in length: {len(characters)} chars, "
                f"{len(start_times)} starts, {len(end_times)} ends"
            )
    else:
        raise ProtocolError(f"Unrecognized alignment keys: {sorted(data)}")

    return Alignment(characters=characters, start_times=start_times, end_times=end_times)


def _load(raw: str | bytes) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Inbound frame is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProtocolError(f"Inbound frame is not an object: {type(data).__name__}")
    return data


def _decode(data: dict[str, Any], *, final_key: str, context_id: str | None) -> InboundFrame:
    audio = None
    audio_b64 = data.get("audio")
    if audio_b64:
        try:
            audio = base64.b64decode(audio_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProtocolError(f"Invalid base64 audio payload: {e}") from e

    error = None
    if data.get("error"):
        error = str(data.get("message") or data["error"])

    return InboundFrame(
        audio=audio,
        is_final=data.get(final_key) is True,
        alignment=decode_alignment(data.get("alignment")),
        normalized_alignment=decode_alignment(data.get("normalizedAlignment")),
        context_id=context_id,
        error=error,
        raw=data,
    )


def decode_single_frame(raw: str | bytes) -> InboundFrame:
    """Decode a stream-input frame (final flag under ``isFinal``)."""
    data = _load(raw)
    return _decode(data, final_key="isFinal", context_id=None)


def decode_multi_frame(raw: str | bytes) -> InboundFrame:
    """Decode a multi-stream-input frame (``is_final``, ``contextId``)."""
    data = _load(raw)
    context_id = data.get("contextId")
    return _decode(data, final_key="is_final", context_id=str(context_id) if context_id else None)


# -----------------------------------------------------------------------------
# Outbound frames
# -----------------------------------------------------------------------------


def _require_context_id(context_id: str) -> None:
    if not isinstance(context_id, str) or not context_id:
        raise ValidationError("context_id is required")


def _require_text(text: str) -> None:
    if not isinstance(text, str):
        raise ValidationError(f"text must be a string, got {type(text).__name__}")


def _put_optional(frame: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        frame[key] = value


def initialize_frame(
    text: str = INITIAL_TEXT,
    *,
    voice_settings: VoiceSettings | Mapping[str, Any] | None = None,
    generation_config: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """First frame on a single-context connection."""
    _require_text(text)
    frame: dict[str, Any] = {"text": text}
    _put_optional(frame, "voice_settings", voice_settings_payload(voice_settings))
    _put_optional(frame, "generation_config", dict(generation_config) if generation_config else None)
    return frame


def initialize_multi_frame(
    context_id: str,
    text: str = INITIAL_TEXT,
    *,
    voice_settings: VoiceSettings | Mapping[str, Any] | None = None,
    generation_config: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Frame that opens a context on a multi-context connection."""
    _require_context_id(context_id)
    frame = initialize_frame(text, voice_settings=voice_settings, generation_config=generation_config)
    frame["context_id"] = context_id
    return frame


def initialize_context_frame(
    context_id: str,
    *,
    voice_settings: VoiceSettings | Mapping[str, Any] | None = None,
    model_id: str | None = None,
    language_code: str | None = None,
) -> dict[str, Any]:
    """Open a context without sending any text."""
    _require_context_id(context_id)
    frame: dict[str, Any] = {"context_id": context_id}
    _put_optional(frame, "voice_settings", voice_settings_payload(voice_settings))
    _put_optional(frame, "model_id", model_id or None)
    _put_optional(frame, "language_code", language_code or None)
    return frame


def text_frame(
    text: str,
    *,
    try_trigger_generation: bool | None = None,
    voice_settings: VoiceSettings | Mapping[str, Any] | None = None,
    flush: bool | None = None,
) -> dict[str, Any]:
    """Text chunk for a single-context connection."""
    _require_text(text)
    frame: dict[str, Any] = {"text": text}
    _put_optional(frame, "try_trigger_generation", try_trigger_generation)
    _put_optional(frame, "voice_settings", voice_settings_payload(voice_settings))
    _put_optional(frame, "flush", flush)
    return frame


def text_multi_frame(text: str, context_id: str, *, flush: bool | None = None) -> dict[str, Any]:
    """Text chunk addressed to one context."""
    _require_text(text)
    _require_context_id(context_id)
    frame: dict[str, Any] = {"text": text, "context_id": context_id}
    _put_optional(frame, "flush", flush)
    return frame


def flush_context_frame(context_id: str) -> dict[str, Any]:
    _require_context_id(context_id)
    return {"context_id": context_id, "flush": True}


def close_context_frame(context_id: str) -> dict[str, Any]:
    _require_context_id(context_id)
    return {"context_id": context_id, "close_context": True}


def keep_context_alive_frame(context_id: str) -> dict[str, Any]:
    _require_context_id(context_id)
    return {"context_id": context_id, "keep_context_alive": True}


def close_connection_frame() -> dict[str, Any]:
    """End of input on a single-context connection."""
    return {"text": ""}


def close_socket_frame() -> dict[str, Any]:
    """Close every context and the socket on a multi-context connection."""
    return {"close_socket": True}


def encode_frame(frame: Mapping[str, Any]) -> str:
    return json.dumps(frame)
