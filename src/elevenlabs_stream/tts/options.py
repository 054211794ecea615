"""Connection options, voice settings and streaming URL construction."""

from typing import Any, Literal, Mapping
from urllib.parse import quote, urlencode

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ValidationError

SINGLE_STREAM_PATH = "/v1/text-to-speech/{voice_id}/stream-input"
MULTI_STREAM_PATH = "/v1/text-to-speech/{voice_id}/multi-stream-input"


class StreamOptions(BaseModel):
    """Connection-level options, sent as query parameters.

    Field declaration order is the query-string order. Unset (None) and
    empty-string options are omitted; booleans render as true/false.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    model_id: str | None = None
    language_code: str | None = None  # ISO 639-1
    enable_logging: bool | None = None
    enable_ssml_parsing: bool | None = None
    output_format: str | None = None  # e.g. "mp3_44100_128", "pcm_24000"
    inactivity_timeout: int | None = Field(default=None, ge=1, le=180)  # seconds
    sync_alignment: bool | None = None
    auto_mode: bool | None = None
    apply_text_normalization: Literal["auto", "on", "off"] | None = None
    seed: int | None = Field(default=None, ge=0, le=4294967295)

    def query_params(self) -> list[tuple[str, str]]:
        """Return the options to send, in declaration order."""
        params = []
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is None or value == "":
                continue
            if isinstance(value, bool):
                params.append((name, "true" if value else "false"))
            else:
                params.append((name, str(value)))
        return params


class VoiceSettings(BaseModel):
    """Per-context voice settings override."""

    stability: float | None = Field(default=None, ge=0.0, le=1.0)
    similarity_boost: float | None = Field(default=None, ge=0.0, le=1.0)
    style: float | None = Field(default=None, ge=0.0, le=1.0)
    speed: float | None = Field(default=None, ge=0.7, le=1.2)
    use_speaker_boost: bool | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def voice_settings_payload(
    voice_settings: VoiceSettings | Mapping[str, Any] | None,
) -> dict[str, Any] | None:
    """Normalize voice settings to a plain dict, or None when not given."""
    if voice_settings is None:
        return None
    if isinstance(voice_settings, VoiceSettings):
        return voice_settings.to_payload()
    return dict(voice_settings)


def build_stream_url(
    ws_base_url: str,
    voice_id: str,
    options: StreamOptions | None = None,
    *,
    multi: bool = False,
) -> str:
    """Build the streaming endpoint URL for a voice.

    Args:
        ws_base_url: ws:// or wss:// base URL (see ClientConfig.ws_base_url).
        voice_id: Voice to stream with.
        options: Connection options appended as query parameters.
        multi: Use the multi-context endpoint.

    Raises:
        ValidationError: If voice_id is empty.
    """
    if not voice_id:
        raise ValidationError("voice_id is required")

    template = MULTI_STREAM_PATH if multi else SINGLE_STREAM_PATH
    url = ws_base_url.rstrip("/") + template.format(voice_id=quote(voice_id, safe=""))

    params = options.query_params() if options else []
    if params:
        url += "?" + urlencode(params)
    return url
