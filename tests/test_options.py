# pylint: disable=missing-module-docstring,missing-function-docstring

from urllib.parse import parse_qsl, urlsplit

import pydantic
import pytest

from elevenlabs_stream.errors import ValidationError
from elevenlabs_stream.tts.options import StreamOptions, VoiceSettings, build_stream_url, voice_settings_payload

BASE = "wss://api.elevenlabs.io"


def test_single_and_multi_paths():
    assert build_stream_url(BASE, "voice1") == "wss://api.elevenlabs.io/v1/text-to-speech/voice1/stream-input"
    assert (
        build_stream_url(BASE, "voice1", multi=True)
        == "wss://api.elevenlabs.io/v1/text-to-speech/voice1/multi-stream-input"
    )


def test_query_contains_only_set_options_in_declared_order():
    options = StreamOptions(
        seed=42,
        sync_alignment=True,
        model_id="eleven_flash_v2_5",
        output_format="pcm_24000",
        enable_logging=False,
        language_code="",
    )

    query = urlsplit(build_stream_url(BASE, "v", options)).query

    assert parse_qsl(query) == [
        ("model_id", "eleven_flash_v2_5"),
        ("enable_logging", "false"),
        ("output_format", "pcm_24000"),
        ("sync_alignment", "true"),
        ("seed", "42"),
    ]


def test_all_options_rendered():
    options = StreamOptions(
        model_id="m",
        language_code="en",
        enable_logging=True,
        enable_ssml_parsing=False,
        output_format="mp3_44100_128",
        inactivity_timeout=60,
        sync_alignment=False,
        auto_mode=True,
        apply_text_normalization="off",
        seed=0,
    )

    keys = [key for key, _ in options.query_params()]

    assert keys == [
        "model_id",
        "language_code",
        "enable_logging",
        "enable_ssml_parsing",
        "output_format",
        "inactivity_timeout",
        "sync_alignment",
        "auto_mode",
        "apply_text_normalization",
        "seed",
    ]
    assert dict(options.query_params())["seed"] == "0"


def test_no_options_means_no_query_string():
    assert "?" not in build_stream_url(BASE, "v", StreamOptions())


def test_unknown_option_rejected():
    with pytest.raises(pydantic.ValidationError):
        StreamOptions(optimize_streaming_latency=3)


def test_inactivity_timeout_bounds():
    with pytest.raises(pydantic.ValidationError):
        StreamOptions(inactivity_timeout=181)


def test_voice_id_required():
    with pytest.raises(ValidationError):
        build_stream_url(BASE, "")


def test_voice_id_is_path_escaped():
    assert "/text-to-speech/a%2Fb/" in build_stream_url(BASE, "a/b")


def test_voice_settings_payload_drops_unset_fields():
    assert voice_settings_payload(VoiceSettings(stability=0.4)) == {"stability": 0.4}
    assert voice_settings_payload({"speed": 1.1}) == {"speed": 1.1}
    assert voice_settings_payload(None) is None
