# pylint: disable=missing-module-docstring,missing-function-docstring

import json

import pytest

from conftest import audio_b64
from elevenlabs_stream.errors import ProtocolError, ValidationError
from elevenlabs_stream.tts import protocol
from elevenlabs_stream.tts.options import VoiceSettings


# ---------------------------------------------------------------------
# Outbound frames
# ---------------------------------------------------------------------

def test_text_multi_frame_round_trip_has_no_extra_keys():
    raw = protocol.encode_frame(protocol.text_multi_frame("hello", "c1", flush=True))

    assert json.loads(raw) == {"text": "hello", "context_id": "c1", "flush": True}


def test_optional_fields_omitted_when_unset():
    assert protocol.text_multi_frame("hi", "c1") == {"text": "hi", "context_id": "c1"}
    assert protocol.text_frame("hi") == {"text": "hi"}
    assert protocol.initialize_frame() == {"text": " "}
    assert protocol.initialize_context_frame("c1") == {"context_id": "c1"}


def test_initialize_frames():
    frame = protocol.initialize_multi_frame(
        "narrator",
        voice_settings=VoiceSettings(stability=0.5, similarity_boost=0.8),
        generation_config={"chunk_length_schedule": [120, 160]},
    )

    assert frame == {
        "text": " ",
        "voice_settings": {"stability": 0.5, "similarity_boost": 0.8},
        "generation_config": {"chunk_length_schedule": [120, 160]},
        "context_id": "narrator",
    }


def test_initialize_context_frame_optional_fields():
    frame = protocol.initialize_context_frame(
        "c2", voice_settings={"speed": 1.1}, model_id="eleven_flash_v2_5", language_code="de"
    )

    assert frame == {
        "context_id": "c2",
        "voice_settings": {"speed": 1.1},
        "model_id": "eleven_flash_v2_5",
        "language_code": "de",
    }


def test_single_text_frame_flags():
    frame = protocol.text_frame("Hello ", try_trigger_generation=False, flush=True)

    assert frame == {"text": "Hello ", "try_trigger_generation": False, "flush": True}


def test_control_frames():
    assert protocol.flush_context_frame("c1") == {"context_id": "c1", "flush": True}
    assert protocol.close_context_frame("c1") == {"context_id": "c1", "close_context": True}
    assert protocol.keep_context_alive_frame("c1") == {"context_id": "c1", "keep_context_alive": True}
    assert protocol.close_connection_frame() == {"text": ""}
    assert protocol.close_socket_frame() == {"close_socket": True}


def test_context_id_required():
    with pytest.raises(ValidationError):
        protocol.text_multi_frame("hi", "")
    with pytest.raises(ValidationError):
        protocol.close_context_frame(None)


# ---------------------------------------------------------------------
# Inbound frames
# ---------------------------------------------------------------------

def test_decode_single_frame_with_ms_alignment():
    raw = json.dumps({
        "audio": audio_b64(b"\x01\x02"),
        "isFinal": None,
        "alignment": {
            "chars": ["H", "i"],
            "charStartTimesMs": [0, 100],
            "charsDurationsMs": [100, 50],
        },
    })

    frame = protocol.decode_single_frame(raw)

    assert frame.audio == b"\x01\x02"
    assert frame.is_final is False
    assert frame.alignment.characters == ["H", "i"]
    assert frame.alignment.start_times == [0.0, 0.1]
    assert frame.alignment.end_times == [0.1, 0.15]
    assert frame.context_id is None


def test_decode_seconds_alignment_preserves_lengths_and_order():
    data = {
        "characters": ["a", "b", "c"],
        "character_start_times_seconds": [0.0, 0.1, 0.2],
        "character_end_times_seconds": [0.1, 0.2, 0.3],
    }

    frame = protocol.decode_multi_frame(json.dumps({"audio": audio_b64(b"x"), "alignment": data}))
    alignment = frame.alignment

    assert len(alignment.start_times) == len(alignment.end_times) == len(alignment.characters) == 3
    assert all(start < end for start, end in zip(alignment.start_times, alignment.end_times))


def test_final_flag_keys_differ_between_protocols():
    single_style = json.dumps({"isFinal": True})
    multi_style = json.dumps({"is_final": True, "contextId": "c1"})

    assert protocol.decode_single_frame(single_style).is_final is True
    assert protocol.decode_multi_frame(single_style).is_final is False
    assert protocol.decode_multi_frame(multi_style).is_final is True
    assert protocol.decode_single_frame(multi_style).is_final is False


def test_multi_frame_carries_context_id():
    frame = protocol.decode_multi_frame(json.dumps({"audio": audio_b64(b"a"), "contextId": "speaker-1"}))

    assert frame.context_id == "speaker-1"


def test_frame_without_audio_or_final_is_heartbeat():
    assert protocol.decode_single_frame("{}").is_heartbeat
    assert protocol.decode_multi_frame(json.dumps({"contextId": "c", "audio": None})).is_heartbeat
    assert not protocol.decode_single_frame(json.dumps({"isFinal": True})).is_heartbeat


def test_error_frame():
    frame = protocol.decode_single_frame(json.dumps({"error": "input_timeout_exceeded", "message": "Timed out"}))

    assert frame.error == "Timed out"
    assert not frame.is_heartbeat


def test_alignment_to_words():
    alignment = protocol.decode_alignment({
        "chars": list("Hi yo"),
        "charStartTimesMs": [0, 50, 100, 150, 200],
        "charsDurationsMs": [50, 50, 50, 50, 50],
    })

    words = alignment.to_words()

    assert [w.text for w in words] == ["Hi", "yo"]
    assert words[0].start == 0.0
    assert words[0].end == 0.1
    assert words[1].end == 0.25


def test_frame_words_fall_back_to_normalized_alignment():
    frame = protocol.decode_single_frame(json.dumps({
        "audio": audio_b64(b"x"),
        "alignment": None,
        "normalizedAlignment": {
            "chars": list(" ok  go "),
            "charStartTimesMs": [0, 10, 20, 30, 40, 50, 60, 70],
            "charsDurationsMs": [10] * 8,
        },
    }))

    assert [(w.text, w.start, w.end) for w in frame.words()] == [("ok", 0.01, 0.03), ("go", 0.05, 0.07)]
    assert protocol.decode_single_frame(json.dumps({"audio": audio_b64(b"x")})).words() == []


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        json.dumps({"audio": "!!!not-base64!!!"}),
        json.dumps({"audio": audio_b64(b"x"), "alignment": {"chars": ["a"], "charStartTimesMs": []}}),
        json.dumps({"alignment": {"unexpected": []}}),
    ],
)
def test_malformed_frames_raise(raw):
    with pytest.raises(ProtocolError):
        protocol.decode_single_frame(raw)
