from __future__ import annotations

import base64
import json

import pytest

from jarvis_voice.core.audio.format import PCMFormat, SoundSpec
from jarvis_voice.core.errors import MalformedEventError
from jarvis_voice.providers.stt.openai_events import (
    ErrorEvent,
    InputAudioFormat,
    NoiseReduction,
    SessionConfig,
    SessionUpdated,
    SpeechStarted,
    TranscriptionCompleted,
    TranscriptionDelta,
    TurnDetection,
    UnknownEvent,
    audio_append_message,
    parse_event,
    required_sound_spec,
    session_update_message,
)


def test_parse_completed_transcription():
    event = parse_event(
        json.dumps(
            {
                "type": "conversation.item.input_audio_transcription.completed",
                "event_id": "evt_1",
                "item_id": "item_1",
                "content_index": 0,
                "transcript": "hello world",
            }
        )
    )
    assert event == TranscriptionCompleted(
        transcript="hello world", item_id="item_1", content_index=0, event_id="evt_1"
    )


def test_parse_error_event():
    event = parse_event(
        '{"type": "error", "error": {"type": "invalid_request_error", '
        '"code": "rate_limited", "message": "rate limited"}}'
    )
    assert isinstance(event, ErrorEvent)
    assert event.message == "rate limited"
    assert event.code == "rate_limited"
    assert event.error_type == "invalid_request_error"


def test_parse_accepts_bytes_and_optional_fields():
    event = parse_event(b'{"type": "input_audio_buffer.speech_started", "audio_start_ms": 120}')
    assert event == SpeechStarted(audio_start_ms=120)

    delta = parse_event('{"type": "conversation.item.input_audio_transcription.delta", "delta": "he"}')
    assert delta == TranscriptionDelta(delta="he")

    updated = parse_event('{"type": "transcription_session.updated", "session": {"id": "s"}}')
    assert updated == SessionUpdated(session={"id": "s"})


def test_unknown_event_type_is_not_an_error():
    event = parse_event('{"type": "rate_limits.updated", "rate_limits": []}')
    assert isinstance(event, UnknownEvent)
    assert event.type == "rate_limits.updated"
    assert event.payload["rate_limits"] == []


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        '{"no_type": true}',
        '{"type": 5}',
        '{"type": "conversation.item.input_audio_transcription.completed"}',
        '{"type": "error"}',
        '{"type": "input_audio_buffer.speech_started", "audio_start_ms": "soon"}',
    ],
)
def test_malformed_frames_raise(raw):
    with pytest.raises(MalformedEventError):
        parse_event(raw)


def test_session_update_message_shape():
    message = json.loads(session_update_message(SessionConfig()))

    assert message == {
        "type": "transcription_session.update",
        "session": {
            "input_audio_format": "pcm16",
            "input_audio_noise_reduction": {"type": "near_field"},
            "input_audio_transcription": {
                "language": "en",
                "model": "gpt-4o-mini-transcribe",
                "prompt": "expect words related to technology",
            },
            "turn_detection": {"type": "server_vad"},
        },
    }


def test_session_update_message_omits_unset_hints():
    config = SessionConfig(
        noise_reduction=NoiseReduction.FAR_FIELD,
        language=None,
        model="gpt-4o-transcribe",
        prompt=None,
        turn_detection=TurnDetection.SEMANTIC_VAD,
    )
    session = json.loads(session_update_message(config))["session"]

    assert session["input_audio_transcription"] == {"model": "gpt-4o-transcribe"}
    assert session["input_audio_noise_reduction"] == {"type": "far_field"}
    assert session["turn_detection"] == {"type": "semantic_vad"}


def test_audio_append_message_encodes_base64():
    message = json.loads(audio_append_message(b"\x00\x01\xff"))
    assert message["type"] == "input_audio_buffer.append"
    assert base64.b64decode(message["audio"]) == b"\x00\x01\xff"


def test_required_sound_spec_for_pcm16():
    assert required_sound_spec(InputAudioFormat.PCM16) == SoundSpec(
        format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=1
    )
    with pytest.raises(ValueError):
        required_sound_spec(InputAudioFormat.G711_ULAW)
