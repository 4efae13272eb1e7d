"""Wire format of the OpenAI realtime transcription API.

Inbound server events are parsed into frozen dataclasses; outbound client
messages are rendered to JSON text frames.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from jarvis_voice.core.audio.format import PCMFormat, SoundSpec
from jarvis_voice.core.errors import MalformedEventError


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    message: str
    code: str | None = None
    error_type: str | None = None
    param: str | None = None
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class SessionCreated:
    session: dict[str, Any] = field(default_factory=dict)
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class SessionUpdated:
    session: dict[str, Any] = field(default_factory=dict)
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class SpeechStarted:
    item_id: str | None = None
    audio_start_ms: int | None = None
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class SpeechStopped:
    item_id: str | None = None
    audio_end_ms: int | None = None
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class SpeechCommitted:
    item_id: str | None = None
    previous_item_id: str | None = None
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class ConversationItemCreated:
    item: dict[str, Any] = field(default_factory=dict)
    previous_item_id: str | None = None
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class TranscriptionDelta:
    delta: str
    item_id: str | None = None
    content_index: int | None = None
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class TranscriptionCompleted:
    transcript: str
    item_id: str | None = None
    content_index: int | None = None
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class UnknownEvent:
    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str | None = None


ProtocolEvent = (
    ErrorEvent
    | SessionCreated
    | SessionUpdated
    | SpeechStarted
    | SpeechStopped
    | SpeechCommitted
    | ConversationItemCreated
    | TranscriptionDelta
    | TranscriptionCompleted
)


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    return str(value)


def _opt_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedEventError(f"`{key}` must be a number, got {value!r}")
    return int(value)


def _opt_dict(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedEventError(f"`{key}` must be an object, got {value!r}")
    return value


def _req_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedEventError(f"`{key}` is required and must be a string")
    return value


def _parse_error(data: dict[str, Any]) -> ErrorEvent:
    detail = data.get("error")
    if not isinstance(detail, dict):
        raise MalformedEventError("error event without an `error` object")
    return ErrorEvent(
        message=str(detail.get("message") or "Unknown error"),
        code=_opt_str(detail, "code"),
        error_type=_opt_str(detail, "type"),
        param=_opt_str(detail, "param"),
        event_id=_opt_str(data, "event_id"),
    )


_PARSERS: dict[str, Callable[[dict[str, Any]], ProtocolEvent]] = {
    "error": _parse_error,
    "transcription_session.created": lambda d: SessionCreated(
        session=_opt_dict(d, "session"), event_id=_opt_str(d, "event_id")
    ),
    "transcription_session.updated": lambda d: SessionUpdated(
        session=_opt_dict(d, "session"), event_id=_opt_str(d, "event_id")
    ),
    "input_audio_buffer.speech_started": lambda d: SpeechStarted(
        item_id=_opt_str(d, "item_id"),
        audio_start_ms=_opt_int(d, "audio_start_ms"),
        event_id=_opt_str(d, "event_id"),
    ),
    "input_audio_buffer.speech_stopped": lambda d: SpeechStopped(
        item_id=_opt_str(d, "item_id"),
        audio_end_ms=_opt_int(d, "audio_end_ms"),
        event_id=_opt_str(d, "event_id"),
    ),
    "input_audio_buffer.committed": lambda d: SpeechCommitted(
        item_id=_opt_str(d, "item_id"),
        previous_item_id=_opt_str(d, "previous_item_id"),
        event_id=_opt_str(d, "event_id"),
    ),
    "conversation.item.created": lambda d: ConversationItemCreated(
        item=_opt_dict(d, "item"),
        previous_item_id=_opt_str(d, "previous_item_id"),
        event_id=_opt_str(d, "event_id"),
    ),
    "conversation.item.input_audio_transcription.delta": lambda d: TranscriptionDelta(
        delta=_req_str(d, "delta"),
        item_id=_opt_str(d, "item_id"),
        content_index=_opt_int(d, "content_index"),
        event_id=_opt_str(d, "event_id"),
    ),
    "conversation.item.input_audio_transcription.completed": lambda d: TranscriptionCompleted(
        transcript=_req_str(d, "transcript"),
        item_id=_opt_str(d, "item_id"),
        content_index=_opt_int(d, "content_index"),
        event_id=_opt_str(d, "event_id"),
    ),
}


def parse_event(raw: str | bytes) -> ProtocolEvent | UnknownEvent:
    """Parse one server frame.

    Unrecognised event types come back as UnknownEvent; a frame without a
    usable ``type`` tag, or a known event missing required content, raises
    MalformedEventError.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedEventError(f"Failed to parse transcription message {raw!r}") from exc

    if not isinstance(data, dict):
        raise MalformedEventError(f"Transcription message is not an object: {raw!r}")
    event_type = data.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedEventError(f"Transcription message has no event type: {raw!r}")

    parser = _PARSERS.get(event_type)
    if parser is None:
        return UnknownEvent(type=event_type, payload=data, event_id=_opt_str(data, "event_id"))
    try:
        return parser(data)
    except MalformedEventError as exc:
        raise MalformedEventError(f"Invalid `{event_type}` event: {exc}") from exc


class InputAudioFormat(str, Enum):
    PCM16 = "pcm16"
    G711_ULAW = "g711_ulaw"
    G711_ALAW = "g711_alaw"


class NoiseReduction(str, Enum):
    NEAR_FIELD = "near_field"
    FAR_FIELD = "far_field"


class TurnDetection(str, Enum):
    SERVER_VAD = "server_vad"
    # Semantic VAD has been observed to never emit speech_stopped in
    # transcription mode.
    SEMANTIC_VAD = "semantic_vad"


@dataclass(frozen=True, slots=True)
class SessionConfig:
    input_audio_format: InputAudioFormat = InputAudioFormat.PCM16
    noise_reduction: NoiseReduction = NoiseReduction.NEAR_FIELD
    language: str | None = "en"
    model: str | None = "gpt-4o-mini-transcribe"
    prompt: str | None = "expect words related to technology"
    turn_detection: TurnDetection = TurnDetection.SERVER_VAD


def session_update_message(config: SessionConfig) -> str:
    transcription: dict[str, str] = {}
    if config.language:
        transcription["language"] = config.language
    if config.model:
        transcription["model"] = config.model
    if config.prompt:
        transcription["prompt"] = config.prompt

    payload = {
        "type": "transcription_session.update",
        "session": {
            "input_audio_format": config.input_audio_format.value,
            "input_audio_noise_reduction": {"type": config.noise_reduction.value},
            "input_audio_transcription": transcription,
            "turn_detection": {"type": config.turn_detection.value},
        },
    }
    return json.dumps(payload)


def audio_append_message(chunk: bytes) -> str:
    audio_b64 = base64.b64encode(chunk).decode("ascii")
    return json.dumps({"type": "input_audio_buffer.append", "audio": audio_b64})


def required_sound_spec(input_audio_format: InputAudioFormat) -> SoundSpec:
    # pcm16 input must be 16-bit little-endian mono at 24 kHz.
    if input_audio_format != InputAudioFormat.PCM16:
        raise ValueError(f"capture of {input_audio_format.value} audio is not supported")
    return SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=1)
