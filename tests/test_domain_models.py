from __future__ import annotations

from jarvis_voice.core.errors import (
    ConnectError,
    ServerError,
    TranscriptionError,
    describe_error,
)
from jarvis_voice.domain.models import EmptyTranscription, RecognizedText, transcription_text


def test_transcription_values_compare_by_content():
    assert RecognizedText("hi") == RecognizedText("hi")
    assert EmptyTranscription() == EmptyTranscription()
    assert RecognizedText("") != EmptyTranscription()


def test_transcription_text():
    assert transcription_text(RecognizedText("hello")) == "hello"
    assert transcription_text(EmptyTranscription()) == ""


def test_server_error_message_carries_code():
    exc = ServerError("rate limited", code="rate_limited")
    assert isinstance(exc, TranscriptionError)
    assert str(exc) == "Transcription API error: rate limited (code: rate_limited)"
    assert str(ServerError("boom")) == "Transcription API error: boom"


def test_describe_error_renders_cause_chain():
    try:
        try:
            raise OSError("Connection refused")
        except OSError as inner:
            raise ConnectError("Failed to connect to transcription API") from inner
    except ConnectError as exc:
        text = describe_error(exc)

    assert text == "Failed to connect to transcription API: Connection refused"
