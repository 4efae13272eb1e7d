from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class EmptyTranscription:
    """No speech was recognized during the session."""


@dataclass(frozen=True, slots=True)
class RecognizedText:
    text: str


Transcription = EmptyTranscription | RecognizedText


def transcription_text(transcription: Transcription) -> str:
    if isinstance(transcription, RecognizedText):
        return transcription.text
    return ""
