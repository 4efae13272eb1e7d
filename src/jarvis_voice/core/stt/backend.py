from __future__ import annotations

from typing import AsyncIterator, Protocol

from jarvis_voice.core.audio.format import AudioChunk, SoundSpec
from jarvis_voice.core.audio.stop import StopTrigger
from jarvis_voice.domain.models import Transcription


class TranscriptionBackend(Protocol):
    @property
    def required_sound_spec(self) -> SoundSpec: ...

    async def transcribe(
        self, chunks: AsyncIterator[AudioChunk], stop: StopTrigger
    ) -> Transcription: ...
