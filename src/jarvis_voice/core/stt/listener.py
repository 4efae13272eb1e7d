from __future__ import annotations

import logging
from dataclasses import dataclass

from jarvis_voice.core.audio.bridge import DEFAULT_CAPACITY, ChunkBridge
from jarvis_voice.core.audio.recorder import AudioRecorder
from jarvis_voice.core.errors import FormatMismatchError
from jarvis_voice.core.stt.backend import TranscriptionBackend
from jarvis_voice.domain.models import Transcription

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SpeechListener:
    """Listens to one spoken utterance and returns its transcription."""

    recorder: AudioRecorder
    backend: TranscriptionBackend
    bridge_capacity: int = DEFAULT_CAPACITY

    async def listen_to_input(self) -> Transcription:
        desired = self.backend.required_sound_spec
        chunks, stop, negotiated = self.recorder.listen(desired)

        if negotiated is not None and negotiated != desired:
            stop.stop()
            chunks.close()
            raise FormatMismatchError(desired, negotiated)

        logger.info("Listening...")
        bridge = ChunkBridge(chunks, capacity=self.bridge_capacity)
        try:
            await bridge.start()
            return await self.backend.transcribe(bridge.chunks(), stop)
        finally:
            stop.stop()
            await bridge.close()

    def close(self) -> None:
        self.recorder.close()
