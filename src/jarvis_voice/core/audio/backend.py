from __future__ import annotations

from typing import NamedTuple, Protocol

from jarvis_voice.core.audio.channel import ChunkReceiver
from jarvis_voice.core.audio.format import SoundSpec
from jarvis_voice.core.audio.stop import StopTrigger


class ListenResult(NamedTuple):
    chunks: ChunkReceiver
    stop: StopTrigger
    negotiated: SoundSpec | None


class CaptureBackend(Protocol):
    def listen(self, request_format: SoundSpec | None = None) -> ListenResult: ...
    def close(self) -> None: ...
