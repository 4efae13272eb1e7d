from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from jarvis_voice.core.audio.backend import CaptureBackend, ListenResult
from jarvis_voice.core.audio.format import SoundSpec
from jarvis_voice.core.audio.live import LiveAudioRecorder
from jarvis_voice.core.audio.replay import DEFAULT_BLOCK_SIZE, FileReplayRecorder


@dataclass(slots=True)
class AudioRecorder:
    """Capture facade; the backend is fixed for the recorder's lifetime."""

    backend: CaptureBackend

    @classmethod
    def create(
        cls,
        replay_file: Path | str | None = None,
        *,
        device: int | str | None = None,
        block_size: int = DEFAULT_BLOCK_SIZE,
    ) -> "AudioRecorder":
        if replay_file:
            return cls(FileReplayRecorder(Path(replay_file), block_size=block_size))
        return cls(LiveAudioRecorder(device=device))

    @property
    def is_replay(self) -> bool:
        return isinstance(self.backend, FileReplayRecorder)

    def listen(self, request_format: SoundSpec | None = None) -> ListenResult:
        return self.backend.listen(request_format)

    def close(self) -> None:
        self.backend.close()
