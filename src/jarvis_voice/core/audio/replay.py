from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from jarvis_voice.core.audio.backend import ListenResult
from jarvis_voice.core.audio.channel import ChunkSender, chunk_channel
from jarvis_voice.core.audio.format import SoundSpec
from jarvis_voice.core.audio.stop import StopTrigger
from jarvis_voice.core.errors import CaptureError

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_SIZE = 4096


@dataclass(slots=True)
class FileReplayRecorder:
    """Plays back raw audio from a file instead of recording it.

    Lets the transcription pipeline run deterministically without hardware.
    The file's format is unknown, so no negotiated spec is reported.
    """

    path: Path
    block_size: int = DEFAULT_BLOCK_SIZE

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        if self.block_size <= 0:
            raise ValueError("block_size must be > 0")

    def listen(self, request_format: SoundSpec | None = None) -> ListenResult:
        _ = request_format
        try:
            f = self.path.open("rb")
        except OSError as exc:
            raise CaptureError(f"Failed to open replay file {self.path}") from exc

        # Rendezvous-sized channel: the reader only runs ahead by one block.
        sender, receiver = chunk_channel(capacity=1)
        stop = StopTrigger()

        thread = threading.Thread(
            target=self._replay,
            args=(f, sender, stop.clone()),
            name="audio-replay",
            daemon=True,
        )
        thread.start()
        logger.debug("Replaying audio from %s", self.path)

        return ListenResult(receiver, stop, None)

    def _replay(self, f: BinaryIO, sender: ChunkSender, stop: StopTrigger) -> None:
        sent = 0
        try:
            with f:
                while not stop.has_stopped():
                    block = f.read(self.block_size)
                    if not block:
                        break
                    if not sender.send(block):
                        logger.debug("Replay receiver closed after %d chunks", sent)
                        break
                    sent += 1
        except OSError:
            logger.exception("Failed to read replay file %s", self.path)
        finally:
            sender.close()
            logger.debug("Replay finished (%d chunks)", sent)

    def close(self) -> None:
        return
