from __future__ import annotations

import logging
import queue
import time
from dataclasses import dataclass
from pathlib import Path

from jarvis_voice.core.audio.format import AudioLevel, PCMFormat, SoundSpec, measure_level
from jarvis_voice.core.audio.recorder import AudioRecorder

logger = logging.getLogger(__name__)

SAMPLE_SPEC = SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=1)


@dataclass(frozen=True, slots=True)
class RecordingSummary:
    path: Path
    total_bytes: int
    spec: SoundSpec
    level: AudioLevel | None

    @property
    def total_mb(self) -> float:
        return self.total_bytes / 1_000_000.0

    def playback_hint(self) -> str:
        return (
            f"ffplay -autoexit -f {self.spec.format} -ar {self.spec.sample_rate_hz} "
            f"-ac {self.spec.num_channels} {self.path}"
        )


@dataclass(slots=True)
class RecordSampleRunner:
    """Records a raw PCM sample, e.g. to produce a replay file."""

    recorder: AudioRecorder
    output: Path
    seconds: float = 5.0
    spec: SoundSpec = SAMPLE_SPEC

    def run(self) -> RecordingSummary:
        if self.seconds <= 0:
            raise ValueError("seconds must be > 0")

        chunks, stop, negotiated = self.recorder.listen(self.spec)
        spec = self.spec
        if negotiated is not None and negotiated != self.spec:
            logger.warning("Requested %s but the device records %s", self.spec, negotiated)
            spec = negotiated

        data = bytearray()
        deadline = time.monotonic() + self.seconds
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                try:
                    chunk = chunks.recv(timeout=remaining)
                except queue.Empty:
                    break
                if chunk is None:
                    break
                data.extend(chunk)
        finally:
            stop.stop()

        for chunk in chunks:
            data.extend(chunk)
        self.recorder.close()

        self.output.parent.mkdir(parents=True, exist_ok=True)
        self.output.write_bytes(bytes(data))

        level = None
        try:
            level = measure_level(bytes(data), spec)
        except ValueError:
            logger.debug("Level metering is not available for %s", spec.format)

        return RecordingSummary(path=self.output, total_bytes=len(data), spec=spec, level=level)
