from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

AudioChunk = bytes


class PCMFormat(str, Enum):
    S16LE = "s16le"
    S16BE = "s16be"
    U16LE = "u16le"
    U16BE = "u16be"
    S24_32LE = "s24_32le"
    S24_32BE = "s24_32be"
    U24_32LE = "u24_32le"
    U24_32BE = "u24_32be"
    S32LE = "s32le"
    S32BE = "s32be"
    U32LE = "u32le"
    U32BE = "u32be"
    S24LE = "s24le"
    S24BE = "s24be"
    U24LE = "u24le"
    U24BE = "u24be"
    S20LE = "s20le"
    S20BE = "s20be"
    U20LE = "u20le"
    U20BE = "u20be"
    S18LE = "s18le"
    S18BE = "s18be"
    U18LE = "u18le"
    U18BE = "u18be"
    F32LE = "f32le"
    F32BE = "f32be"
    F64LE = "f64le"
    F64BE = "f64be"

    def __str__(self) -> str:
        return self.value

    @property
    def bytes_per_sample(self) -> int:
        name = self.value
        if name.startswith(("s16", "u16")):
            return 2
        if name.startswith("f64"):
            return 8
        if name.startswith(("s24_32", "u24_32", "s32", "u32", "f32")):
            return 4
        # 24, 20 and 18 bit formats are packed into 3 bytes
        return 3


@dataclass(frozen=True, slots=True)
class SoundSpec:
    """Raw PCM encoding of a capture stream.

    Two specs are interchangeable only when every field matches.
    """

    format: PCMFormat
    sample_rate_hz: int
    num_channels: int

    def __post_init__(self) -> None:
        if not isinstance(self.format, PCMFormat):
            raise ValueError(f"unsupported PCM format: {self.format!r}")
        if self.sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")
        if self.num_channels <= 0:
            raise ValueError("num_channels must be > 0")

    def __str__(self) -> str:
        return (
            f"Audio format [{self.format}, {self.sample_rate_hz} Hz, "
            f"{self.num_channels} channels]"
        )

    @property
    def bytes_per_frame(self) -> int:
        return self.format.bytes_per_sample * self.num_channels

    @property
    def bytes_per_second(self) -> int:
        return self.bytes_per_frame * self.sample_rate_hz


# Formats that sounddevice can deliver, in native (little-endian) byte order.
_NUMPY_DTYPES: dict[PCMFormat, str] = {
    PCMFormat.S16LE: "<i2",
    PCMFormat.S32LE: "<i4",
    PCMFormat.F32LE: "<f4",
}


@dataclass(frozen=True, slots=True)
class AudioLevel:
    rms: float
    peak: float
    duration_s: float


def pcm_bytes_to_float32(data: bytes, fmt: PCMFormat) -> np.ndarray:
    dtype = _NUMPY_DTYPES.get(fmt)
    if dtype is None:
        raise ValueError(f"cannot decode {fmt} samples")

    width = np.dtype(dtype).itemsize
    usable = len(data) - (len(data) % width)
    arr = np.frombuffer(data[:usable], dtype=dtype)
    if fmt == PCMFormat.F32LE:
        return arr.astype(np.float32)
    scale = float(2 ** (8 * width - 1))
    return arr.astype(np.float32) / scale


def measure_level(data: bytes, spec: SoundSpec) -> AudioLevel:
    samples = pcm_bytes_to_float32(data, spec.format)
    frames = samples.size // spec.num_channels
    duration_s = frames / spec.sample_rate_hz
    if samples.size == 0:
        return AudioLevel(rms=0.0, peak=0.0, duration_s=0.0)
    rms = float(np.sqrt(np.mean(samples.astype(np.float64) ** 2)))
    peak = float(np.max(np.abs(samples)))
    return AudioLevel(rms=rms, peak=peak, duration_s=duration_s)
