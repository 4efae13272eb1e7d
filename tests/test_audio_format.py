from __future__ import annotations

import numpy as np
import pytest

from jarvis_voice.core.audio.format import (
    PCMFormat,
    SoundSpec,
    measure_level,
    pcm_bytes_to_float32,
)


def test_sound_spec_equality_requires_every_field():
    base = SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=1)

    assert base == SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=1)
    assert base != SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=48000, num_channels=1)
    assert base != SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=2)
    assert base != SoundSpec(format=PCMFormat.F32LE, sample_rate_hz=24000, num_channels=1)


def test_sound_spec_str_is_human_readable():
    spec = SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=1)
    assert str(spec) == "Audio format [s16le, 24000 Hz, 1 channels]"


def test_sound_spec_rejects_invalid_values():
    with pytest.raises(ValueError):
        SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=0, num_channels=1)
    with pytest.raises(ValueError):
        SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=0)
    with pytest.raises(ValueError):
        SoundSpec(format="s16le", sample_rate_hz=24000, num_channels=1)  # type: ignore[arg-type]


def test_bytes_per_sample_and_frame():
    assert PCMFormat.S16LE.bytes_per_sample == 2
    assert PCMFormat.S24LE.bytes_per_sample == 3
    assert PCMFormat.S24_32LE.bytes_per_sample == 4
    assert PCMFormat.F64BE.bytes_per_sample == 8

    spec = SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=2)
    assert spec.bytes_per_frame == 4
    assert spec.bytes_per_second == 96000


def test_pcm_bytes_to_float32_ignores_trailing_partial_sample():
    data = np.array([0, 16384, -32768], dtype="<i2").tobytes() + b"\x01"
    samples = pcm_bytes_to_float32(data, PCMFormat.S16LE)
    assert np.allclose(samples, np.array([0.0, 0.5, -1.0], dtype=np.float32))


def test_pcm_bytes_to_float32_rejects_undecodable_format():
    with pytest.raises(ValueError):
        pcm_bytes_to_float32(b"\0\0\0", PCMFormat.S24LE)


def test_measure_level_of_constant_signal():
    spec = SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=1)
    data = np.full((24000,), 16384, dtype="<i2").tobytes()

    level = measure_level(data, spec)

    assert level.rms == pytest.approx(0.5)
    assert level.peak == pytest.approx(0.5)
    assert level.duration_s == pytest.approx(1.0)


def test_measure_level_of_silence_is_zero():
    spec = SoundSpec(format=PCMFormat.S16LE, sample_rate_hz=24000, num_channels=1)
    level = measure_level(b"", spec)
    assert (level.rms, level.peak, level.duration_s) == (0.0, 0.0, 0.0)
