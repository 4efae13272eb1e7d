from __future__ import annotations

import os
import threading
import time

import pytest

from jarvis_voice.core.audio.recorder import AudioRecorder
from jarvis_voice.core.audio.replay import FileReplayRecorder
from jarvis_voice.core.errors import CaptureError


def _write(tmp_path, size: int):
    path = tmp_path / "sample.pcm"
    path.write_bytes(os.urandom(size))
    return path


def _replay_threads() -> list[threading.Thread]:
    return [t for t in threading.enumerate() if t.name == "audio-replay"]


def test_replay_yields_whole_file_in_blocks(tmp_path):
    path = _write(tmp_path, 10_000)
    chunks, stop, negotiated = FileReplayRecorder(path).listen()

    received = list(chunks)

    assert negotiated is None
    assert len(received) == 3  # ceil(10000 / 4096)
    assert [len(c) for c in received] == [4096, 4096, 10_000 - 8192]
    assert b"".join(received) == path.read_bytes()
    assert chunks.recv(timeout=0.01) is None
    assert not stop.has_stopped()


def test_replay_of_empty_file_ends_immediately(tmp_path):
    path = _write(tmp_path, 0)
    chunks, _stop, _ = FileReplayRecorder(path).listen()

    assert chunks.recv(timeout=1.0) is None


def test_replay_missing_file_raises_capture_error(tmp_path):
    with pytest.raises(CaptureError):
        FileReplayRecorder(tmp_path / "missing.pcm").listen()


def test_replay_stops_when_trigger_fires(tmp_path):
    path = _write(tmp_path, 4096 * 50)
    chunks, stop, _ = FileReplayRecorder(path).listen()

    first = chunks.recv(timeout=1.0)
    stop.stop()
    rest = list(chunks)

    assert first is not None
    assert len(rest) < 49


def test_replay_thread_exits_when_receiver_is_closed(tmp_path):
    path = _write(tmp_path, 4096 * 50)
    chunks, _stop, _ = FileReplayRecorder(path).listen()
    assert chunks.recv(timeout=1.0) is not None

    chunks.close()

    deadline = time.monotonic() + 1.0
    while _replay_threads() and time.monotonic() < deadline:
        time.sleep(0.01)
    assert not _replay_threads()


def test_audio_recorder_selects_backend_by_replay_file(tmp_path):
    path = _write(tmp_path, 16)

    assert AudioRecorder.create(path).is_replay
    assert not AudioRecorder.create(None).is_replay


def test_replay_rejects_invalid_block_size(tmp_path):
    with pytest.raises(ValueError):
        FileReplayRecorder(tmp_path / "x.pcm", block_size=0)
