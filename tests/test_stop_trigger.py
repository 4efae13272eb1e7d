from __future__ import annotations

import threading
import time

from jarvis_voice.core.audio.stop import StopTrigger


def test_stop_is_idempotent():
    stop = StopTrigger()
    assert not stop.has_stopped()

    stop.stop()
    stop.stop()

    assert stop.has_stopped()


def test_clones_share_state():
    stop = StopTrigger()
    clone = stop.clone()

    clone.stop()

    assert stop.has_stopped()
    assert stop.clone().has_stopped()


def test_stop_is_visible_across_threads():
    stop = StopTrigger()
    observed = threading.Event()

    def _worker(handle: StopTrigger) -> None:
        while not handle.has_stopped():
            time.sleep(0.001)
        observed.set()

    thread = threading.Thread(target=_worker, args=(stop.clone(),), daemon=True)
    thread.start()

    stop.stop()

    assert observed.wait(0.05)
    thread.join(timeout=1.0)


def test_wait_returns_false_on_timeout():
    stop = StopTrigger()
    assert stop.wait(0.01) is False
    stop.stop()
    assert stop.wait(0.01) is True
