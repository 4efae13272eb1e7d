from __future__ import annotations

import threading


class StopTrigger:
    """Shared stop flag for capture producers.

    Clones share one cell, so ``stop()`` through any handle is seen by all of
    them. Setting it is idempotent.
    """

    __slots__ = ("_event",)

    def __init__(self, _event: threading.Event | None = None) -> None:
        self._event = _event if _event is not None else threading.Event()

    def clone(self) -> "StopTrigger":
        return StopTrigger(self._event)

    def stop(self) -> None:
        self._event.set()

    def has_stopped(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"StopTrigger(stopped={self.has_stopped()})"
