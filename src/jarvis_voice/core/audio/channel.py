from __future__ import annotations

import queue
import threading
from typing import Iterator

from jarvis_voice.core.audio.format import AudioChunk

_END = object()
_POLL_S = 0.01


class _ChannelState:
    __slots__ = ("queue", "receiver_closed")

    def __init__(self, capacity: int) -> None:
        self.queue: queue.Queue[AudioChunk | object] = queue.Queue(maxsize=capacity)
        self.receiver_closed = threading.Event()


class ChunkSender:
    __slots__ = ("_state", "_closed")

    def __init__(self, state: _ChannelState) -> None:
        self._state = state
        self._closed = False

    @property
    def is_disconnected(self) -> bool:
        return self._state.receiver_closed.is_set()

    def send(self, chunk: AudioChunk) -> bool:
        """Queue a chunk; returns False once the receiving side is gone."""
        if self._closed:
            raise RuntimeError("send on a closed channel")
        while not self._state.receiver_closed.is_set():
            try:
                self._state.queue.put(chunk, timeout=_POLL_S)
                return True
            except queue.Full:
                continue
        return False

    def try_send(self, chunk: AudioChunk) -> bool:
        """Non-blocking send. Raises queue.Full when a bounded channel is full."""
        if self._closed:
            raise RuntimeError("send on a closed channel")
        if self._state.receiver_closed.is_set():
            return False
        self._state.queue.put_nowait(chunk)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        while not self._state.receiver_closed.is_set():
            try:
                self._state.queue.put(_END, timeout=_POLL_S)
                return
            except queue.Full:
                continue


class ChunkReceiver:
    __slots__ = ("_state", "_ended")

    def __init__(self, state: _ChannelState) -> None:
        self._state = state
        self._ended = False

    @property
    def is_closed(self) -> bool:
        return self._state.receiver_closed.is_set()

    def recv(self, timeout: float | None = None) -> AudioChunk | None:
        """Next chunk, or None at end of stream. Raises queue.Empty on timeout."""
        if self._ended:
            return None
        item = self._state.queue.get(timeout=timeout)
        return self._unwrap(item)

    def try_recv(self) -> AudioChunk | None:
        """Non-blocking recv. Raises queue.Empty when nothing is queued."""
        if self._ended:
            return None
        item = self._state.queue.get_nowait()
        return self._unwrap(item)

    def _unwrap(self, item: AudioChunk | object) -> AudioChunk | None:
        if item is _END:
            self._ended = True
            return None
        return item  # type: ignore[return-value]

    def close(self) -> None:
        self._state.receiver_closed.set()
        # Unblock a sender waiting on a full rendezvous/bounded queue.
        while True:
            try:
                self._state.queue.get_nowait()
            except queue.Empty:
                return

    def __iter__(self) -> Iterator[AudioChunk]:
        while True:
            chunk = self.recv()
            if chunk is None:
                return
            yield chunk


def chunk_channel(capacity: int = 0) -> tuple[ChunkSender, ChunkReceiver]:
    """Single-producer/single-consumer channel of audio chunks.

    ``capacity=0`` means unbounded.
    """
    if capacity < 0:
        raise ValueError("capacity must be >= 0")
    state = _ChannelState(capacity)
    return ChunkSender(state), ChunkReceiver(state)
