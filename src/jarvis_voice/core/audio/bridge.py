from __future__ import annotations

import asyncio
import contextlib
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import AsyncIterator

import janus

from jarvis_voice.core.audio.channel import ChunkReceiver
from jarvis_voice.core.audio.format import AudioChunk

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1024
_POLL_S = 0.01


@dataclass(slots=True)
class ChunkBridge:
    """Feeds a thread-side chunk channel into asyncio through a bounded queue.

    The pump thread blocks while the queue is full, which is the only
    backpressure between the transcription consumer and the capture side.
    """

    receiver: ChunkReceiver
    capacity: int = DEFAULT_CAPACITY

    _queue: janus.Queue[AudioChunk | BaseException | None] | None = field(
        init=False, default=None, repr=False
    )
    _pump_task: asyncio.Future[None] | None = field(init=False, default=None, repr=False)
    _closing: threading.Event = field(init=False, default_factory=threading.Event, repr=False)

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError("capacity must be > 0")

    async def __aenter__(self) -> "ChunkBridge":
        await self.start()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def start(self) -> None:
        if self._queue is not None:
            return
        self._queue = janus.Queue(maxsize=self.capacity)
        self._pump_task = asyncio.ensure_future(asyncio.to_thread(self._pump))

    async def chunks(self) -> AsyncIterator[AudioChunk]:
        if self._queue is None:
            raise RuntimeError("bridge is not started")
        while True:
            item = await self._queue.async_q.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self) -> None:
        self._closing.set()
        self.receiver.close()
        if self._pump_task is not None:
            with contextlib.suppress(Exception):
                await self._pump_task
            self._pump_task = None
        if self._queue is not None:
            self._queue.close()
            with contextlib.suppress(Exception):
                await self._queue.wait_closed()

    def _pump(self) -> None:
        assert self._queue is not None
        forwarded = 0
        tail: BaseException | None = None
        try:
            while not self._closing.is_set():
                try:
                    chunk = self.receiver.recv(timeout=_POLL_S)
                except queue.Empty:
                    continue
                if chunk is None:
                    break
                if not self._put(chunk):
                    return
                forwarded += 1
        except Exception as exc:
            logger.exception("Audio bridge failed")
            tail = exc
        self._put(tail)
        logger.debug("Audio bridge drained %d chunks", forwarded)

    def _put(self, item: AudioChunk | BaseException | None) -> bool:
        assert self._queue is not None
        while not self._closing.is_set():
            try:
                self._queue.sync_q.put(item, timeout=_POLL_S)
                return True
            except queue.Full:
                continue
        return False
