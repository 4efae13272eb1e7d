from __future__ import annotations

import asyncio
import threading

import pytest

from jarvis_voice.core.audio.bridge import ChunkBridge
from jarvis_voice.core.audio.channel import chunk_channel


def _produce(sender, chunks: list[bytes]) -> threading.Thread:
    def _run() -> None:
        for chunk in chunks:
            if not sender.send(chunk):
                break
        sender.close()

    thread = threading.Thread(target=_run, daemon=True)
    thread.start()
    return thread


@pytest.mark.asyncio
async def test_bridge_preserves_order_and_ends_with_source():
    sender, receiver = chunk_channel(capacity=1)
    expected = [bytes([i]) * 8 for i in range(20)]
    _produce(sender, expected)

    async with ChunkBridge(receiver) as bridge:
        received = [chunk async for chunk in bridge.chunks()]

    assert received == expected


@pytest.mark.asyncio
async def test_bridge_applies_backpressure_when_consumer_stalls():
    sender, receiver = chunk_channel(capacity=1)
    produced: list[bytes] = []

    def _run() -> None:
        for i in range(50):
            if not sender.send(bytes([i])):
                break
            produced.append(bytes([i]))
        sender.close()

    thread = threading.Thread(target=_run, daemon=True)
    thread.start()

    bridge = ChunkBridge(receiver, capacity=2)
    await bridge.start()
    await asyncio.sleep(0.2)

    # queue (2) + pump in hand (1) + channel slot (1) + sender in hand (1)
    assert len(produced) <= 5

    stream = bridge.chunks()
    first = await asyncio.wait_for(stream.__anext__(), timeout=1.0)
    assert first == b"\x00"

    await bridge.close()
    thread.join(timeout=1.0)
    assert not thread.is_alive()


@pytest.mark.asyncio
async def test_close_unblocks_producer():
    sender, receiver = chunk_channel(capacity=1)
    thread = _produce(sender, [b"x"] * 100)

    bridge = ChunkBridge(receiver, capacity=1)
    await bridge.start()
    await asyncio.sleep(0.05)
    await bridge.close()

    thread.join(timeout=1.0)
    assert not thread.is_alive()
    assert receiver.is_closed


@pytest.mark.asyncio
async def test_chunks_requires_start():
    _sender, receiver = chunk_channel()
    bridge = ChunkBridge(receiver)
    with pytest.raises(RuntimeError):
        await bridge.chunks().__anext__()


def test_bridge_rejects_zero_capacity():
    _sender, receiver = chunk_channel()
    with pytest.raises(ValueError):
        ChunkBridge(receiver, capacity=0)


class FailingReceiver:
    def __init__(self, chunks: list[bytes], error: Exception):
        self.chunks = list(chunks)
        self.error = error
        self.closed = False

    def recv(self, timeout=None):
        if self.chunks:
            return self.chunks.pop(0)
        raise self.error

    def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_bridge_reraises_receiver_failure_after_delivered_chunks():
    error = OSError("capture thread died")
    receiver = FailingReceiver([b"\x01", b"\x02"], error)
    received: list[bytes] = []

    async with ChunkBridge(receiver) as bridge:
        with pytest.raises(OSError) as excinfo:
            async for chunk in bridge.chunks():
                received.append(chunk)

    assert excinfo.value is error
    assert received == [b"\x01", b"\x02"]
    assert receiver.closed
