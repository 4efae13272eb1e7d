from __future__ import annotations

import contextlib
import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from jarvis_voice.core.audio.backend import ListenResult
from jarvis_voice.core.audio.channel import ChunkReceiver, ChunkSender, chunk_channel
from jarvis_voice.core.audio.format import PCMFormat, SoundSpec
from jarvis_voice.core.audio.stop import StopTrigger
from jarvis_voice.core.errors import CaptureError

logger = logging.getLogger(__name__)

# sounddevice delivers samples in native byte order; only little-endian hosts
# are supported.
_SD_DTYPES: dict[PCMFormat, str] = {
    PCMFormat.S16LE: "int16",
    PCMFormat.S24LE: "int24",
    PCMFormat.S32LE: "int32",
    PCMFormat.F32LE: "float32",
}
_FORMATS_BY_DTYPE = {dtype: fmt for fmt, dtype in _SD_DTYPES.items()}

NATIVE_DTYPE = "int16"
MAX_NATIVE_CHANNELS = 2


class CaptureState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    STREAMING = "STREAMING"
    STOPPED = "STOPPED"


@dataclass(slots=True)
class LiveAudioRecorder:
    """Microphone capture through sounddevice/PortAudio.

    PortAudio pushes buffers from its own callback thread. Those are relayed
    to a forwarding thread which hands them to the caller's channel until the
    returned StopTrigger is set, then shuts the native stream down.

    If the requested format is rejected the device's native format is used
    instead; the caller decides whether the negotiated spec is acceptable.
    """

    device: int | str | None = None
    blocksize: int = 0
    relay_capacity: int = 256
    poll_interval_s: float = 0.001
    open_timeout_s: float = 10.0

    _state: CaptureState = field(init=False, default=CaptureState.IDLE)
    _shutdown: threading.Event | None = field(init=False, default=None, repr=False)
    _native_thread: threading.Thread | None = field(init=False, default=None, repr=False)
    _forward_thread: threading.Thread | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        if self.relay_capacity <= 0:
            raise ValueError("relay_capacity must be > 0")
        if self.poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be > 0")
        if self.open_timeout_s <= 0:
            raise ValueError("open_timeout_s must be > 0")

    @property
    def state(self) -> CaptureState:
        return self._state

    def listen(self, request_format: SoundSpec | None = None) -> ListenResult:
        if self._state in (CaptureState.CONNECTING, CaptureState.STREAMING):
            raise CaptureError("audio capture is already running")

        self._state = CaptureState.CONNECTING
        relay_sender, relay_receiver = chunk_channel(capacity=self.relay_capacity)
        negotiated_q: queue.Queue[SoundSpec | BaseException] = queue.Queue(maxsize=1)
        shutdown = threading.Event()

        native = threading.Thread(
            target=self._run_native,
            args=(request_format, relay_sender, negotiated_q, shutdown),
            name="audio-capture",
            daemon=True,
        )
        native.start()

        try:
            result = negotiated_q.get(timeout=self.open_timeout_s)
        except queue.Empty:
            shutdown.set()
            self._state = CaptureState.STOPPED
            raise CaptureError(
                f"Audio device did not negotiate a format within {self.open_timeout_s}s"
            ) from None

        if isinstance(result, BaseException):
            self._state = CaptureState.STOPPED
            raise CaptureError("Failed to open audio input stream") from result

        negotiated = result
        logger.debug("Negotiated %s", negotiated)

        sender, receiver = chunk_channel(capacity=1)
        stop = StopTrigger()
        forward = threading.Thread(
            target=self._forward,
            args=(relay_receiver, sender, stop.clone(), shutdown),
            name="audio-forward",
            daemon=True,
        )
        self._shutdown = shutdown
        self._native_thread = native
        self._forward_thread = forward
        self._state = CaptureState.STREAMING
        forward.start()

        return ListenResult(receiver, stop, negotiated)

    def close(self) -> None:
        if self._shutdown is not None:
            self._shutdown.set()
        for thread in (self._forward_thread, self._native_thread):
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=2.0)
        self._forward_thread = None
        self._native_thread = None
        if self._state != CaptureState.IDLE:
            self._state = CaptureState.STOPPED

    def _run_native(
        self,
        request_format: SoundSpec | None,
        relay: ChunkSender,
        negotiated_q: queue.Queue[SoundSpec | BaseException],
        shutdown: threading.Event,
    ) -> None:
        def _callback(indata, frames, _time, status):  # called from PortAudio thread
            if shutdown.is_set():
                return
            if status:
                logger.warning("sounddevice input status: %s", status)
            if not frames or not len(indata):
                logger.error("No buffer")
                return
            try:
                if not relay.try_send(bytes(indata)):
                    logger.error("Failed to send audio data")
            except queue.Full:
                # Never block the audio thread; the consumer is too slow.
                logger.debug("Relay full, dropping %d frames", frames)

        try:
            import sounddevice as sd  # type: ignore

            stream = self._open_stream(sd, request_format, _callback)
        except Exception as exc:
            relay.close()
            negotiated_q.put(exc)
            return

        try:
            negotiated = _negotiated_spec(stream)
            stream.start()
        except Exception as exc:
            with contextlib.suppress(Exception):
                stream.close()
            relay.close()
            negotiated_q.put(exc)
            return

        negotiated_q.put(negotiated)
        try:
            shutdown.wait()
        finally:
            with contextlib.suppress(Exception):
                stream.stop()
            with contextlib.suppress(Exception):
                stream.close()
            relay.close()
            logger.debug("Audio input stream closed")

    def _open_stream(self, sd: Any, request_format: SoundSpec | None, callback: Any) -> Any:
        if request_format is not None:
            dtype = _SD_DTYPES.get(request_format.format)
            if dtype is None:
                logger.warning(
                    "%s is not supported by the audio backend; using device format",
                    request_format.format,
                )
            else:
                try:
                    return sd.RawInputStream(
                        samplerate=request_format.sample_rate_hz,
                        channels=request_format.num_channels,
                        dtype=dtype,
                        device=self.device,
                        blocksize=self.blocksize,
                        callback=callback,
                    )
                except sd.PortAudioError as exc:
                    logger.warning("Requested %s rejected (%s); using device format", request_format, exc)

        info = sd.query_devices(self.device, "input")
        channels = max(1, min(int(info.get("max_input_channels", 1) or 1), MAX_NATIVE_CHANNELS))
        return sd.RawInputStream(
            samplerate=None,
            channels=channels,
            dtype=NATIVE_DTYPE,
            device=self.device,
            blocksize=self.blocksize,
            callback=callback,
        )

    def _forward(
        self,
        relay: ChunkReceiver,
        sender: ChunkSender,
        stop: StopTrigger,
        shutdown: threading.Event,
    ) -> None:
        forwarded = 0
        try:
            while not stop.has_stopped():
                try:
                    chunk = relay.recv(timeout=self.poll_interval_s)
                except queue.Empty:
                    continue
                if chunk is None:
                    break
                if not sender.send(chunk):
                    logger.debug("Capture receiver closed")
                    break
                forwarded += 1
        finally:
            sender.close()
            relay.close()
            shutdown.set()
            self._state = CaptureState.STOPPED
            logger.debug("Capture forwarding stopped after %d chunks", forwarded)


def _negotiated_spec(stream: Any) -> SoundSpec:
    dtype = str(stream.dtype)
    fmt = _FORMATS_BY_DTYPE.get(dtype)
    if fmt is None:
        raise CaptureError(f"Unsupported sample format from audio device: {dtype}")
    return SoundSpec(
        format=fmt,
        sample_rate_hz=int(stream.samplerate),
        num_channels=int(stream.channels),
    )


def resolve_input_device(*, host_api: str = "", device: str = "") -> int | None:
    host_api = (host_api or "").strip()
    device = (device or "").strip()
    if not host_api and not device:
        return None

    import sounddevice as sd  # type: ignore

    hostapis = sd.query_hostapis()
    devices = sd.query_devices()

    hostapi_index: int | None = None
    if host_api:
        for idx, item in enumerate(hostapis):
            name = str(item.get("name", "") or "")
            if name.lower() == host_api.lower():
                hostapi_index = idx
                break

    if device:
        with contextlib.suppress(ValueError):
            idx = int(device)
            if 0 <= idx < len(devices) and int(devices[idx].get("max_input_channels", 0) or 0) > 0:
                if hostapi_index is None or int(devices[idx].get("hostapi", -1)) == hostapi_index:
                    return idx

    if hostapi_index is not None and not device:
        default_input = hostapis[hostapi_index].get("default_input_device")
        if isinstance(default_input, int) and default_input >= 0:
            return default_input

    for idx, info in enumerate(devices):
        if int(info.get("max_input_channels", 0) or 0) <= 0:
            continue
        if hostapi_index is not None and int(info.get("hostapi", -1)) != hostapi_index:
            continue
        if device:
            name = str(info.get("name", "") or "")
            if name.lower() != device.lower():
                continue
        return idx

    return None
