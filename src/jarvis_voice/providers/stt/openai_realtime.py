"""OpenAI realtime transcription over a raw WebSocket.

One session per call: connect, configure, then stream audio while folding the
server's events into a single Transcription.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from jarvis_voice.core.audio.format import AudioChunk, SoundSpec
from jarvis_voice.core.audio.stop import StopTrigger
from jarvis_voice.core.errors import (
    ConnectError,
    HandshakeError,
    MalformedEventError,
    SendError,
    ServerError,
)
from jarvis_voice.core.stt.backend import TranscriptionBackend
from jarvis_voice.core.stt.retry import RetryPolicy
from jarvis_voice.domain.models import EmptyTranscription, RecognizedText, Transcription
from jarvis_voice.providers.stt.openai_events import (
    ErrorEvent,
    ProtocolEvent,
    SessionConfig,
    SessionCreated,
    SessionUpdated,
    TranscriptionCompleted,
    TranscriptionDelta,
    UnknownEvent,
    audio_append_message,
    parse_event,
    required_sound_spec,
    session_update_message,
)

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "wss://api.openai.com/v1/realtime?intent=transcription"


def fold_event(result: Transcription, event: ProtocolEvent | UnknownEvent) -> Transcription:
    if isinstance(event, ErrorEvent):
        raise ServerError(event.message, code=event.code)
    if isinstance(event, TranscriptionCompleted):
        if not event.transcript.strip():
            return EmptyTranscription()
        return RecognizedText(event.transcript)
    return result


@dataclass(slots=True)
class OpenAIRealtimeTranscriber(TranscriptionBackend):
    api_key: str
    endpoint: str = DEFAULT_ENDPOINT
    session_config: SessionConfig = field(default_factory=SessionConfig)
    connect_timeout_s: float | None = 10.0
    handshake_timeout_s: float | None = 10.0
    finish_on_completed: bool = False
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @property
    def required_sound_spec(self) -> SoundSpec:
        return required_sound_spec(self.session_config.input_audio_format)

    async def transcribe(
        self, chunks: AsyncIterator[AudioChunk], stop: StopTrigger
    ) -> Transcription:
        if not self.api_key:
            raise ValueError("api_key must be non-empty")
        if not self.endpoint:
            raise ValueError("endpoint must be non-empty")

        try:
            ws = await self.retry.run(self._open_session)
        except BaseException:
            stop.stop()
            raise

        try:
            return await self._stream(ws, chunks, stop)
        finally:
            stop.stop()
            with contextlib.suppress(Exception):
                await ws.close()

    async def _open_session(self) -> Any:
        ws = await self._connect()
        try:
            await self._configure(ws)
        except BaseException:
            with contextlib.suppress(Exception):
                await ws.close()
            raise
        return ws

    async def _connect(self) -> Any:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        try:
            ws = await websockets.connect(
                self.endpoint,
                additional_headers=headers,
                open_timeout=self.connect_timeout_s,
                max_size=None,
            )
        except Exception as exc:
            raise ConnectError(f"Failed to connect to transcription API at {self.endpoint}") from exc
        logger.debug("Connected to %s", self.endpoint)
        return ws

    async def _configure(self, ws: Any) -> None:
        try:
            await ws.send(session_update_message(self.session_config))
        except Exception as exc:
            raise HandshakeError("Failed to send transcription session configuration") from exc

        try:
            frame = await asyncio.wait_for(ws.recv(), timeout=self.handshake_timeout_s)
        except asyncio.TimeoutError as exc:
            raise HandshakeError(
                f"No transcription session acknowledgement within {self.handshake_timeout_s}s"
            ) from exc
        except ConnectionClosed as exc:
            raise HandshakeError(
                "Stream closed while waiting for transcription_session.updated event"
            ) from exc

        if isinstance(frame, bytes):
            raise HandshakeError(
                "Message from transcription API does not appear to contain valid text data"
            )
        try:
            event = parse_event(frame)
        except MalformedEventError as exc:
            raise HandshakeError("Failed to parse transcription session acknowledgement") from exc

        if isinstance(event, ErrorEvent):
            raise HandshakeError(
                f"Transcription session rejected: {event.message}"
            ) from ServerError(event.message, code=event.code)
        if not isinstance(event, (SessionCreated, SessionUpdated)):
            raise HandshakeError(
                "Expected transcription_session.updated message from transcription API, "
                f"but got {frame}"
            )
        logger.info("Transcription session created")

    async def _stream(
        self, ws: Any, chunks: AsyncIterator[AudioChunk], stop: StopTrigger
    ) -> Transcription:
        send_failures: list[BaseException] = []
        outbound = asyncio.create_task(self._send_audio(ws, chunks, send_failures))
        try:
            result = await self._receive(ws)
        finally:
            stop.stop()
            outbound.cancel()
            await asyncio.gather(outbound, return_exceptions=True)

        if send_failures:
            cause = send_failures[0]
            raise SendError(f"Failed to stream audio to transcription API: {cause}") from cause
        return result

    async def _send_audio(
        self,
        ws: Any,
        chunks: AsyncIterator[AudioChunk],
        failures: list[BaseException],
    ) -> None:
        sent = 0
        try:
            async for chunk in chunks:
                try:
                    await ws.send(audio_append_message(chunk))
                except Exception as exc:
                    logger.error("Could not send audio data: %s", exc)
                    failures.append(exc)
                    return
                sent += 1
                if sent == 1:
                    logger.info("First audio chunk sent (%d bytes)", len(chunk))
                elif sent % 100 == 0:
                    logger.debug("Audio chunks sent: %d", sent)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Audio source failed")
            failures.append(exc)
            return
        logger.debug("Audio source exhausted after %d chunks", sent)

    async def _receive(self, ws: Any) -> Transcription:
        result: Transcription = EmptyTranscription()
        try:
            async for frame in ws:
                if isinstance(frame, bytes):
                    logger.debug("Ignoring binary frame (%d bytes)", len(frame))
                    continue

                event = parse_event(frame)
                if isinstance(event, TranscriptionDelta):
                    logger.debug("Partial transcript: %r", event.delta)
                elif isinstance(event, UnknownEvent):
                    logger.debug("Ignoring unknown event %s", event.type)
                elif not isinstance(event, ErrorEvent):
                    logger.debug("Event received: %s", type(event).__name__)

                result = fold_event(result, event)
                if isinstance(event, TranscriptionCompleted):
                    logger.info("[STT] Transcript: %r (final)", event.transcript)
                    if self.finish_on_completed:
                        break
        except ConnectionClosedError as exc:
            raise ConnectError("Transcription connection closed unexpectedly") from exc
        return result
