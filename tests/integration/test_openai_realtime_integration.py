from __future__ import annotations

import asyncio
import os

import pytest

pytestmark = pytest.mark.skipif(
    os.getenv("INTEGRATION") != "1", reason="set INTEGRATION=1 to run integration tests"
)


@pytest.mark.asyncio
async def test_openai_realtime_transcription_smoke():
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        pytest.skip("missing env var OPENAI_API_KEY")

    from jarvis_voice.core.audio.stop import StopTrigger
    from jarvis_voice.domain.models import RecognizedText
    from jarvis_voice.providers.stt.openai_events import SessionConfig
    from jarvis_voice.providers.stt.openai_realtime import OpenAIRealtimeTranscriber

    backend = OpenAIRealtimeTranscriber(
        api_key=api_key,
        endpoint=os.getenv(
            "OPENAI_REALTIME_ENDPOINT", "wss://api.openai.com/v1/realtime?intent=transcription"
        ),
        session_config=SessionConfig(
            language=os.getenv("OPENAI_STT_LANGUAGE", "en"),
            model=os.getenv("OPENAI_STT_MODEL", "gpt-4o-mini-transcribe"),
        ),
        finish_on_completed=True,
    )

    replay = os.getenv("OPENAI_STT_REPLAY_FILE")

    async def _chunks():
        if replay:
            with open(replay, "rb") as f:
                while block := f.read(4096):
                    yield block
                    await asyncio.sleep(0.05)
        # Trailing silence so server VAD commits the buffer.
        silence = b"\0" * 4800
        for _ in range(40):
            yield silence
            await asyncio.sleep(0.1)

    stop = StopTrigger()

    if not replay:
        # Silence never completes a transcript; this only exercises connect and handshake.
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(backend.transcribe(_chunks(), stop), timeout=5.0)
        assert stop.has_stopped()
        return

    result = await asyncio.wait_for(backend.transcribe(_chunks(), stop), timeout=30.0)
    assert isinstance(result, RecognizedText)
    assert result.text
