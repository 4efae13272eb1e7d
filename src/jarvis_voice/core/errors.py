from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jarvis_voice.core.audio.format import SoundSpec


class JarvisVoiceError(RuntimeError):
    """Base class for fatal capture/transcription failures."""


class CaptureError(JarvisVoiceError):
    """The audio subsystem or replay file could not be opened."""


class FormatMismatchError(JarvisVoiceError):
    def __init__(self, requested: "SoundSpec", negotiated: "SoundSpec") -> None:
        self.requested = requested
        self.negotiated = negotiated
        super().__init__(
            f"Could not record audio in the required format {requested}. "
            f"Your device instead records in format {negotiated}"
        )


class TranscriptionError(JarvisVoiceError):
    pass


class ConnectError(TranscriptionError):
    pass


class HandshakeError(TranscriptionError):
    pass


class ServerError(TranscriptionError):
    def __init__(self, message: str, *, code: str | None = None) -> None:
        self.code = code
        self.message = message
        text = f"Transcription API error: {message}"
        if code:
            text += f" (code: {code})"
        super().__init__(text)


class MalformedEventError(TranscriptionError):
    pass


class SendError(TranscriptionError):
    pass


def describe_error(exc: BaseException) -> str:
    """Render an exception and its causes on one line."""
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current) or type(current).__name__
        parts.append(text)
        current = current.__cause__
    return ": ".join(parts)
