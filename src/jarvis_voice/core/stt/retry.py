from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from jarvis_voice.core.errors import ConnectError, HandshakeError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry policy for opening a transcription session (connect + handshake).

    Streaming itself is never retried. The default is a single attempt.
    """

    max_attempts: int = 1
    backoff_s: float = 0.5

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if self.backoff_s < 0:
            raise ValueError("backoff_s must be >= 0")

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except (ConnectError, HandshakeError) as exc:
                if attempt >= self.max_attempts:
                    raise
                delay = self.backoff_s * attempt
                logger.warning(
                    "Opening transcription session failed (attempt %d/%d): %s; retrying in %.1fs",
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
