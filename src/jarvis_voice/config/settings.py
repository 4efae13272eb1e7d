from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from jarvis_voice.providers.stt.openai_events import NoiseReduction, TurnDetection
from jarvis_voice.providers.stt.openai_realtime import DEFAULT_ENDPOINT


class SecretsBackend(str, Enum):
    KEYRING = "keyring"
    ENCRYPTED_FILE = "encrypted_file"


@dataclass(slots=True)
class AudioSettings:
    replay_file: str = ""
    input_host_api: str = ""
    input_device: str = ""
    replay_block_size: int = 4096
    bridge_capacity: int = 1024

    def validate(self) -> None:
        if self.replay_file is None:
            raise ValueError("replay_file must be a string")
        if self.input_host_api is None:
            raise ValueError("input_host_api must be a string")
        if self.input_device is None:
            raise ValueError("input_device must be a string")
        if self.replay_block_size <= 0:
            raise ValueError("replay_block_size must be > 0")
        if self.bridge_capacity <= 0:
            raise ValueError("bridge_capacity must be > 0")


@dataclass(slots=True)
class TranscriptionSettings:
    endpoint: str = DEFAULT_ENDPOINT
    model: str = "gpt-4o-mini-transcribe"
    language: str = "en"
    prompt: str = "expect words related to technology"
    noise_reduction: NoiseReduction = NoiseReduction.NEAR_FIELD
    turn_detection: TurnDetection = TurnDetection.SERVER_VAD
    connect_timeout_s: float = 10.0
    handshake_timeout_s: float = 10.0
    max_attempts: int = 1
    retry_backoff_s: float = 0.5
    finish_on_completed: bool = True

    def validate(self) -> None:
        if not self.endpoint or not self.endpoint.startswith(("ws://", "wss://")):
            raise ValueError("endpoint must be a ws:// or wss:// URL")
        if not isinstance(self.noise_reduction, NoiseReduction):
            raise ValueError("invalid noise_reduction")
        if not isinstance(self.turn_detection, TurnDetection):
            raise ValueError("invalid turn_detection")
        if self.connect_timeout_s <= 0:
            raise ValueError("connect_timeout_s must be > 0")
        if self.handshake_timeout_s <= 0:
            raise ValueError("handshake_timeout_s must be > 0")
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if self.retry_backoff_s < 0:
            raise ValueError("retry_backoff_s must be >= 0")


@dataclass(slots=True)
class SecretsSettings:
    backend: SecretsBackend = SecretsBackend.KEYRING
    encrypted_file_path: str = "secrets.json"

    def validate(self) -> None:
        if not isinstance(self.backend, SecretsBackend):
            raise ValueError("invalid secrets backend")
        if self.backend == SecretsBackend.ENCRYPTED_FILE and not self.encrypted_file_path:
            raise ValueError("encrypted_file_path must be set for encrypted_file backend")


@dataclass(slots=True)
class LoggingSettings:
    level: str = "INFO"
    file: str = ""
    max_bytes: int = 1_000_000
    backup_count: int = 0

    def validate(self) -> None:
        if not isinstance(logging.getLevelName(self.level.upper()), int):
            raise ValueError(f"unknown log level: {self.level}")
        if self.max_bytes <= 0:
            raise ValueError("max_bytes must be > 0")
        if self.backup_count < 0:
            raise ValueError("backup_count must be >= 0")


@dataclass(slots=True)
class AppSettings:
    audio: AudioSettings = field(default_factory=AudioSettings)
    transcription: TranscriptionSettings = field(default_factory=TranscriptionSettings)
    secrets: SecretsSettings = field(default_factory=SecretsSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def validate(self) -> None:
        self.audio.validate()
        self.transcription.validate()
        self.secrets.validate()
        self.logging.validate()


def to_dict(settings: AppSettings) -> dict[str, Any]:
    t = settings.transcription
    return {
        "audio": {
            "replay_file": settings.audio.replay_file,
            "input_host_api": settings.audio.input_host_api,
            "input_device": settings.audio.input_device,
            "replay_block_size": settings.audio.replay_block_size,
            "bridge_capacity": settings.audio.bridge_capacity,
        },
        "transcription": {
            "endpoint": t.endpoint,
            "model": t.model,
            "language": t.language,
            "prompt": t.prompt,
            "noise_reduction": t.noise_reduction.value,
            "turn_detection": t.turn_detection.value,
            "connect_timeout_s": t.connect_timeout_s,
            "handshake_timeout_s": t.handshake_timeout_s,
            "max_attempts": t.max_attempts,
            "retry_backoff_s": t.retry_backoff_s,
            "finish_on_completed": t.finish_on_completed,
        },
        "secrets": {
            "backend": settings.secrets.backend.value,
            "encrypted_file_path": settings.secrets.encrypted_file_path,
        },
        "logging": {
            "level": settings.logging.level,
            "file": settings.logging.file,
            "max_bytes": settings.logging.max_bytes,
            "backup_count": settings.logging.backup_count,
        },
    }


def from_dict(data: dict[str, Any]) -> AppSettings:
    audio_data = data.get("audio") or {}
    t_data = data.get("transcription") or {}
    secrets_data = data.get("secrets") or {}
    logging_data = data.get("logging") or {}
    defaults = TranscriptionSettings()

    settings = AppSettings(
        audio=AudioSettings(
            replay_file=str(audio_data.get("replay_file") or ""),
            input_host_api=str(audio_data.get("input_host_api") or ""),
            input_device=str(audio_data.get("input_device") or ""),
            replay_block_size=int(audio_data.get("replay_block_size", 4096)),
            bridge_capacity=int(audio_data.get("bridge_capacity", 1024)),
        ),
        transcription=TranscriptionSettings(
            endpoint=str(t_data.get("endpoint", defaults.endpoint)),
            model=str(t_data.get("model", defaults.model)),
            language=str(t_data.get("language", defaults.language)),
            prompt=str(t_data.get("prompt", defaults.prompt)),
            noise_reduction=NoiseReduction(
                t_data.get("noise_reduction", defaults.noise_reduction.value)
            ),
            turn_detection=TurnDetection(t_data.get("turn_detection", defaults.turn_detection.value)),
            connect_timeout_s=float(t_data.get("connect_timeout_s", defaults.connect_timeout_s)),
            handshake_timeout_s=float(
                t_data.get("handshake_timeout_s", defaults.handshake_timeout_s)
            ),
            max_attempts=int(t_data.get("max_attempts", defaults.max_attempts)),
            retry_backoff_s=float(t_data.get("retry_backoff_s", defaults.retry_backoff_s)),
            finish_on_completed=bool(
                t_data.get("finish_on_completed", defaults.finish_on_completed)
            ),
        ),
        secrets=SecretsSettings(
            backend=SecretsBackend(secrets_data.get("backend", SecretsBackend.KEYRING.value)),
            encrypted_file_path=str(secrets_data.get("encrypted_file_path", "secrets.json")),
        ),
        logging=LoggingSettings(
            level=str(logging_data.get("level", "INFO")),
            file=str(logging_data.get("file") or ""),
            max_bytes=int(logging_data.get("max_bytes", 1_000_000)),
            backup_count=int(logging_data.get("backup_count", 0)),
        ),
    )
    settings.validate()
    return settings


def load_settings(path: Path) -> AppSettings:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("settings file must contain a JSON object")
    return from_dict(raw)


def save_settings(path: Path, settings: AppSettings) -> None:
    settings.validate()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(to_dict(settings), ensure_ascii=False, indent=2), encoding="utf-8")
