from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path

from jarvis_voice.config.settings import AppSettings, SecretsBackend, SecretsSettings
from jarvis_voice.core.audio.live import resolve_input_device
from jarvis_voice.core.audio.recorder import AudioRecorder
from jarvis_voice.core.storage.secrets import (
    EncryptedFileSecretStore,
    KeyringSecretStore,
    SecretStore,
    mask_secret,
)
from jarvis_voice.core.stt.listener import SpeechListener
from jarvis_voice.core.stt.retry import RetryPolicy
from jarvis_voice.providers.stt.openai_events import SessionConfig
from jarvis_voice.providers.stt.openai_realtime import OpenAIRealtimeTranscriber

logger = logging.getLogger(__name__)

SECRETS_PASSPHRASE_ENV = "JARVIS_VOICE_SECRETS_PASSPHRASE"
REPLAY_FILE_ENV = "JARVIS_VOICE_REPLAY_FILE"
OPENAI_API_KEY_SECRET = "openai_api_key"
OPENAI_API_KEY_ENV = "OPENAI_API_KEY"


def create_secret_store(
    settings: SecretsSettings,
    *,
    config_path: Path,
    passphrase: str | None = None,
) -> SecretStore:
    passphrase = passphrase or os.getenv(SECRETS_PASSPHRASE_ENV)

    if settings.backend == SecretsBackend.KEYRING:
        return KeyringSecretStore()

    if settings.backend == SecretsBackend.ENCRYPTED_FILE:
        if not passphrase:
            raise ValueError(
                "encrypted_file secrets backend requires a passphrase; "
                f"set {SECRETS_PASSPHRASE_ENV} or pass passphrase explicitly"
            )
        path = Path(settings.encrypted_file_path)
        if not path.is_absolute():
            path = config_path.parent / path
        return EncryptedFileSecretStore(path=path, passphrase=passphrase)

    raise ValueError(f"Unsupported secrets backend: {settings.backend}")


def require_secret(secrets: SecretStore, *, key: str, env_var: str) -> str:
    value = None
    try:
        value = secrets.get(key)
    except Exception as exc:
        # Fall back to the environment when the keyring is unavailable.
        logger.warning("Secret store lookup for %s failed: %s", key, exc)
    if value:
        logger.debug("Using %s from the secret store (%s)", key, mask_secret(value))
        return value
    env = os.getenv(env_var)
    if env:
        logger.debug("Using %s from %s (%s)", key, env_var, mask_secret(env))
        return env
    raise ValueError(f"Missing secret `{key}` (or env var {env_var})")


def resolve_replay_file(settings: AppSettings, override: Path | None = None) -> Path | None:
    if override is not None:
        return override
    env = os.getenv(REPLAY_FILE_ENV)
    if env:
        return Path(env)
    if settings.audio.replay_file:
        return Path(settings.audio.replay_file)
    return None


def create_audio_recorder(settings: AppSettings, *, replay_file: Path | None = None) -> AudioRecorder:
    if replay_file is not None:
        logger.info("Replaying audio from %s", replay_file)
        return AudioRecorder.create(replay_file, block_size=settings.audio.replay_block_size)

    device = None
    with contextlib.suppress(Exception):
        device = resolve_input_device(
            host_api=settings.audio.input_host_api,
            device=settings.audio.input_device,
        )
    return AudioRecorder.create(device=device)


def create_transcriber(settings: AppSettings, *, secrets: SecretStore) -> OpenAIRealtimeTranscriber:
    api_key = require_secret(secrets, key=OPENAI_API_KEY_SECRET, env_var=OPENAI_API_KEY_ENV)
    t = settings.transcription
    return OpenAIRealtimeTranscriber(
        api_key=api_key,
        endpoint=t.endpoint,
        session_config=SessionConfig(
            noise_reduction=t.noise_reduction,
            language=t.language or None,
            model=t.model or None,
            prompt=t.prompt or None,
            turn_detection=t.turn_detection,
        ),
        connect_timeout_s=t.connect_timeout_s,
        handshake_timeout_s=t.handshake_timeout_s,
        finish_on_completed=t.finish_on_completed,
        retry=RetryPolicy(max_attempts=t.max_attempts, backoff_s=t.retry_backoff_s),
    )


def create_speech_listener(
    settings: AppSettings,
    *,
    secrets: SecretStore,
    replay_file: Path | None = None,
) -> SpeechListener:
    backend = create_transcriber(settings, secrets=secrets)
    recorder = create_audio_recorder(settings, replay_file=replay_file)
    return SpeechListener(
        recorder=recorder,
        backend=backend,
        bridge_capacity=settings.audio.bridge_capacity,
    )
