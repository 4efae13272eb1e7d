from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import replace
from pathlib import Path

from jarvis_voice.app.record_sample import RecordSampleRunner
from jarvis_voice.app.wiring import (
    create_audio_recorder,
    create_secret_store,
    create_speech_listener,
    resolve_replay_file,
)
from jarvis_voice.config.paths import default_log_path, default_settings_path
from jarvis_voice.config.settings import AppSettings, load_settings
from jarvis_voice.core.errors import JarvisVoiceError, describe_error
from jarvis_voice.domain.models import EmptyTranscription, transcription_text
from jarvis_voice.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jarvis-voice")
    parser.add_argument("--version", action="store_true", help="Print version and exit")

    parser.add_argument(
        "--config",
        type=Path,
        default=default_settings_path(),
        help="Path to settings JSON (default: user config dir)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log-file",
        type=Path,
        nargs="?",
        const=default_log_path(),
        default=None,
        help="Also write logs to a rotating file (default path: user config dir)",
    )

    sub = parser.add_subparsers(dest="command")

    listen = sub.add_parser("listen", help="Transcribe one spoken utterance and print it")
    listen.add_argument(
        "--replay-file",
        type=Path,
        default=None,
        help="Replay raw s16le/24kHz/mono PCM from this file instead of the microphone",
    )

    sample = sub.add_parser("record-sample", help="Record raw PCM from the microphone")
    sample.add_argument("--seconds", type=float, default=5.0, help="Recording length")
    sample.add_argument("--output", type=Path, default=Path("output.pcm"), help="Output file")
    sample.add_argument(
        "--replay-file",
        type=Path,
        default=None,
        help="Read from a replay file instead of the microphone",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__

        print(__version__)
        return 0

    if args.command is None:
        parser.print_help()
        return 2

    try:
        settings = _load_settings_or_default(args.config)
    except ValueError as exc:
        print(f"Error: invalid settings file {args.config}: {exc}", flush=True)
        return 2

    if args.log_file is not None:
        settings.logging = replace(settings.logging, file=str(args.log_file))
    configure_logging(settings.logging, verbose=args.verbose)

    if args.command == "listen":
        return _run_listen(settings, config_path=args.config, replay_file=args.replay_file)

    if args.command == "record-sample":
        return _run_record_sample(
            settings,
            seconds=args.seconds,
            output=args.output,
            replay_file=args.replay_file,
        )

    parser.print_help()
    return 2


def _run_listen(settings: AppSettings, *, config_path: Path, replay_file: Path | None) -> int:
    try:
        secrets = create_secret_store(settings.secrets, config_path=config_path)
        listener = create_speech_listener(
            settings,
            secrets=secrets,
            replay_file=resolve_replay_file(settings, replay_file),
        )
    except ValueError as exc:
        print(f"Error: failed to initialize transcription: {exc}", flush=True)
        return 2

    try:
        result = asyncio.run(listener.listen_to_input())
    except JarvisVoiceError as exc:
        logger.error("Listening failed: %s", describe_error(exc))
        print(f"Error: {describe_error(exc)}", flush=True)
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        listener.close()

    if isinstance(result, EmptyTranscription):
        logger.info("No speech recognized")
    print(transcription_text(result), flush=True)
    return 0


def _run_record_sample(
    settings: AppSettings,
    *,
    seconds: float,
    output: Path,
    replay_file: Path | None,
) -> int:
    recorder = create_audio_recorder(settings, replay_file=resolve_replay_file(settings, replay_file))
    runner = RecordSampleRunner(recorder=recorder, output=output, seconds=seconds)
    print(f"Recording for {seconds:g} seconds...", flush=True)
    try:
        summary = runner.run()
    except ValueError as exc:
        print(f"Error: {exc}", flush=True)
        return 2
    except JarvisVoiceError as exc:
        print(f"Error: {describe_error(exc)}", flush=True)
        return 1
    finally:
        recorder.close()

    print(f"Saved {summary.total_bytes} bytes ({summary.total_mb:.2f} MB) to {summary.path}")
    if summary.level is not None:
        print(
            f"Level: rms={summary.level.rms:.4f} peak={summary.level.peak:.4f} "
            f"duration={summary.level.duration_s:.2f}s"
        )
    print(f"Play it back with: {summary.playback_hint()}", flush=True)
    return 0


def _load_settings_or_default(path: Path) -> AppSettings:
    if path.exists():
        return load_settings(path)
    return AppSettings()


if __name__ == "__main__":
    raise SystemExit(main())
