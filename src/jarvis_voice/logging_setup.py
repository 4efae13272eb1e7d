from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from jarvis_voice.config.settings import LoggingSettings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


def configure_logging(settings: LoggingSettings, *, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.getLevelName(settings.level.upper())
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if settings.file:
        path = Path(settings.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    # websockets logs every frame at DEBUG.
    logging.getLogger("websockets").setLevel(max(level, logging.INFO))
