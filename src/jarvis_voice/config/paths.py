from __future__ import annotations

import os
import sys
from pathlib import Path

APP_DIR_NAME = "jarvis-voice"
CONFIG_DIR_ENV = "JARVIS_VOICE_CONFIG_DIR"
SETTINGS_FILENAME = "settings.json"
LOG_FILENAME = "jarvis-voice.log"


def _platform_config_base() -> Path:
    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
        return Path(base) if base else Path.home() / "AppData" / "Local"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    base = os.getenv("XDG_CONFIG_HOME")
    return Path(base) if base else Path.home() / ".config"


def user_config_dir(*, app_dir_name: str = APP_DIR_NAME) -> Path:
    """Per-user directory for settings, secrets and logs.

    ``JARVIS_VOICE_CONFIG_DIR`` replaces the whole path when set.
    """
    override = os.getenv(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return _platform_config_base() / app_dir_name


def default_settings_path() -> Path:
    return user_config_dir() / SETTINGS_FILENAME


def default_log_path() -> Path:
    return user_config_dir() / LOG_FILENAME
