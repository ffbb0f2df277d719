"""Platform helpers for locating tools and per-user files."""

from __future__ import annotations

import os
import platform as _platform
import sys
from pathlib import Path

IS_WINDOWS = sys.platform.startswith("win")
APP_NAME = "calligrapher"


def machine() -> str:
    return _platform.machine().lower()


def system() -> str:
    return _platform.system().lower()


def user_config_dir() -> Path:
    if IS_WINDOWS:
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "Calligrapher"
        return Path.home() / "Calligrapher"
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / APP_NAME
    return Path.home() / ".config" / APP_NAME
