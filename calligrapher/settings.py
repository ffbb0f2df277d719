"""Settings persistence for Calligrapher."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .platform import user_config_dir

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CALLIGRAPHER_CONFIG"
DEFAULT_SAVE_PATH = "calligrapher-save.json"


def default_settings_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return user_config_dir() / "settings.json"


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


@dataclass
class Settings:
    """Runtime configuration that persists between sessions."""

    color: bool = True
    compile_timeout: float = 60.0
    watch_interval: float = 1.0
    default_save_path: str = DEFAULT_SAVE_PATH
    compiler_path: Optional[str] = None
    mono_path: str = "mono"

    def clamp(self) -> "Settings":
        self.color = bool(self.color)
        # 0 disables the compiler timeout.
        self.compile_timeout = _clamp(float(self.compile_timeout), 0.0, 3600.0)
        self.watch_interval = _clamp(float(self.watch_interval), 0.1, 60.0)
        self.default_save_path = str(self.default_save_path or DEFAULT_SAVE_PATH)
        if self.compiler_path is not None:
            self.compiler_path = str(self.compiler_path).strip() or None
        self.mono_path = str(self.mono_path or "mono")
        return self

    def copy(self) -> "Settings":
        return Settings.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "Settings":
        if not isinstance(data, dict):
            return cls()

        def _as_float(key: str, default: float) -> float:
            try:
                return float(data.get(key, default))
            except (TypeError, ValueError):
                return default

        def _as_bool(key: str, default: bool) -> bool:
            value = data.get(key, default)
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in {"true", "1", "yes", "on"}:
                    return True
                if lowered in {"false", "0", "no", "off"}:
                    return False
            return bool(value) if value is not None else default

        compiler_path = data.get("compiler_path")
        settings = cls(
            color=_as_bool("color", True),
            compile_timeout=_as_float("compile_timeout", 60.0),
            watch_interval=_as_float("watch_interval", 1.0),
            default_save_path=str(data.get("default_save_path") or DEFAULT_SAVE_PATH),
            compiler_path=str(compiler_path) if compiler_path else None,
            mono_path=str(data.get("mono_path") or "mono"),
        )
        return settings.clamp()


def load_settings(path: Path | str | None = None) -> Settings:
    path = Path(path) if path is not None else default_settings_path()
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return Settings()
    except (OSError, json.JSONDecodeError, TypeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return Settings()
    return Settings.from_dict(data)


def save_settings(settings: Settings, path: Path | str | None = None) -> Settings:
    path = Path(path) if path is not None else default_settings_path()
    sanitized = settings.copy().clamp()
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp", encoding="utf-8"
        ) as tmp_file:
            json.dump(sanitized.to_dict(), tmp_file, indent=2)
            tmp_file.write("\n")
            tmp_path = Path(tmp_file.name)
        os.replace(str(tmp_path), str(path))
    except OSError as exc:
        logger.warning("Failed to save settings to %s: %s", path, exc)
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
    return sanitized
