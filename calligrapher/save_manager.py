"""Save and restore play sessions as JSON documents."""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import EngineError, InvalidSaveFile, RestoreFailed, SaveError, StoryLoadError
from .presenter import TerminalPresenter
from .save_migrations import CURRENT_VERSION, SaveMigrationError, migrate_save_payload
from .session import NarrativeSession
from .settings import DEFAULT_SAVE_PATH

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("version", "saved_at", "compiled_story", "engine_state")


@dataclass
class SaveRecord:
    compiled_story: str
    engine_state: str
    saved_at: str
    version: str = CURRENT_VERSION
    story_name: Optional[str] = None
    seed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "saved_at": self.saved_at,
            "compiled_story": self.compiled_story,
            "engine_state": self.engine_state,
            "metadata": {
                "story_name": self.story_name,
                "seed": self.seed,
            },
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SaveRecord":
        missing = [key for key in REQUIRED_FIELDS if payload.get(key) in (None, "")]
        if missing:
            raise InvalidSaveFile(f"Save file is missing: {', '.join(missing)}")
        for key in ("compiled_story", "engine_state"):
            if not isinstance(payload[key], str):
                raise InvalidSaveFile(f"Save field '{key}' must be a string.")
        metadata = payload.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        seed = metadata.get("seed")
        return cls(
            compiled_story=payload["compiled_story"],
            engine_state=payload["engine_state"],
            saved_at=str(payload["saved_at"]),
            version=str(payload["version"]),
            story_name=metadata.get("story_name"),
            seed=seed if isinstance(seed, int) else None,
        )


class SaveManager:
    """Write session snapshots to disk and rebuild sessions from them."""

    BACKUP_SUFFIX = ".bak"

    def __init__(
        self,
        presenter: TerminalPresenter,
        *,
        default_path: Path | str = DEFAULT_SAVE_PATH,
        story_name: Optional[str] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.presenter = presenter
        self.default_path = Path(default_path)
        self.story_name = story_name
        self.seed = seed

    # ---------- Public API ----------
    def build_record(self, session: NarrativeSession) -> SaveRecord:
        compiled_story, engine_state = session.snapshot()
        return SaveRecord(
            compiled_story=compiled_story,
            engine_state=engine_state,
            saved_at=datetime.now(timezone.utc).isoformat(),
            story_name=self.story_name,
            seed=self.seed,
        )

    def save(self, session: NarrativeSession, path: Path | str | None = None) -> Optional[Path]:
        if not session.loaded:
            raise SaveError("There is no active story to save.")
        try:
            record = self.build_record(session)
        except EngineError as exc:
            self.presenter.error(f"Failed to save game: {exc}")
            return None
        if path is None:
            path = self.presenter.ask("Save file path", str(self.default_path))
        save_path = Path(path).expanduser()
        try:
            self._write_payload(save_path, record.to_dict())
        except OSError as exc:
            logger.debug("Save to %s failed", save_path, exc_info=True)
            self.presenter.error(f"Failed to save game: {exc}")
            return None
        self.presenter.success(f"Game saved to: {save_path}")
        return save_path

    def read(self, path: Path | str) -> SaveRecord:
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError as exc:
            raise RestoreFailed(f"Save file not found: {path}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise RestoreFailed(f"Could not read save file: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise RestoreFailed(f"Invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise InvalidSaveFile("Save file must contain a JSON object.")
        try:
            payload = migrate_save_payload(payload)
        except SaveMigrationError as exc:
            raise InvalidSaveFile(str(exc)) from exc
        return SaveRecord.from_dict(payload)

    def restore(self, path: Path | str, session: NarrativeSession) -> SaveRecord:
        record = self.read(path)
        try:
            session.restore(record.compiled_story, record.engine_state)
        except StoryLoadError as exc:
            raise RestoreFailed(str(exc)) from exc
        except Exception as exc:
            raise RestoreFailed(f"Failed to apply saved state: {exc}") from exc
        if record.story_name and not self.story_name:
            self.story_name = record.story_name
        if record.seed is not None and self.seed is None:
            self.seed = record.seed
        logger.info("Restored save from %s (saved %s)", path, record.saved_at)
        return record

    # ---------- Internal helpers ----------
    def _write_payload(self, save_path: Path, payload: Dict[str, Any]) -> None:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = save_path.with_suffix(save_path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
                handle.write("\n")
            if save_path.exists():
                shutil.copy2(save_path, save_path.with_suffix(save_path.suffix + self.BACKUP_SUFFIX))
            tmp_path.replace(save_path)
        except OSError:
            if tmp_path.exists():
                tmp_path.unlink()
            raise
