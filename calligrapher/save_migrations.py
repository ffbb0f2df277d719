"""Save migration registry for Calligrapher."""

from __future__ import annotations

import copy
from typing import Callable, Dict

CURRENT_VERSION = "2.0"


class SaveMigrationError(Exception):
    """Raised when a save cannot be migrated to the latest format."""


Migration = Callable[[Dict], Dict]


def _migrate_v1_to_v2(payload: Dict) -> Dict:
    # 1.0 saves use camelCase keys.
    metadata = payload.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    upgraded = {
        "version": "2.0",
        "saved_at": payload.get("savedAt"),
        "compiled_story": payload.get("storyJson"),
        "engine_state": payload.get("state"),
        "metadata": {
            "story_name": metadata.get("story_name"),
            "seed": metadata.get("seed"),
        },
    }
    return upgraded


MIGRATIONS: Dict[str, Migration] = {
    "1.0": _migrate_v1_to_v2,
}


def migrate_save_payload(payload: Dict, target_version: str = CURRENT_VERSION) -> Dict:
    if not isinstance(payload, dict):
        raise SaveMigrationError("Save payload was not an object.")

    version = payload.get("version")
    if not isinstance(version, str) or not version:
        raise SaveMigrationError("Save version missing or invalid.")

    current = copy.deepcopy(payload)
    seen = set()
    while version != target_version:
        if version in seen:
            raise SaveMigrationError(f"Migration loop detected at save format {version}.")
        seen.add(version)
        migrator = MIGRATIONS.get(version)
        if migrator is None:
            raise SaveMigrationError(f"Unsupported save format version: {version!r}")
        current = migrator(current)
        version = current.get("version")
        if not isinstance(version, str):
            raise SaveMigrationError("Migration produced an invalid format version.")

    return current
