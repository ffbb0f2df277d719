"""Poll a file's content hash and react when it changes."""

from __future__ import annotations

import hashlib
import logging
import time
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0


def file_digest(path: Path | str) -> Optional[str]:
    try:
        data = Path(path).read_bytes()
    except FileNotFoundError:
        return None
    return hashlib.md5(data).hexdigest()


class FileWatcher:
    """Call ``on_change`` once for every distinct content change of ``path``.

    Edits landing between two polls coalesce into a single callback. A file
    that disappears is reported once and picked up again when it returns.
    """

    def __init__(
        self,
        path: Path | str,
        on_change: Callable[[Path], None],
        *,
        interval: float = DEFAULT_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        on_missing: Optional[Callable[[Path], None]] = None,
    ) -> None:
        self.path = Path(path)
        self.on_change = on_change
        self.on_missing = on_missing
        self.interval = interval
        self.sleep = sleep
        self.digest = file_digest(self.path)

    def poll(self) -> bool:
        current = file_digest(self.path)
        if current == self.digest:
            return False
        self.digest = current
        if current is None:
            logger.info("%s disappeared", self.path)
            if self.on_missing is not None:
                self.on_missing(self.path)
            return False
        logger.info("%s changed (md5 %s)", self.path, current)
        self.on_change(self.path)
        return True

    def run(self, max_polls: Optional[int] = None) -> int:
        changes = 0
        polls = 0
        while max_polls is None or polls < max_polls:
            self.sleep(self.interval)
            polls += 1
            if self.poll():
                changes += 1
        return changes
