"""Pick a playback strategy from a story file's extension."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class StoryFormat(Enum):
    COMPILED_JSON = "compiled-json"
    INK_SOURCE = "ink-source"
    PLAIN_TEXT = "plain-text"


EXTENSIONS: Dict[str, StoryFormat] = {
    ".json": StoryFormat.COMPILED_JSON,
    ".ink": StoryFormat.INK_SOURCE,
    ".txt": StoryFormat.PLAIN_TEXT,
    ".md": StoryFormat.PLAIN_TEXT,
}

SUPPORTED_FORMATS: Tuple[Tuple[str, str], ...] = (
    (".ink", "Ink source files (requires inklecate)"),
    (".json", "Compiled Ink stories"),
    (".txt", "Simple text adventures"),
    (".md", "Simple text adventures"),
)


def classify(path: Path | str) -> Optional[StoryFormat]:
    suffix = Path(path).suffix.lower()
    story_format = EXTENSIONS.get(suffix)
    logger.debug("Classified %s as %s", path, story_format.value if story_format else "unsupported")
    return story_format


def describe_supported_formats() -> List[str]:
    lines = ["Supported formats:"]
    for suffix, label in SUPPORTED_FORMATS:
        lines.append(f"  - {suffix:<5} {label}")
    return lines
