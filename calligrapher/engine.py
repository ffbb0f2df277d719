"""Narrow interface to the external Ink runtime."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from .errors import StoryFileNotFound, StoryLoadError

logger = logging.getLogger(__name__)

BOM = "\ufeff"


class StoryEngine(Protocol):
    """The subset of an Ink runtime the session driver relies on."""

    def can_continue(self) -> bool: ...

    def continue_story(self) -> str: ...

    def current_choices(self) -> List[str]: ...

    def choose_choice_index(self, index: int) -> None: ...

    def current_tags(self) -> List[str]: ...

    def save_state(self) -> str: ...

    def load_state(self, state: str) -> None: ...


EngineFactory = Callable[[str], StoryEngine]


class InkEngine:
    """Adapter over the blade-ink runtime shipped in the ``bink`` package."""

    def __init__(self, source: str, seed: Optional[int] = None) -> None:
        try:
            from bink.story import Story
        except ImportError as exc:
            raise StoryLoadError(
                "The Ink runtime is not installed. Install it with: pip install bink"
            ) from exc
        self._story = Story(source)
        if seed is not None:
            self.apply_seed(seed)

    def can_continue(self) -> bool:
        return bool(self._story.can_continue())

    def continue_story(self) -> str:
        return self._story.cont() or ""

    def current_choices(self) -> List[str]:
        return [getattr(choice, "text", choice) for choice in self._story.get_current_choices()]

    def choose_choice_index(self, index: int) -> None:
        self._story.choose_choice_index(index)

    def current_tags(self) -> List[str]:
        return list(self._story.get_current_tags() or [])

    def save_state(self) -> str:
        return self._story.save_state()

    def load_state(self, state: str) -> None:
        self._story.load_state(state)

    def apply_seed(self, seed: int) -> None:
        # Ink keeps its RNG seed inside the serialized state.
        state = json.loads(self.save_state())
        state["storySeed"] = int(seed)
        state["previousRandom"] = 0
        self.load_state(json.dumps(state))
        logger.debug("Story seed set to %s", seed)


def read_compiled_story(path: Path | str) -> str:
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise StoryFileNotFound(f"File not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise StoryLoadError(f"Failed to read story: {exc}") from exc
    if content.startswith(BOM):
        content = content[len(BOM):]
    return content
