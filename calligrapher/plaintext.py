"""Self-contained interpreter for simple ``=== section ===`` adventures.

The format is a small subset of Ink::

    === start ===
    You stand at a fork in the road.
    * [Go left] -> left
    * [Go right] -> right

    === left ===
    The path ends at a quiet lake.

Narrative lines are printed in order, choice lines become menu entries and a
section without choices ends the playthrough.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set, Tuple

from .errors import StoryFileNotFound, StoryLoadError, UnresolvedSectionTarget
from .presenter import QUIT, TerminalPresenter
from .session import PlayOutcome

logger = logging.getLogger(__name__)

START_SECTION = "start"
SECTION_PATTERN = re.compile(r"^===\s*(?P<name>[^=\s][^=]*?)\s*=*\s*$")
CHOICE_PATTERN = re.compile(r"^\*\s*(?P<label>.*?)\s*->\s*(?P<target>\S+)\s*$")


@dataclass(frozen=True)
class Choice:
    text: str
    target: str


def parse_choice(line: str) -> Optional[Choice]:
    match = CHOICE_PATTERN.match(line.strip())
    if not match:
        return None
    target = match.group("target")
    label = match.group("label").replace("[", "").replace("]", "").strip()
    return Choice(text=label or target, target=target)


@dataclass(frozen=True)
class Section:
    name: str
    lines: Tuple[str, ...] = ()

    @property
    def narrative(self) -> List[str]:
        return [line for line in self.lines if parse_choice(line) is None]

    @property
    def choices(self) -> List[Choice]:
        parsed = (parse_choice(line) for line in self.lines)
        return [choice for choice in parsed if choice is not None]


@dataclass(frozen=True)
class PlainTextStory:
    sections: Mapping[str, Section]

    def __contains__(self, name: str) -> bool:
        return name in self.sections

    def section(self, name: str, *, origin: Optional[str] = None) -> Section:
        try:
            return self.sections[name]
        except KeyError:
            raise UnresolvedSectionTarget(name, origin) from None

    def targets(self) -> List[Tuple[str, str]]:
        return [
            (section.name, choice.target)
            for section in self.sections.values()
            for choice in section.choices
        ]


def parse_story(text: str) -> PlainTextStory:
    grouped: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        marker = SECTION_PATTERN.match(line)
        if marker:
            current = marker.group("name")
            if current in grouped:
                logger.warning("Section '%s' is defined more than once; keeping the last one.", current)
            grouped[current] = []
            continue
        if current is None:
            logger.debug("Ignoring line outside any section: %s", line)
            continue
        grouped[current].append(line)
    sections = {name: Section(name=name, lines=tuple(lines)) for name, lines in grouped.items()}
    return PlainTextStory(sections=sections)


def serialize_story(story: PlainTextStory) -> str:
    blocks = []
    for section in story.sections.values():
        blocks.append("\n".join([f"=== {section.name} ===", *section.lines]))
    return "\n\n".join(blocks) + "\n"


def load_story(path: Path | str) -> PlainTextStory:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except FileNotFoundError as exc:
        raise StoryFileNotFound(f"File not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise StoryLoadError(f"Failed to read story: {exc}") from exc
    return parse_story(text)


def unresolved_targets(story: PlainTextStory) -> List[Tuple[str, str]]:
    return [(origin, target) for origin, target in story.targets() if target not in story]


def unreachable_sections(story: PlainTextStory, start: str = START_SECTION) -> List[str]:
    if start not in story:
        return sorted(story.sections)
    visited: Set[str] = set()
    stack = [start]
    while stack:
        current = stack.pop()
        if current in visited or current not in story:
            continue
        visited.add(current)
        stack.extend(choice.target for choice in story.sections[current].choices)
    return sorted(set(story.sections) - visited)


def play_story(
    story: PlainTextStory,
    presenter: TerminalPresenter,
    start: str = START_SECTION,
) -> PlayOutcome:
    current = start
    origin: Optional[str] = None
    while True:
        try:
            section = story.section(current, origin=origin)
        except UnresolvedSectionTarget as exc:
            presenter.error(str(exc))
            return PlayOutcome.BROKEN

        for line in section.narrative:
            presenter.show_text(line)

        choices = section.choices
        if not choices:
            presenter.notice("[End of this section]")
            return PlayOutcome.ENDED

        selection = presenter.choose([choice.text for choice in choices])
        if selection == QUIT:
            presenter.notice("Thanks for playing!")
            return PlayOutcome.QUIT
        origin, current = current, choices[selection].target
        logger.debug("Moving from %s to %s", origin, current)
