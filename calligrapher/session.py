"""Drive one loaded Ink story turn by turn."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple

from .engine import EngineFactory, InkEngine, StoryEngine
from .errors import EngineError, InvalidChoice, SaveError, StoryLoadError
from .presenter import QUIT, SAVE, TerminalPresenter

if TYPE_CHECKING:
    from .save_manager import SaveManager

logger = logging.getLogger(__name__)


class Phase(Enum):
    IDLE = "idle"
    ADVANCING = "advancing"
    AWAITING_CHOICE = "awaiting-choice"


class PlayOutcome(Enum):
    ENDED = "ended"
    QUIT = "quit"
    BROKEN = "broken"


@dataclass(frozen=True)
class Passage:
    text: str
    tags: Tuple[str, ...] = ()


@dataclass
class StoryState:
    text: str = ""
    choices: List[str] = field(default_factory=list)
    can_continue: bool = False
    tags: List[str] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return not self.choices and not self.can_continue


class NarrativeSession:
    """Own a single engine instance and step it between player choices."""

    def __init__(self, engine_factory: EngineFactory = InkEngine) -> None:
        self.engine_factory = engine_factory
        self.engine: Optional[StoryEngine] = None
        self.source: Optional[str] = None
        self.phase = Phase.IDLE
        self.state = StoryState()

    @property
    def loaded(self) -> bool:
        return self.engine is not None

    def load(self, source: str) -> None:
        try:
            engine = self.engine_factory(source)
        except StoryLoadError:
            raise
        except Exception as exc:
            raise StoryLoadError(f"Failed to load story: {exc}") from exc
        self.engine = engine
        self.source = source
        self.state = StoryState()
        self.phase = Phase.ADVANCING

    def restore(self, source: str, engine_state: str) -> None:
        self.load(source)
        self._require_engine().load_state(engine_state)
        self.phase = Phase.ADVANCING

    def advance(self) -> List[Passage]:
        """Pull all linear text, then record the choices waiting on the player."""

        engine = self._require_engine()
        if self.phase is Phase.AWAITING_CHOICE:
            return []
        passages: List[Passage] = []
        try:
            while engine.can_continue():
                text = engine.continue_story()
                tags = tuple(engine.current_tags())
                passages.append(Passage(text=text, tags=tags))

            choices = list(engine.current_choices())
            can_continue = engine.can_continue()
        except Exception as exc:
            raise EngineError(f"Story engine error: {exc}") from exc
        last = passages[-1] if passages else Passage(text="")
        self.state = StoryState(
            text=last.text,
            choices=choices,
            can_continue=can_continue,
            tags=list(last.tags),
        )
        if choices:
            self.phase = Phase.AWAITING_CHOICE
        elif can_continue:
            self.phase = Phase.ADVANCING
        else:
            self.phase = Phase.IDLE
        logger.debug(
            "Advanced %d passage(s); %d choice(s); phase=%s",
            len(passages),
            len(choices),
            self.phase.value,
        )
        return passages

    def choose(self, index: int) -> None:
        engine = self._require_engine()
        if self.phase is not Phase.AWAITING_CHOICE:
            raise InvalidChoice("No choice is waiting to be made.")
        count = len(self.state.choices)
        if not 0 <= index < count:
            raise InvalidChoice(f"Choice {index} is out of range (0-{count - 1}).")
        try:
            engine.choose_choice_index(index)
        except Exception as exc:
            raise EngineError(f"Story engine error: {exc}") from exc
        logger.debug("Chose %d: %s", index, self.state.choices[index])
        self.phase = Phase.ADVANCING

    def snapshot(self) -> Tuple[str, str]:
        if self.engine is None or self.source is None:
            raise SaveError("No story is loaded.")
        try:
            engine_state = self.engine.save_state()
        except Exception as exc:
            raise EngineError(f"Story engine error: {exc}") from exc
        return self.source, engine_state

    def _require_engine(self) -> StoryEngine:
        if self.engine is None:
            raise StoryLoadError("No story is loaded.")
        return self.engine


def play(
    session: NarrativeSession,
    presenter: TerminalPresenter,
    saver: Optional["SaveManager"] = None,
) -> PlayOutcome:
    while True:
        for passage in session.advance():
            presenter.show_text(passage.text, passage.tags)

        if session.phase is Phase.IDLE:
            return PlayOutcome.ENDED
        if session.phase is Phase.ADVANCING:
            continue

        while True:
            selection = presenter.choose(session.state.choices, allow_save=saver is not None)
            if selection == QUIT:
                presenter.notice("Thanks for playing!")
                return PlayOutcome.QUIT
            if selection == SAVE and saver is not None:
                saver.save(session)
                continue
            session.choose(selection)
            break
