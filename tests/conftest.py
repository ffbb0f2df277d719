import json
from pathlib import Path
from typing import Callable, Dict, Iterable, List

import pytest


class ScriptedEngine:
    """In-memory stand-in for the Ink runtime.

    The compiled source is JSON of the form::

        {"start": "intro",
         "knots": {"intro": {"lines": [{"text": "...", "tags": ["title"]}],
                             "choices": [{"text": "Go", "divert": "hall"}]}}}
    """

    def __init__(self, source: str) -> None:
        data = json.loads(source)
        self.knots = data["knots"]
        self.knot = data["start"]
        self.line = 0
        self.tags: List[str] = []

    def _current(self) -> dict:
        return self.knots[self.knot]

    def can_continue(self) -> bool:
        return self.line < len(self._current().get("lines", []))

    def continue_story(self) -> str:
        entry = self._current()["lines"][self.line]
        self.line += 1
        self.tags = list(entry.get("tags", []))
        return entry["text"] + "\n"

    def current_choices(self) -> List[str]:
        if self.can_continue():
            return []
        return [choice["text"] for choice in self._current().get("choices", [])]

    def choose_choice_index(self, index: int) -> None:
        self.knot = self._current()["choices"][index]["divert"]
        self.line = 0
        self.tags = []

    def current_tags(self) -> List[str]:
        return list(self.tags)

    def save_state(self) -> str:
        return json.dumps({"knot": self.knot, "line": self.line, "tags": self.tags})

    def load_state(self, state: str) -> None:
        data = json.loads(state)
        if data["knot"] not in self.knots:
            raise ValueError(f"unknown knot {data['knot']}")
        self.knot = data["knot"]
        self.line = data["line"]
        self.tags = data["tags"]


def story_source(knots: Dict[str, dict], start: str = "intro") -> str:
    return json.dumps({"start": start, "knots": knots})


FOREST_KNOTS = {
    "intro": {
        "lines": [
            {"text": "The Dark Forest", "tags": ["title"]},
            {"text": "Branches creak overhead."},
        ],
        "choices": [
            {"text": "Follow the path", "divert": "path"},
            {"text": "Climb a tree", "divert": "tree"},
        ],
    },
    "path": {
        "lines": [{"text": "Stop right there!", "tags": ["dialog"]}],
        "choices": [
            {"text": "Fight", "divert": "fight"},
            {"text": "Run", "divert": "ending"},
        ],
    },
    "tree": {
        "lines": [{"text": "You see a village to the east."}],
        "choices": [{"text": "Climb down", "divert": "ending"}],
    },
    "fight": {
        "lines": [{"text": "The bandit swings!", "tags": ["combat"]}],
        "choices": [{"text": "Flee", "divert": "ending"}],
    },
    "ending": {"lines": [{"text": "You reach home safely."}], "choices": []},
}


class ScriptedInput:
    def __init__(self, answers: Iterable[str]) -> None:
        self.answers = list(answers)
        self.prompts: List[str] = []

    def __call__(self, prompt: str = "") -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)


@pytest.fixture
def engine_factory() -> Callable[[str], ScriptedEngine]:
    return ScriptedEngine


@pytest.fixture
def forest_source() -> str:
    return story_source(FOREST_KNOTS)


@pytest.fixture
def forest_json(tmp_path: Path, forest_source: str) -> Path:
    path = tmp_path / "forest.json"
    path.write_text(forest_source, encoding="utf-8")
    return path


@pytest.fixture
def scripted_input() -> Callable[..., ScriptedInput]:
    return ScriptedInput


@pytest.fixture
def output() -> List[str]:
    return []


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "settings.json"
    monkeypatch.setenv("CALLIGRAPHER_CONFIG", str(path))
    return path


class BrokenEngine(ScriptedEngine):
    """Scripted engine whose ``fail_on`` method raises mid-play."""

    fail_on = "continue_story"

    def __getattribute__(self, name: str):
        if name == object.__getattribute__(self, "fail_on"):
            raise RuntimeError("engine exploded")
        return object.__getattribute__(self, name)


def broken_engine(method: str) -> Callable[[str], ScriptedEngine]:
    return type(f"BrokenOn_{method}", (BrokenEngine,), {"fail_on": method})
