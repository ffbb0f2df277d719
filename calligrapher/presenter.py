"""Terminal rendering for story text and choice menus."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

InputFunc = Callable[[str], str]
PrintFunc = Callable[[str], None]

QUIT = -1
SAVE = -2

ANSI_RESET = "\033[0m"
ANSI_BOLD = "\033[1m"
ANSI_UNDERLINE = "\033[4m"
ANSI_GRAY = "\033[90m"
ANSI_RED = "\033[31m"
ANSI_GREEN = "\033[32m"
ANSI_YELLOW = "\033[33m"
ANSI_CYAN = "\033[36m"

SCENE_RULE = "━━━"
COMBAT_MARKER = "✖"
HEADER_WIDTH = 60

# Highest priority first; only the first matching tag styles a passage.
TAG_PRIORITY = ("title", "scene", "combat", "dialog")


@dataclass(frozen=True)
class MenuOption:
    key: str
    label: str
    value: int


def pick_style(tags: Iterable[str]) -> Optional[str]:
    present = set(tags or ())
    for tag in TAG_PRIORITY:
        if tag in present:
            return tag
    return None


class TerminalPresenter:
    def __init__(
        self,
        *,
        input_func: InputFunc = input,
        print_func: PrintFunc = print,
        color: bool = True,
        silent: bool = False,
    ) -> None:
        self.input_func = input_func
        self.print = print_func
        self.color = color
        self.silent = silent

    # ---------- Text ----------
    def paint(self, text: str, *codes: str) -> str:
        if not self.color or not codes:
            return text
        return "".join(codes) + text + ANSI_RESET

    def style_text(self, text: str, tags: Iterable[str] = ()) -> str:
        style = pick_style(tags)
        if style == "title":
            return "\n" + self.paint(text, ANSI_BOLD, ANSI_UNDERLINE, ANSI_CYAN) + "\n"
        if style == "scene":
            return "\n" + self.paint(f"{SCENE_RULE} {text} {SCENE_RULE}", ANSI_YELLOW) + "\n"
        if style == "combat":
            return "\n" + self.paint(f"{COMBAT_MARKER} {text}", ANSI_RED) + "\n"
        if style == "dialog":
            return self.paint(f'  "{text}"', ANSI_CYAN)
        return text

    def show_text(self, text: str, tags: Iterable[str] = ()) -> None:
        text = text.rstrip("\n")
        if not text.strip():
            return
        self.print(self.style_text(text, tags))

    def notice(self, message: str) -> None:
        if self.silent:
            return
        self.print(self.paint(message, ANSI_GRAY))

    def success(self, message: str) -> None:
        self.print(self.paint(f"✓ {message}", ANSI_GREEN))

    def warning(self, message: str) -> None:
        self.print(self.paint(message, ANSI_YELLOW))

    def error(self, message: str) -> None:
        self.print(self.paint(f"✖ {message}", ANSI_RED))

    def header(self, title: str, *, can_save: bool = False) -> None:
        if self.silent:
            return
        rule = "=" * HEADER_WIDTH
        self.print("")
        self.print(self.paint(rule, ANSI_GREEN))
        self.print(self.paint(title.center(HEADER_WIDTH), ANSI_BOLD))
        self.print(self.paint(rule, ANSI_GREEN))
        hint = "Enter a number to choose, 0 to quit"
        hint += ", S to save." if can_save else "."
        self.print(self.paint(hint, ANSI_GRAY))

    def footer(self) -> None:
        if self.silent:
            return
        rule = "=" * HEADER_WIDTH
        self.print("")
        self.print(self.paint(rule, ANSI_YELLOW))
        self.print(self.paint("Story Complete".center(HEADER_WIDTH), ANSI_BOLD))
        self.print(self.paint(rule, ANSI_YELLOW))
        self.print(self.paint("Thank you for using Calligrapher!", ANSI_GRAY))

    # ---------- Menus ----------
    def menu_options(self, labels: Sequence[str], *, allow_save: bool = False) -> List[MenuOption]:
        options = [
            MenuOption(key=str(index), label=label, value=index - 1)
            for index, label in enumerate(labels, start=1)
        ]
        options.append(MenuOption(key="0", label="Quit", value=QUIT))
        if allow_save:
            options.append(MenuOption(key="s", label="Save game", value=SAVE))
        return options

    def choose(self, labels: Sequence[str], *, allow_save: bool = False) -> int:
        """Show a menu and return a choice index, ``QUIT`` or ``SAVE``."""

        options = self.menu_options(labels, allow_save=allow_save)
        by_key = {option.key: option for option in options}
        self.print("")
        for option in options:
            self.print(f"  {option.key.upper()}. {option.label}")
        self.print(self.paint("What do you do?", ANSI_CYAN))
        while True:
            try:
                raw = self.input_func("> ")
            except EOFError:
                return QUIT
            selection = by_key.get(raw.strip().lower())
            if selection is not None:
                return selection.value
            if allow_save:
                self.print(f"Pick a number from 0 to {len(labels)}, or S to save.")
            else:
                self.print(f"Pick a number from 0 to {len(labels)}.")

    def ask(self, prompt: str, default: str = "") -> str:
        suffix = f" [{default}]" if default else ""
        try:
            raw = self.input_func(f"{prompt}{suffix}: ")
        except EOFError:
            return default
        return raw.strip() or default
