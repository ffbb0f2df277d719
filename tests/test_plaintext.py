from pathlib import Path

import pytest

from calligrapher.errors import StoryFileNotFound, UnresolvedSectionTarget
from calligrapher.plaintext import (
    Choice,
    load_story,
    parse_choice,
    parse_story,
    play_story,
    serialize_story,
    unreachable_sections,
    unresolved_targets,
)
from calligrapher.presenter import TerminalPresenter
from calligrapher.session import PlayOutcome

FORK_STORY = """\
=== start ===
You stand at a fork in the road.
A crow watches you.
* [Go left] -> left
* [Go right] -> right

=== left ===
The path ends at a quiet lake.

=== right ===
A wall of brambles blocks the way.
* [Turn back] -> start
"""


def make_presenter(answers, scripted_input, output):
    feed = scripted_input(answers)
    presenter = TerminalPresenter(input_func=feed, print_func=output.append, color=False)
    return presenter, feed


def test_parse_story_groups_lines_by_section() -> None:
    story = parse_story(FORK_STORY)

    assert list(story.sections) == ["start", "left", "right"]
    start = story.sections["start"]
    assert start.narrative == ["You stand at a fork in the road.", "A crow watches you."]
    assert start.choices == [Choice("Go left", "left"), Choice("Go right", "right")]
    assert story.sections["left"].choices == []


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("* [Open the door] -> hall", Choice("Open the door", "hall")),
        ("*Open the door->hall", Choice("Open the door", "hall")),
        ("* Say [hello] -> greet", Choice("Say hello", "greet")),
        ("* [] -> exit", Choice("exit", "exit")),
        ("* Just a bullet point", None),
        ("The arrow -> points nowhere", None),
    ],
)
def test_parse_choice_extracts_label_and_target(line: str, expected) -> None:
    assert parse_choice(line) == expected


def test_lines_outside_sections_are_ignored() -> None:
    story = parse_story("# My Adventure\nWritten for testing.\n=== start ===\nHello.\n")
    assert list(story.sections) == ["start"]
    assert story.sections["start"].lines == ("Hello.",)


def test_repeated_section_keeps_last_definition() -> None:
    story = parse_story("=== start ===\nFirst.\n=== start ===\nSecond.\n")
    assert story.sections["start"].lines == ("Second.",)


@pytest.mark.parametrize(
    "text",
    [
        FORK_STORY,
        "=== start ===\n",
        "intro text\n=== a ===\n  indented line  \n* [x] -> b\n\n\n=== b ===\nend\n",
        "===start===\r\nWindows line endings.\r\n* go -> start\r\n",
    ],
)
def test_serialize_then_parse_is_idempotent(text: str) -> None:
    story = parse_story(text)
    assert parse_story(serialize_story(story)) == story


def test_first_choice_walkthrough_stops_at_terminal_section(scripted_input, output) -> None:
    presenter, feed = make_presenter(["1", "1"], scripted_input, output)

    outcome = play_story(parse_story(FORK_STORY), presenter)

    assert outcome is PlayOutcome.ENDED
    assert len(feed.prompts) == 1
    assert feed.answers == ["1"]
    narrative = [line for line in output if line in {
        "You stand at a fork in the road.",
        "A crow watches you.",
        "The path ends at a quiet lake.",
    }]
    assert narrative == [
        "You stand at a fork in the road.",
        "A crow watches you.",
        "The path ends at a quiet lake.",
    ]
    assert output.index("The path ends at a quiet lake.") > output.index("  0. Quit")


def test_menu_offers_choices_plus_quit(scripted_input, output) -> None:
    presenter, _ = make_presenter(["0"], scripted_input, output)

    outcome = play_story(parse_story(FORK_STORY), presenter)

    assert outcome is PlayOutcome.QUIT
    menu = [line for line in output if line.startswith("  ") and ". " in line]
    assert menu == ["  1. Go left", "  2. Go right", "  0. Quit"]
    assert "The path ends at a quiet lake." not in output
    assert "A wall of brambles blocks the way." not in output


def test_loops_back_to_earlier_sections(scripted_input, output) -> None:
    presenter, _ = make_presenter(["2", "1", "1"], scripted_input, output)

    outcome = play_story(parse_story(FORK_STORY), presenter)

    assert outcome is PlayOutcome.ENDED
    assert output.count("You stand at a fork in the road.") == 2
    assert "A wall of brambles blocks the way." in output


def test_unresolved_target_is_reported_without_raising(scripted_input, output) -> None:
    story = parse_story("=== start ===\nA door.\n* [Open it] -> cellar\n")
    presenter, _ = make_presenter(["1"], scripted_input, output)

    outcome = play_story(story, presenter)

    assert outcome is PlayOutcome.BROKEN
    assert any('Section "cellar" not found' in line for line in output)


def test_missing_start_section_is_reported(scripted_input, output) -> None:
    presenter, _ = make_presenter([], scripted_input, output)
    outcome = play_story(parse_story("=== intro ===\nHi.\n"), presenter)
    assert outcome is PlayOutcome.BROKEN


def test_section_lookup_raises_unresolved_target() -> None:
    story = parse_story(FORK_STORY)
    with pytest.raises(UnresolvedSectionTarget) as excinfo:
        story.section("attic", origin="start")
    assert excinfo.value.target == "attic"
    assert excinfo.value.origin == "start"


def test_graph_checks_report_broken_and_orphaned_sections() -> None:
    story = parse_story(
        "=== start ===\n* [a] -> a\n* [b] -> missing\n=== a ===\nend\n=== orphan ===\nlost\n"
    )
    assert unresolved_targets(story) == [("start", "missing")]
    assert unreachable_sections(story) == ["orphan"]
    assert unreachable_sections(story, "nowhere") == ["a", "orphan", "start"]


def test_load_story_strips_bom_and_reports_missing_files(tmp_path: Path) -> None:
    path = tmp_path / "story.txt"
    path.write_bytes("\ufeff=== start ===\nHello.\n".encode("utf-8"))
    assert list(load_story(path).sections) == ["start"]

    with pytest.raises(StoryFileNotFound):
        load_story(tmp_path / "missing.txt")
