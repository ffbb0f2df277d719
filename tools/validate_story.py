#!/usr/bin/env python3
"""Validate a plain-text adventure for common authoring mistakes."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from calligrapher.errors import CalligrapherError
from calligrapher.plaintext import (
    START_SECTION,
    load_story,
    unreachable_sections,
    unresolved_targets,
)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate a Calligrapher text adventure.")
    parser.add_argument("story_path", help="Path to the .txt or .md adventure.")
    parser.add_argument(
        "--start",
        default=START_SECTION,
        help=f"Section the playthrough starts in (default: {START_SECTION}).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    story_path = Path(args.story_path).resolve()
    try:
        story = load_story(story_path)
    except CalligrapherError as exc:
        print(f"Failed to load {story_path}: {exc}")
        sys.exit(1)

    errors = []
    if args.start not in story:
        errors.append(f"missing start section '{args.start}'")
    for origin, target in unresolved_targets(story):
        errors.append(f"{origin}: choice points at missing section '{target}'")
    if errors:
        print("Validation failed (section: message):")
        for err in errors:
            print(f" - {err}")
        sys.exit(1)

    unreachable = unreachable_sections(story, args.start)
    if unreachable:
        print("Unreachable sections:")
        for name in unreachable:
            print(f" - {name}")

    print(f"Sections: {len(story.sections)}")
    print(f"Validation passed for {story_path}.")


if __name__ == "__main__":
    main(sys.argv)
