"""Command-line entry point: ``calligrapher [command] <file> [options]``."""

from __future__ import annotations

import argparse
import functools
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from . import __version__
from .compiler import (
    candidate_paths,
    compile_ink,
    default_output_path,
    download_url,
    ink_to_json,
    installation_instructions,
)
from .engine import EngineFactory, InkEngine, read_compiled_story
from .errors import (
    CalligrapherError,
    CompilerNotFound,
    StoryFileNotFound,
)
from .formats import StoryFormat, classify, describe_supported_formats
from .plaintext import load_story, play_story
from .platform import machine, system
from .presenter import TerminalPresenter
from .save_manager import SaveManager
from .session import NarrativeSession, PlayOutcome, play
from .settings import Settings, load_settings
from .watcher import FileWatcher, file_digest

logger = logging.getLogger(__name__)

COMMANDS = ("run", "compile", "watch", "replay")
DEFAULT_COMMAND = "run"

EXAMPLES = """
Commands:
  run <file>          Run a story (.ink, .json, .txt or .md); the default
  compile <file.ink>  Compile .ink to .json only
  watch <file.ink>    Watch for changes and recompile
  replay <file.save>  Restore a saved game state

Examples:
  calligrapher story.ink                  Run story directly
  calligrapher run story.ink              Explicit run command
  calligrapher compile story.ink          Compile to JSON
  calligrapher watch story.ink -vv        Watch with verbose output
  calligrapher story.ink -o output.json   Custom output file

For .ink files, Calligrapher compiles with inklecate automatically.
Download inklecate from: https://github.com/inkle/ink/releases
"""

_log_handler: Optional[logging.Handler] = None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calligrapher",
        description="Ink interactive fiction runner.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "targets",
        nargs="*",
        metavar="[command] file",
        help=f"Optional command ({', '.join(COMMANDS)}) followed by a story or save file.",
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"Calligrapher v{__version__}"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use -vv for debug output).",
    )
    parser.add_argument(
        "-s", "--silent", action="store_true", help="Suppress non-essential output."
    )
    parser.add_argument("-o", "--output", default=None, help="Output file for compiled JSON.")
    parser.add_argument(
        "-w", "--watch", action="store_true", help="Watch the source and recompile on change."
    )
    parser.add_argument(
        "--no-save", action="store_true", help="Hide the save option during play."
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Random seed for reproducible runs."
    )
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors.")
    parser.add_argument("--config", default=None, help="Path to a settings JSON file.")
    return parser


def resolve_command(
    parser: argparse.ArgumentParser, targets: Sequence[str]
) -> Tuple[Optional[str], Optional[str]]:
    if not targets:
        return None, None
    if targets[0] in COMMANDS:
        command, rest = targets[0], list(targets[1:])
    else:
        command, rest = DEFAULT_COMMAND, list(targets)
    if not rest:
        parser.error(f"the '{command}' command needs a file")
    if len(rest) > 1:
        parser.error(f"unexpected arguments: {' '.join(rest[1:])}")
    return command, rest[0]


def configure_logging(verbosity: int, silent: bool) -> None:
    global _log_handler
    if silent:
        level = logging.ERROR
    elif verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    package_logger = logging.getLogger("calligrapher")
    package_logger.setLevel(level)
    if _log_handler is None:
        _log_handler = logging.StreamHandler(sys.stderr)
        _log_handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        package_logger.addHandler(_log_handler)


class CalligrapherCLI:
    """Command handlers; each returns the process exit code."""

    def __init__(
        self,
        args: argparse.Namespace,
        settings: Settings,
        presenter: TerminalPresenter,
        *,
        engine_factory: Optional[EngineFactory] = None,
        compiler_search_paths: Optional[Sequence[Path]] = None,
    ) -> None:
        self.args = args
        self.settings = settings
        self.presenter = presenter
        if engine_factory is None:
            engine_factory = (
                functools.partial(InkEngine, seed=args.seed) if args.seed is not None else InkEngine
            )
        self.engine_factory = engine_factory
        if compiler_search_paths is None:
            compiler_search_paths = candidate_paths(override=settings.compiler_path)
        self.compiler_search_paths = list(compiler_search_paths)

    @property
    def verbose(self) -> bool:
        return self.args.verbose > 0

    # ---------- run ----------
    def run_file(self, file_path: str) -> int:
        path = Path(file_path)
        if not path.exists():
            raise StoryFileNotFound(f"File not found: {path}")

        story_format = classify(path)
        if story_format is None:
            self.presenter.warning(f"Unsupported file format: {path.suffix or '(none)'}")
            for line in describe_supported_formats():
                self.presenter.print(line)
            return 0
        if story_format is StoryFormat.INK_SOURCE:
            return self.run_ink(path)
        if story_format is StoryFormat.COMPILED_JSON:
            return self.run_json(path)
        return self.run_text(path)

    def run_ink(self, path: Path) -> int:
        result = compile_ink(
            path,
            self.args.output or default_output_path(path),
            **self._compile_kwargs(),
        )
        if isinstance(result.error, CompilerNotFound):
            self.presenter.warning("inklecate compiler not found!")
            self.presenter.print(installation_instructions())
            self.presenter.notice("For now, using basic text story mode...")
            return self.run_text(path)
        if result.error is not None:
            self.presenter.error(str(result.error))
            self.presenter.notice("Falling back to text mode...")
            return self.run_text(path)
        return self.run_json(result.raise_for_error())

    def run_json(self, path: Path) -> int:
        source = read_compiled_story(path)
        session = NarrativeSession(self.engine_factory)
        session.load(source)
        saver = None if self.args.no_save else self._save_manager(story_name=path.name)
        self.presenter.header(f"Playing: {path.name}", can_save=saver is not None)
        outcome = play(session, self.presenter, saver)
        return self._finish(outcome)

    def run_text(self, path: Path) -> int:
        story = load_story(path)
        self.presenter.header(f"Playing: {path.name}")
        self.presenter.notice(f"Loaded: {path}")
        outcome = play_story(story, self.presenter)
        return self._finish(outcome)

    # ---------- compile / watch ----------
    def compile(self, file_path: str) -> int:
        if self.args.watch:
            return self.watch(file_path)
        path = Path(file_path)
        self.presenter.notice(f"Compiling: {path}")
        try:
            output = ink_to_json(path, self.args.output, **self._compile_kwargs())
        except CalligrapherError as exc:
            self._report_compile_error(exc)
            return 1
        self.presenter.success(f"Compiled: {output}")
        return 0

    def watch(
        self,
        file_path: str,
        *,
        max_polls: Optional[int] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> int:
        path = Path(file_path)
        if not path.exists():
            raise StoryFileNotFound(f"File not found: {path}")
        if classify(path) is not StoryFormat.INK_SOURCE:
            self.presenter.error(f"Only .ink sources can be watched, got: {path.suffix or '(none)'}")
            return 1

        def recompile(changed: Path) -> None:
            self.presenter.notice("=== File changed, recompiling ===")
            try:
                output = ink_to_json(changed, self.args.output, **self._compile_kwargs())
            except CalligrapherError as exc:
                self._report_compile_error(exc)
            else:
                self.presenter.success(f"Compiled: {output}")
            self.presenter.notice("Waiting for changes...")

        def missing(gone: Path) -> None:
            self.presenter.warning(f"{gone} is missing; waiting for it to come back...")

        watcher_kwargs = {"interval": self.settings.watch_interval, "on_missing": missing}
        if sleep is not None:
            watcher_kwargs["sleep"] = sleep
        watcher = FileWatcher(path, recompile, **watcher_kwargs)
        self.presenter.notice(f"Watching: {path}")
        self.presenter.notice("Press Ctrl+C to stop watching.")
        self.presenter.notice(f"Initial MD5: {file_digest(path)}")
        self.presenter.notice("Waiting for changes...")
        try:
            watcher.run(max_polls=max_polls)
        except KeyboardInterrupt:
            self.presenter.notice("Stopping watch...")
        return 0

    # ---------- replay ----------
    def replay(self, file_path: str) -> int:
        path = Path(file_path)
        if not path.exists():
            raise StoryFileNotFound(f"File not found: {path}")
        self.presenter.notice(f"Restoring: {path}")
        session = NarrativeSession(self.engine_factory)
        manager = self._save_manager(default_path=path)
        record = manager.restore(path, session)
        self.presenter.success("Game restored!")
        saver = None if self.args.no_save else manager
        title = f"Playing: {record.story_name}" if record.story_name else "Restored game"
        self.presenter.header(title, can_save=saver is not None)
        outcome = play(session, self.presenter, saver)
        return self._finish(outcome)

    # ---------- helpers ----------
    def _compile_kwargs(self) -> dict:
        return {
            "search_paths": self.compiler_search_paths,
            "verbose": self.verbose,
            "timeout": self.settings.compile_timeout,
            "mono_path": self.settings.mono_path,
            "print_func": self.presenter.print,
        }

    def _save_manager(self, *, story_name: Optional[str] = None, default_path=None) -> SaveManager:
        return SaveManager(
            self.presenter,
            default_path=default_path or self.settings.default_save_path,
            story_name=story_name,
            seed=self.args.seed,
        )

    def _report_compile_error(self, exc: CalligrapherError) -> None:
        self.presenter.error(str(exc))
        if isinstance(exc, CompilerNotFound):
            self.presenter.print(installation_instructions())
            self.presenter.print(f"Download: {download_url(system(), machine())}")

    def _finish(self, outcome: PlayOutcome) -> int:
        if outcome is PlayOutcome.ENDED:
            self.presenter.footer()
        return 0


def main(
    argv: Optional[List[str]] = None,
    *,
    input_func: Callable[[str], str] = input,
    print_func: Callable[[str], None] = print,
    engine_factory: Optional[EngineFactory] = None,
    compiler_search_paths: Optional[Sequence[Path]] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command, file_path = resolve_command(parser, args.targets)
    if command is None:
        parser.print_help()
        return 1

    configure_logging(args.verbose, args.silent)
    settings = load_settings(args.config)
    presenter = TerminalPresenter(
        input_func=input_func,
        print_func=print_func,
        color=settings.color and not args.no_color,
        silent=args.silent,
    )
    cli = CalligrapherCLI(
        args,
        settings,
        presenter,
        engine_factory=engine_factory,
        compiler_search_paths=compiler_search_paths,
    )
    handlers = {
        "run": cli.run_file,
        "compile": cli.compile,
        "watch": cli.watch,
        "replay": cli.replay,
    }
    try:
        return handlers[command](file_path)
    except CalligrapherError as exc:
        logger.debug("%s failed", command, exc_info=True)
        presenter.error(f"Error: {exc}")
        return exc.exit_code
    except KeyboardInterrupt:
        presenter.print("\n[Interrupted] Bye.")
        return 130


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
