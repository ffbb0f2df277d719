"""Locate and drive the external inklecate compiler."""

from __future__ import annotations

import logging
import stat
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from .errors import (
    CalligrapherError,
    CompilationFailed,
    CompilerNotFound,
    CompilerTimeout,
    StoryFileNotFound,
    UnsupportedFormat,
)
from .platform import IS_WINDOWS

logger = logging.getLogger(__name__)

PACKAGE_ROOT = Path(__file__).resolve().parent
BUNDLED_BIN_DIR = PACKAGE_ROOT.parent / "bin"
INK_SUFFIX = ".ink"
UTF8_BOM = b"\xef\xbb\xbf"
RELEASES_URL = "https://github.com/inkle/ink/releases"

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class CompileResult:
    success: bool
    output_path: Optional[Path] = None
    compiler_path: Optional[Path] = None
    stdout: str = ""
    stderr: str = ""
    error: Optional[CalligrapherError] = None

    def raise_for_error(self) -> Path:
        """Return the compiled output path or raise the recorded error."""

        if self.error is not None:
            raise self.error
        if self.output_path is None:
            raise CompilationFailed("Compilation failed: inklecate produced no output")
        return self.output_path


def executable_names(windows: bool = IS_WINDOWS) -> List[str]:
    if windows:
        return ["inklecate.exe", "inklecate_win.exe", "inklecate"]
    return ["inklecate"]


def candidate_paths(
    *,
    override: Path | str | None = None,
    bundle_dir: Path | None = None,
    cwd: Path | None = None,
    home: Path | None = None,
    windows: bool = IS_WINDOWS,
) -> List[Path]:
    """Return the ordered compiler search path.

    Bundled locations come first, then system-wide directories, then
    user-local ones. An explicit ``override`` from the settings file is
    probed before everything else.
    """

    bundle_dir = bundle_dir if bundle_dir is not None else BUNDLED_BIN_DIR
    cwd = cwd if cwd is not None else Path.cwd()
    home = home if home is not None else Path.home()
    names = executable_names(windows)

    directories: List[Path] = [bundle_dir, bundle_dir / "inklecate", cwd / "bin"]
    if not windows:
        directories.extend([Path("/usr/local/bin"), Path("/usr/bin")])
    directories.extend([home / ".local" / "bin", home / "bin"])

    candidates: List[Path] = []
    if override:
        candidates.append(Path(override).expanduser())
    for directory in directories:
        for name in names:
            candidate = directory / name
            if candidate not in candidates:
                candidates.append(candidate)
    return candidates


def find_compiler(search_paths: Iterable[Path | str]) -> Optional[Path]:
    for candidate in search_paths:
        path = Path(candidate)
        if path.is_file():
            logger.debug("Found inklecate at %s", path)
            return path
        logger.debug("No inklecate at %s", path)
    return None


def ensure_executable(path: Path, *, windows: bool = IS_WINDOWS) -> None:
    if windows or path.suffix.lower() == ".exe":
        return
    mode = path.stat().st_mode
    wanted = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
    if mode & wanted == wanted:
        return
    try:
        path.chmod(mode | wanted)
    except OSError as exc:
        logger.warning("Could not mark %s as executable: %s", path, exc)


def default_output_path(input_path: Path) -> Path:
    return input_path.with_suffix(".json")


def build_command(
    compiler: Path,
    input_path: Path,
    output_path: Path,
    *,
    mono_path: str = "mono",
    windows: bool = IS_WINDOWS,
) -> List[str]:
    command = [str(compiler), "-o", str(output_path), str(input_path)]
    if compiler.suffix.lower() == ".exe" and not windows:
        command.insert(0, mono_path)
    return command


def strip_bom(path: Path) -> bool:
    data = path.read_bytes()
    if not data.startswith(UTF8_BOM):
        return False
    path.write_bytes(data[len(UTF8_BOM):])
    return True


def compile_ink(
    input_path: Path | str,
    output_path: Path | str | None = None,
    *,
    search_paths: Optional[Sequence[Path | str]] = None,
    verbose: bool = False,
    timeout: Optional[float] = None,
    mono_path: str = "mono",
    runner: Runner = subprocess.run,
    print_func: Callable[[str], None] = print,
) -> CompileResult:
    """Compile ``input_path`` to JSON and describe what happened.

    Expected failures are returned on the result rather than raised, so
    callers can pick a fallback. ``timeout`` of ``None`` or ``0`` waits
    forever.
    """

    input_path = Path(input_path)
    if not input_path.is_file():
        return CompileResult(
            success=False, error=StoryFileNotFound(f"Input file not found: {input_path}")
        )
    if input_path.suffix.lower() != INK_SUFFIX:
        return CompileResult(
            success=False,
            error=UnsupportedFormat(
                f"Expected {INK_SUFFIX} file, got: {input_path.suffix or '(none)'}"
            ),
        )

    if search_paths is None:
        search_paths = candidate_paths()
    compiler = find_compiler(search_paths)
    if compiler is None:
        return CompileResult(success=False, error=CompilerNotFound("inklecate compiler not found."))
    ensure_executable(compiler)

    final_output = Path(output_path) if output_path else default_output_path(input_path)
    command = build_command(compiler, input_path, final_output, mono_path=mono_path)
    if verbose:
        print_func(f"Compiling: {input_path}")
        print_func(f"Output: {final_output}")
        print_func(f"Compiler: {compiler}")
    logger.info("Running %s", " ".join(command))

    try:
        completed = runner(
            command,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout or None,
        )
    except subprocess.TimeoutExpired as exc:
        return CompileResult(
            success=False,
            compiler_path=compiler,
            stdout=_as_text(exc.stdout),
            stderr=_as_text(exc.stderr),
            error=CompilerTimeout(
                f"Compilation failed: inklecate did not finish within {timeout:g}s",
                _as_text(exc.stderr),
            ),
        )
    except OSError as exc:
        return CompileResult(
            success=False,
            compiler_path=compiler,
            error=CompilationFailed(f"Compilation failed: {exc}"),
        )

    stdout = completed.stdout or ""
    stderr = completed.stderr or ""
    if verbose:
        for line in (stdout + stderr).splitlines():
            print_func(line)

    if completed.returncode != 0:
        diagnostics = (stderr or stdout).strip()
        message = f"Compilation failed: inklecate exited with status {completed.returncode}"
        if diagnostics:
            message = f"{message}\n{diagnostics}"
        return CompileResult(
            success=False,
            compiler_path=compiler,
            stdout=stdout,
            stderr=stderr,
            error=CompilationFailed(message, diagnostics),
        )

    try:
        if strip_bom(final_output):
            logger.debug("Stripped byte-order mark from %s", final_output)
    except OSError as exc:
        return CompileResult(
            success=False,
            compiler_path=compiler,
            stdout=stdout,
            stderr=stderr,
            error=CompilationFailed(f"Compilation failed: could not read output: {exc}", stderr),
        )

    if verbose:
        print_func("Compilation successful!")
    return CompileResult(
        success=True,
        output_path=final_output,
        compiler_path=compiler,
        stdout=stdout,
        stderr=stderr,
    )


def ink_to_json(input_path: Path | str, output_path: Path | str | None = None, **kwargs) -> Path:
    return compile_ink(input_path, output_path, **kwargs).raise_for_error()


def download_url(system: str, machine: str) -> str:
    if system == "linux" and machine in {"x86_64", "amd64"}:
        return f"{RELEASES_URL}/latest/download/inklecate_linux.zip"
    if system == "darwin":
        return f"{RELEASES_URL}/latest/download/inklecate_mac.zip"
    if system == "windows":
        return f"{RELEASES_URL}/latest/download/inklecate_windows.zip"
    return RELEASES_URL


def installation_instructions() -> str:
    return f"""
Install inklecate using one of these methods:

1. Download a release from GitHub:
   {RELEASES_URL}

2. Run the bundled helper:
   python tools/download_inklecate.py

3. Using Homebrew (macOS):
   brew install inklecate

After installation, place inklecate in one of:
  - ./bin/ (project local)
  - /usr/local/bin/ (system wide)
  - ~/.local/bin/ (user local)
or set "compiler_path" in the Calligrapher settings file.
"""


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
