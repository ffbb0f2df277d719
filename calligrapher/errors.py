"""Exceptions raised across Calligrapher."""


class CalligrapherError(Exception):
    """Base class for failures reported to the player."""

    exit_code = 1


class StoryFileNotFound(CalligrapherError):
    """Raised when a story, source or save file does not exist."""


class UnsupportedFormat(CalligrapherError):
    """Raised when a file extension has no playback strategy."""

    exit_code = 0


class StoryLoadError(CalligrapherError):
    """Raised when the narrative engine rejects a compiled story."""


class InvalidChoice(CalligrapherError):
    """Raised when a choice is committed outside the available range."""


class CompilerError(CalligrapherError):
    """Base class for compiler adapter failures."""


class CompilerNotFound(CompilerError):
    """Raised when no inklecate executable exists on the search path."""


class CompilationFailed(CompilerError):
    """Raised when inklecate exits non-zero or cannot be started."""

    def __init__(self, message: str, diagnostics: str = "") -> None:
        super().__init__(message)
        self.diagnostics = diagnostics


class CompilerTimeout(CompilationFailed):
    """Raised when inklecate does not finish within the configured timeout."""


class SaveError(CalligrapherError):
    """Base class for save related failures."""


class InvalidSaveFile(SaveError):
    """Raised when a save document is missing required fields."""


class RestoreFailed(SaveError):
    """Raised when a save cannot be parsed or applied to the engine."""


class UnresolvedSectionTarget(CalligrapherError):
    """Raised when a plain-text choice points at an unknown section."""

    def __init__(self, target: str, origin: str | None = None) -> None:
        if origin:
            message = f'Section "{target}" not found (referenced from "{origin}").'
        else:
            message = f'Section "{target}" not found.'
        super().__init__(message)
        self.target = target
        self.origin = origin


class EngineError(CalligrapherError):
    """Raised when the narrative engine fails while a story is being played."""
