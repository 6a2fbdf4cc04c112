"""
Exception types raised by the sports day scoreboard.
"""

from typing import Optional


class SportsdayError(Exception):
    """Base class for all scoreboard errors."""


class ConfigIOError(SportsdayError):
    """The schedule file could not be read."""

    def __init__(
        self,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Could not read schedule file {path}: {cause}")


class ConfigParseError(SportsdayError):
    """The schedule document is malformed or fails validation."""


class StorageError(SportsdayError):
    """A database operation failed."""

    def __init__(
        self,
        step: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"Storage failure during '{step}': {cause}")


class ScoreValidationError(SportsdayError):
    """A submitted score sheet is not a valid form id to score mapping."""
