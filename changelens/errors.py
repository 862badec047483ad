"""Exception types raised by ChangeLens."""

from __future__ import annotations

from typing import Optional, Tuple


class ChangeLensError(Exception):
    """Base class for all ChangeLens errors."""


class ParseError(ChangeLensError):
    """Source text could not be parsed into a clean syntax tree."""

    def __init__(
        self,
        path: str,
        message: str = "syntax error",
        position: Optional[Tuple[int, int]] = None,
    ) -> None:
        self.path = path
        self.position = position
        where = f" at line {position[0]}, column {position[1]}" if position else ""
        super().__init__(f"{path}: {message}{where}")


class GitError(ChangeLensError):
    """A git invocation failed."""
