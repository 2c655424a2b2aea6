"""Exception types raised by codetrail."""

from typing import Optional


class CodetrailError(Exception):
    """Base class for all codetrail errors."""


class RepositoryError(CodetrailError):
    """A commit or blob could not be read from the repository.

    Fatal only to the history branch that hit it.
    """

    def __init__(self, message: str, commit_id: Optional[str] = None, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.commit_id = commit_id
        self.path = path


class InvalidRepository(RepositoryError):
    """The repository handle itself is unusable."""


class ParseError(CodetrailError):
    """The language front end rejected a source revision."""

    def __init__(self, path: str, message: str, line: Optional[int] = None) -> None:
        location = f"{path}:{line}" if line else path
        super().__init__(f"Cannot parse {location}: {message}")
        self.path = path
        self.line = line


class InvalidSeed(CodetrailError, ValueError):
    """The starting element cannot be located in the start commit."""

    def __init__(self, file_path: str, element: str, line: Optional[int] = None) -> None:
        where = f" at line {line}" if line is not None else ""
        super().__init__(f"Cannot locate {element}{where} in {file_path}")
        self.file_path = file_path
        self.element = element
        self.line = line


class TrackerConfigError(CodetrailError, ValueError):
    """A tracker was built with missing or invalid fields."""
