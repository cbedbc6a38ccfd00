"""Exception classes for fmql.

Parse errors are raised by the query parser, evaluation errors by the
condition evaluator, and execution errors by the query executor. All of them
derive from FmqlError so callers can catch the whole family at once.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fmql.types import FileAttribute, FileResult


class FmqlError(Exception):
    """Base exception for query parsing and execution."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# --- Parse-time errors ---


class ParseError(FmqlError):
    """Raised when query text cannot be turned into a query."""

    def __init__(self, message: str, position: int | None = None):
        self.position = position
        super().__init__(message)


class UnsupportedStatementError(ParseError):
    """Raised when the statement is not SELECT, WITH RECURSIVE or UPDATE."""


class MissingClauseError(ParseError):
    """Raised when a required clause (FROM, SET, a path, ...) is absent."""


class InvalidPathError(ParseError):
    """Raised when a path cannot be resolved."""


class InvalidAttributeError(ParseError):
    """Raised for an attribute name the dialect does not know."""


class InvalidOperatorError(ParseError):
    """Raised for a malformed or unknown operator."""


class InvalidValueError(ParseError):
    """Raised for a missing or malformed literal."""


class UnsupportedFeatureError(ParseError):
    """Raised for SQL constructs outside the file-query dialect."""


# --- Evaluation-time errors ---


class EvaluationError(FmqlError):
    """Base exception for condition evaluation."""


class TypeMismatchError(EvaluationError):
    """Raised when values of different kinds are compared."""


class UnsupportedAttributeError(EvaluationError):
    """Raised when an attribute has no accessor or cannot be updated."""

    def __init__(self, message: str, attribute: FileAttribute | None = None):
        self.attribute = attribute
        super().__init__(message)


class InvalidRegexError(EvaluationError):
    """Raised when a REGEXP pattern does not compile."""

    def __init__(self, message: str, pattern: str | None = None):
        self.pattern = pattern
        super().__init__(message)


# --- Execution-time errors ---


class ExecutionError(FmqlError):
    """Base exception for query execution."""


class PathNotFoundError(ExecutionError):
    """Raised when the root path of a query does not exist."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Path not found: {path}")


class FileAccessError(ExecutionError):
    """Raised when the root path or an entry's metadata cannot be read."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"Cannot access {path}: {reason}")


class UnsupportedOperationError(ExecutionError):
    """Raised for updates the platform or the engine cannot perform."""


class UpdateError(ExecutionError):
    """Raised when an update fails part way through a batch.

    Entries listed in ``completed`` were already changed on disk and keep
    their new state.
    """

    def __init__(
        self,
        path: Path,
        attribute: FileAttribute,
        reason: str,
        completed: list[FileResult] | None = None,
    ):
        self.path = path
        self.attribute = attribute
        self.completed = completed or []
        super().__init__(f"Failed to update {attribute.value} of {path}: {reason}")
