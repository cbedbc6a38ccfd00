"""fmql - query and update filesystem metadata with SQL."""

from fmql.capabilities import FileCapabilities, PosixCapabilities, default_capabilities
from fmql.evaluator import evaluate
from fmql.exceptions import (
    EvaluationError,
    ExecutionError,
    FileAccessError,
    FmqlError,
    InvalidAttributeError,
    InvalidOperatorError,
    InvalidPathError,
    InvalidRegexError,
    InvalidValueError,
    MissingClauseError,
    ParseError,
    PathNotFoundError,
    TypeMismatchError,
    UnsupportedAttributeError,
    UnsupportedFeatureError,
    UnsupportedOperationError,
    UnsupportedStatementError,
    UpdateError,
)
from fmql.parsing import QueryParser, SelectQuery, UpdateQuery, parse_query
from fmql.query_executor import QueryExecutor, execute_query
from fmql.types import (
    ComparisonOperator,
    FileAttribute,
    FileResult,
    FileValue,
    ValueKind,
)

__all__ = [
    # Main API
    "QueryParser",
    "QueryExecutor",
    "parse_query",
    "execute_query",
    "evaluate",
    # Queries and values
    "SelectQuery",
    "UpdateQuery",
    "FileAttribute",
    "FileResult",
    "FileValue",
    "ValueKind",
    "ComparisonOperator",
    # Platform
    "FileCapabilities",
    "PosixCapabilities",
    "default_capabilities",
    # Errors
    "FmqlError",
    "ParseError",
    "UnsupportedStatementError",
    "MissingClauseError",
    "InvalidPathError",
    "InvalidAttributeError",
    "InvalidOperatorError",
    "InvalidValueError",
    "UnsupportedFeatureError",
    "EvaluationError",
    "TypeMismatchError",
    "UnsupportedAttributeError",
    "InvalidRegexError",
    "ExecutionError",
    "PathNotFoundError",
    "FileAccessError",
    "UnsupportedOperationError",
    "UpdateError",
]

__version__ = "0.1.0"
