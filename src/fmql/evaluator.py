"""Evaluation of WHERE conditions against file snapshots."""

from __future__ import annotations

import logging
import operator
import re
from datetime import datetime
from typing import Any, Callable

from fmql.exceptions import (
    InvalidRegexError,
    TypeMismatchError,
    UnsupportedAttributeError,
)
from fmql.parsing.query_parser import (
    And,
    Between,
    Compare,
    FileCondition,
    Like,
    Not,
    Or,
    Regexp,
)
from fmql.types import (
    DATETIME_ATTRIBUTES,
    ComparisonOperator,
    FileAttribute,
    FileResult,
    FileValue,
    ValueKind,
)

logger = logging.getLogger(__name__)


def _optional_datetime(value: datetime | None) -> FileValue:
    return FileValue.datetime(value) if value is not None else FileValue.null()


def _optional_string(value: str | None) -> FileValue:
    return FileValue.string(value) if value is not None else FileValue.null()


# Attribute accessors; ALL has none and is rejected in conditions
ACCESSORS: dict[FileAttribute, Callable[[FileResult], FileValue]] = {
    FileAttribute.NAME: lambda f: FileValue.string(f.name),
    FileAttribute.PATH: lambda f: FileValue.string(str(f.path)),
    FileAttribute.SIZE: lambda f: FileValue.number(f.size),
    FileAttribute.EXTENSION: lambda f: _optional_string(f.extension),
    FileAttribute.MODIFIED: lambda f: FileValue.datetime(f.modified),
    FileAttribute.CREATED: lambda f: _optional_datetime(f.created),
    FileAttribute.ACCESSED: lambda f: _optional_datetime(f.accessed),
    FileAttribute.PERMISSIONS: lambda f: FileValue.number(f.permissions),
    FileAttribute.OWNER: lambda f: _optional_string(f.owner),
    FileAttribute.IS_DIRECTORY: lambda f: FileValue.boolean(f.is_directory),
    FileAttribute.IS_SYMLINK: lambda f: FileValue.boolean(f.is_symlink),
    FileAttribute.IS_EXECUTABLE: lambda f: FileValue.boolean(f.is_executable),
}

_OPERATORS: dict[ComparisonOperator, Callable[[Any, Any], bool]] = {
    ComparisonOperator.EQ: operator.eq,
    ComparisonOperator.NOT_EQ: operator.ne,
    ComparisonOperator.LT: operator.lt,
    ComparisonOperator.LT_EQ: operator.le,
    ComparisonOperator.GT: operator.gt,
    ComparisonOperator.GT_EQ: operator.ge,
}


def get_attribute_value(file: FileResult, attribute: FileAttribute) -> FileValue:
    """Return the value of ``attribute`` for ``file``."""
    accessor = ACCESSORS.get(attribute)
    if accessor is None:
        raise UnsupportedAttributeError(
            f"Attribute '{attribute.value}' cannot be used in a condition", attribute
        )
    return accessor(file)


def compare_values(left: FileValue, op: ComparisonOperator, right: FileValue) -> bool:
    """Compare two values of the same kind.

    NULL equals only NULL, and differs from everything else; ordering
    operators involving NULL are an error.
    """
    if left.is_null or right.is_null:
        if not op.is_equality:
            raise TypeMismatchError(f"Cannot apply '{op.value}' to NULL")
        equal = left.is_null and right.is_null
        return equal if op is ComparisonOperator.EQ else not equal

    if left.kind is not right.kind:
        raise TypeMismatchError(
            f"Cannot compare {left.kind.value} {left} with {right.kind.value} {right}"
        )
    if left.kind is ValueKind.BOOLEAN and not op.is_equality:
        raise TypeMismatchError(f"Cannot apply '{op.value}' to boolean values")
    return _OPERATORS[op](left.value, right.value)


def parse_datetime(text: str) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are local time."""
    try:
        value = datetime.fromisoformat(text.strip())
    except ValueError as e:
        raise TypeMismatchError(f"Invalid date/time literal: {text!r}") from e
    if value.tzinfo is None:
        value = value.astimezone()
    return value


def coerce_literal(attribute: FileAttribute, value: FileValue) -> FileValue:
    """Convert a literal to the kind used by ``attribute`` where the dialect allows it."""
    if value.kind is ValueKind.STRING and attribute in DATETIME_ATTRIBUTES:
        return FileValue.datetime(parse_datetime(value.value))

    if attribute is FileAttribute.PERMISSIONS:
        # Permission literals are written in octal: 755, '0755', '0o644'
        if value.kind is ValueKind.STRING:
            text = value.value.strip().lower().removeprefix("0o")
            try:
                return FileValue.number(int(text, 8))
            except ValueError as e:
                raise TypeMismatchError(f"Invalid permissions literal: {value}") from e
        if value.kind is ValueKind.NUMBER and value.value == int(value.value):
            try:
                return FileValue.number(int(str(int(value.value)), 8))
            except ValueError as e:
                raise TypeMismatchError(f"Invalid permissions literal: {value}") from e

    if attribute is FileAttribute.EXTENSION and value.kind is ValueKind.STRING:
        if value.value.startswith("."):
            return FileValue.string(value.value[1:])
    return value


def like_to_regex(pattern: str) -> str:
    r"""Translate a SQL LIKE pattern into an (unanchored) regular expression.

    ``%`` matches any run of characters and ``_`` exactly one. A backslash
    makes the following character literal, so ``\%`` matches a percent sign.
    Everything else matches itself.
    """
    parts = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            escaped = next(chars, "\\")
            parts.append(re.escape(escaped))
        elif ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return "".join(parts)


def _compile_like(pattern: str, case_sensitive: bool) -> re.Pattern[str]:
    flags = re.DOTALL if case_sensitive else re.DOTALL | re.IGNORECASE
    return re.compile(like_to_regex(pattern), flags)


def _compile_regexp(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidRegexError(f"Invalid regular expression {pattern!r}: {e}", pattern) from e


def _string_value(file: FileResult, attribute: FileAttribute, what: str) -> str | None:
    value = get_attribute_value(file, attribute)
    if value.is_null:
        return None
    if value.kind is not ValueKind.STRING:
        raise TypeMismatchError(
            f"{what} requires a string attribute, got {value.kind.value} '{attribute.value}'"
        )
    return value.value


def evaluate(file: FileResult, condition: FileCondition) -> bool:
    """Evaluate ``condition`` for one file.

    Raises:
        TypeMismatchError: Values of incompatible kinds were compared.
        UnsupportedAttributeError: The condition names an attribute without an accessor.
        InvalidRegexError: A REGEXP pattern does not compile.
    """
    if isinstance(condition, Compare):
        left = get_attribute_value(file, condition.attribute)
        right = coerce_literal(condition.attribute, condition.value)
        return compare_values(left, condition.operator, right)

    if isinstance(condition, And):
        return evaluate(file, condition.left) and evaluate(file, condition.right)

    if isinstance(condition, Or):
        return evaluate(file, condition.left) or evaluate(file, condition.right)

    if isinstance(condition, Not):
        return not evaluate(file, condition.inner)

    if isinstance(condition, Like):
        text = _string_value(file, condition.attribute, "LIKE")
        if text is None:
            return False
        regex = _compile_like(condition.pattern, condition.case_sensitive)
        return regex.fullmatch(text) is not None

    if isinstance(condition, Between):
        # Both bounds are evaluated so a bad bound is reported either way
        lower = evaluate(
            file, Compare(condition.attribute, ComparisonOperator.GT_EQ, condition.lower)
        )
        upper = evaluate(
            file, Compare(condition.attribute, ComparisonOperator.LT_EQ, condition.upper)
        )
        return lower and upper

    if isinstance(condition, Regexp):
        regex = _compile_regexp(condition.pattern)
        text = _string_value(file, condition.attribute, "REGEXP")
        if text is None:
            return False
        return regex.search(text) is not None

    raise TypeError(f"Unknown condition type: {type(condition).__name__}")


def validate_condition(condition: FileCondition | None) -> None:
    """Check a condition for errors that do not depend on any file.

    Unknown attributes, malformed regular expressions and literals that can
    never be coerced are reported before any traversal starts.
    """
    if condition is None:
        return
    if isinstance(condition, (And, Or)):
        validate_condition(condition.left)
        validate_condition(condition.right)
    elif isinstance(condition, Not):
        validate_condition(condition.inner)
    elif isinstance(condition, Compare):
        _check_attribute(condition.attribute)
        coerce_literal(condition.attribute, condition.value)
    elif isinstance(condition, Between):
        _check_attribute(condition.attribute)
        coerce_literal(condition.attribute, condition.lower)
        coerce_literal(condition.attribute, condition.upper)
    elif isinstance(condition, Like):
        _check_attribute(condition.attribute)
    elif isinstance(condition, Regexp):
        _check_attribute(condition.attribute)
        _compile_regexp(condition.pattern)
    else:
        raise TypeError(f"Unknown condition type: {type(condition).__name__}")


def _check_attribute(attribute: FileAttribute) -> None:
    if attribute not in ACCESSORS:
        raise UnsupportedAttributeError(
            f"Attribute '{attribute.value}' cannot be used in a condition", attribute
        )
