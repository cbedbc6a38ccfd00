"""Parser for the fmql file-query dialect."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import ply.yacc as yacc

from fmql.exceptions import (
    InvalidAttributeError,
    InvalidOperatorError,
    InvalidPathError,
    InvalidValueError,
    MissingClauseError,
    UnsupportedFeatureError,
    UnsupportedStatementError,
)
from fmql.parsing.query_lexer import QueryLexer
from fmql.types import ComparisonOperator, FileAttribute, FileValue, ValueKind

logger = logging.getLogger(__name__)


# --- Conditions ---


@dataclass
class Compare:
    """attribute <operator> value"""

    attribute: FileAttribute
    operator: ComparisonOperator
    value: FileValue


@dataclass
class And:
    """Logical AND of two conditions."""

    left: FileCondition
    right: FileCondition


@dataclass
class Or:
    """Logical OR of two conditions."""

    left: FileCondition
    right: FileCondition


@dataclass
class Not:
    """Logical negation of a condition."""

    inner: FileCondition


@dataclass
class Like:
    """SQL LIKE pattern match over the whole attribute value."""

    attribute: FileAttribute
    pattern: str
    case_sensitive: bool = False


@dataclass
class Between:
    """Inclusive range check: lower <= attribute <= upper."""

    attribute: FileAttribute
    lower: FileValue
    upper: FileValue


@dataclass
class Regexp:
    """Unanchored regular expression search in the attribute value."""

    attribute: FileAttribute
    pattern: str


FileCondition = Compare | And | Or | Not | Like | Between | Regexp


# --- Queries ---


@dataclass
class FileAttributeUpdate:
    """A single ``attribute = value`` assignment from a SET clause."""

    attribute: FileAttribute
    value: str


@dataclass
class SelectQuery:
    """A SELECT query."""

    path: Path
    recursive: bool = False
    attributes: list[FileAttribute] = field(default_factory=lambda: [FileAttribute.ALL])
    condition: FileCondition | None = None


@dataclass
class UpdateQuery:
    """An UPDATE query."""

    path: Path
    updates: list[FileAttributeUpdate] = field(default_factory=list)
    condition: FileCondition | None = None


FileQuery = SelectQuery | UpdateQuery


# Statements the dialect understands, by leading keyword
SUPPORTED_STATEMENTS = frozenset({"SELECT", "WITH", "UPDATE"})

# SQL words outside the dialect; seeing one is reported as an unsupported feature
UNSUPPORTED_KEYWORDS = frozenset({
    "ORDER", "GROUP", "BY", "HAVING", "LIMIT", "OFFSET", "JOIN", "INNER",
    "OUTER", "LEFT", "RIGHT", "UNION", "DISTINCT", "AS", "IN", "IS",
    "EXISTS", "INTO", "VALUES", "COUNT", "SUM", "AVG", "MIN", "MAX",
    "ILIKE", "GLOB", "ESCAPE",
})

_COMPARISON_TOKENS = frozenset({"EQ", "NEQ", "LT", "LTE", "GT", "GTE"})
_VALUE_EXPECTING_TOKENS = _COMPARISON_TOKENS | {"LIKE", "BINARY", "BETWEEN", "REGEXP"}

_OPERATOR_MAP = {
    "=": ComparisonOperator.EQ,
    "!=": ComparisonOperator.NOT_EQ,
    "<>": ComparisonOperator.NOT_EQ,
    "<": ComparisonOperator.LT,
    "<=": ComparisonOperator.LT_EQ,
    ">": ComparisonOperator.GT,
    ">=": ComparisonOperator.GT_EQ,
}

_LEADING_WORD = re.compile(r"\s*([A-Za-z_]+)")


def parse_octal_mode(value: str) -> int:
    """Parse an octal permission string such as ``"755"`` or ``"0o644"``."""
    text = value.strip().lower()
    if text.startswith("0o"):
        text = text[2:]
    if not text or len(text) > 4 or any(ch not in "01234567" for ch in text):
        raise ValueError(f"Invalid permissions value: {value!r}")
    return int(text, 8)


class QueryParser:
    """Parser for fmql queries.

    Args:
        like_case_sensitive: Default case sensitivity of a plain ``LIKE``.
            ``LIKE BINARY`` is always case-sensitive.
        home_resolver: Returns the caller's home directory; used once per
            parse to expand a leading ``~``.
    """

    tokens = QueryLexer.tokens

    # Operator precedence
    precedence = (
        ("left", "OR"),
        ("left", "AND"),
        ("right", "NOT"),
    )

    def __init__(
        self,
        like_case_sensitive: bool = False,
        home_resolver: Callable[[], Path] | None = None,
    ) -> None:
        self.like_case_sensitive = like_case_sensitive
        self.home_resolver = home_resolver or Path.home
        self.lexer = QueryLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore
        self._tokens: list[Any] = []

    # --- Statements ---

    def p_statement(self, p: yacc.YaccProduction) -> None:
        """statement : query SEMICOLON
                     | query"""
        p[0] = p[1]

    def p_query(self, p: yacc.YaccProduction) -> None:
        """query : select_query
                 | update_query"""
        p[0] = p[1]

    def p_query_with_recursive(self, p: yacc.YaccProduction) -> None:
        """query : WITH RECURSIVE select_query"""
        p[3].recursive = True
        p[0] = p[3]

    def p_select_query(self, p: yacc.YaccProduction) -> None:
        """select_query : SELECT projection FROM path where_clause"""
        p[0] = SelectQuery(path=p[4], attributes=p[2], condition=p[5])

    def p_select_query_missing_path(self, p: yacc.YaccProduction) -> None:
        """select_query : SELECT projection FROM where_clause"""
        raise MissingClauseError("Missing path after FROM", p.lexpos(3))

    def p_select_query_missing_from(self, p: yacc.YaccProduction) -> None:
        """select_query : SELECT projection where_clause"""
        raise MissingClauseError("Missing FROM clause", p.lexpos(1))

    def p_projection_star(self, p: yacc.YaccProduction) -> None:
        """projection : STAR"""
        p[0] = [FileAttribute.ALL]

    def p_projection_attributes(self, p: yacc.YaccProduction) -> None:
        """projection : attribute_list"""
        p[0] = p[1]

    def p_attribute_list_single(self, p: yacc.YaccProduction) -> None:
        """attribute_list : attribute"""
        p[0] = [p[1]]

    def p_attribute_list_multiple(self, p: yacc.YaccProduction) -> None:
        """attribute_list : attribute_list COMMA attribute"""
        p[0] = p[1] + [p[3]]

    def p_attribute(self, p: yacc.YaccProduction) -> None:
        """attribute : IDENTIFIER"""
        attribute = FileAttribute.lookup(p[1])
        if attribute is None and p[1].upper() in UNSUPPORTED_KEYWORDS:
            raise UnsupportedFeatureError(f"{p[1].upper()} is not supported", p.lexpos(1))
        if attribute is None:
            raise InvalidAttributeError(f"Unknown file attribute: {p[1]}", p.lexpos(1))
        p[0] = attribute

    def p_path(self, p: yacc.YaccProduction) -> None:
        """path : IDENTIFIER
                | STRING"""
        p[0] = self.resolve_path(p[1], p.lexpos(1))

    def p_update_query(self, p: yacc.YaccProduction) -> None:
        """update_query : UPDATE path SET assignment_list where_clause"""
        p[0] = UpdateQuery(path=p[2], updates=p[4], condition=p[5])

    def p_update_query_missing_set(self, p: yacc.YaccProduction) -> None:
        """update_query : UPDATE path where_clause"""
        raise MissingClauseError("Missing SET clause in UPDATE statement", p.lexpos(1))

    def p_update_query_missing_path(self, p: yacc.YaccProduction) -> None:
        """update_query : UPDATE SET assignment_list where_clause"""
        raise MissingClauseError("Missing path in UPDATE statement", p.lexpos(2))

    def p_assignment_list_single(self, p: yacc.YaccProduction) -> None:
        """assignment_list : assignment"""
        p[0] = [p[1]]

    def p_assignment_list_multiple(self, p: yacc.YaccProduction) -> None:
        """assignment_list : assignment_list COMMA assignment"""
        p[0] = p[1] + [p[3]]

    def p_assignment(self, p: yacc.YaccProduction) -> None:
        """assignment : attribute EQ literal"""
        attribute, value = p[1], p[3]
        if value.kind is ValueKind.STRING:
            text = value.value
        elif value.kind is ValueKind.NUMBER:
            text = str(value)
        else:
            raise InvalidValueError(
                f"Cannot assign {value} to {attribute.value}", p.lexpos(2)
            )
        if attribute is FileAttribute.PERMISSIONS:
            try:
                parse_octal_mode(text)
            except ValueError as e:
                raise InvalidValueError(str(e), p.lexpos(2)) from e
        p[0] = FileAttributeUpdate(attribute=attribute, value=text)

    # --- WHERE ---

    def p_where_clause_empty(self, p: yacc.YaccProduction) -> None:
        """where_clause : """
        p[0] = None

    def p_where_clause(self, p: yacc.YaccProduction) -> None:
        """where_clause : WHERE condition"""
        p[0] = p[2]

    def p_where_clause_missing_condition(self, p: yacc.YaccProduction) -> None:
        """where_clause : WHERE"""
        raise MissingClauseError("Missing condition after WHERE", p.lexpos(1))

    def p_condition_and(self, p: yacc.YaccProduction) -> None:
        """condition : condition AND condition"""
        p[0] = And(p[1], p[3])

    def p_condition_or(self, p: yacc.YaccProduction) -> None:
        """condition : condition OR condition"""
        p[0] = Or(p[1], p[3])

    def p_condition_not(self, p: yacc.YaccProduction) -> None:
        """condition : NOT condition"""
        p[0] = Not(p[2])

    def p_condition_paren(self, p: yacc.YaccProduction) -> None:
        """condition : LPAREN condition RPAREN"""
        p[0] = p[2]

    def p_condition_predicate(self, p: yacc.YaccProduction) -> None:
        """condition : predicate"""
        p[0] = p[1]

    def p_predicate_compare(self, p: yacc.YaccProduction) -> None:
        """predicate : attribute compare_op literal"""
        p[0] = Compare(attribute=p[1], operator=p[2], value=p[3])

    def p_compare_op(self, p: yacc.YaccProduction) -> None:
        """compare_op : EQ
                      | NEQ
                      | LT
                      | LTE
                      | GT
                      | GTE"""
        p[0] = _OPERATOR_MAP[p[1]]

    def p_predicate_like(self, p: yacc.YaccProduction) -> None:
        """predicate : attribute LIKE STRING"""
        p[0] = Like(attribute=p[1], pattern=p[3], case_sensitive=self.like_case_sensitive)

    def p_predicate_like_binary(self, p: yacc.YaccProduction) -> None:
        """predicate : attribute LIKE BINARY STRING"""
        p[0] = Like(attribute=p[1], pattern=p[4], case_sensitive=True)

    def p_predicate_not_like(self, p: yacc.YaccProduction) -> None:
        """predicate : attribute NOT LIKE STRING"""
        p[0] = Not(Like(attribute=p[1], pattern=p[4], case_sensitive=self.like_case_sensitive))

    def p_predicate_not_like_binary(self, p: yacc.YaccProduction) -> None:
        """predicate : attribute NOT LIKE BINARY STRING"""
        p[0] = Not(Like(attribute=p[1], pattern=p[5], case_sensitive=True))

    def p_predicate_between(self, p: yacc.YaccProduction) -> None:
        """predicate : attribute BETWEEN literal AND literal"""
        p[0] = Between(attribute=p[1], lower=p[3], upper=p[5])

    def p_predicate_not_between(self, p: yacc.YaccProduction) -> None:
        """predicate : attribute NOT BETWEEN literal AND literal"""
        p[0] = Not(Between(attribute=p[1], lower=p[4], upper=p[6]))

    def p_predicate_regexp_infix(self, p: yacc.YaccProduction) -> None:
        """predicate : attribute REGEXP STRING"""
        p[0] = Regexp(attribute=p[1], pattern=p[3])

    def p_predicate_regexp_call(self, p: yacc.YaccProduction) -> None:
        """predicate : REGEXP LPAREN attribute COMMA STRING RPAREN"""
        p[0] = Regexp(attribute=p[3], pattern=p[5])

    def p_literal_string(self, p: yacc.YaccProduction) -> None:
        """literal : STRING"""
        p[0] = FileValue.string(p[1])

    def p_literal_number(self, p: yacc.YaccProduction) -> None:
        """literal : NUMBER"""
        p[0] = FileValue.number(p[1])

    def p_literal_boolean(self, p: yacc.YaccProduction) -> None:
        """literal : TRUE
                   | FALSE"""
        p[0] = FileValue.boolean(p[1].lower() == "true")

    def p_literal_null(self, p: yacc.YaccProduction) -> None:
        """literal : NULL"""
        p[0] = FileValue.null()

    # --- Errors ---

    def p_error(self, p: yacc.YaccProduction) -> None:
        index = self._token_index(p)
        prev = self._tokens[index - 1] if index > 0 else None
        prev_type = prev.type if prev is not None else None

        if prev_type == "AND" and index >= 3 and self._tokens[index - 3].type == "BETWEEN":
            raise InvalidValueError("Missing upper bound for BETWEEN", prev.lexpos)

        if p is None:
            if prev_type in _VALUE_EXPECTING_TOKENS:
                raise InvalidValueError(f"Missing value after '{prev.value}'")
            if prev_type == "SELECT":
                raise MissingClauseError("Missing column list after SELECT")
            after = f" after '{prev.value}'" if prev is not None else ""
            raise MissingClauseError(f"Unexpected end of query{after}")

        where = f"at '{p.value}' (position {p.lexpos})"
        if isinstance(p.value, str) and p.value.upper() in UNSUPPORTED_KEYWORDS:
            raise UnsupportedFeatureError(f"{p.value.upper()} is not supported {where}", p.lexpos)
        if prev_type == "IDENTIFIER" and prev.value.upper() in UNSUPPORTED_KEYWORDS:
            raise UnsupportedFeatureError(f"{prev.value.upper()} is not supported", prev.lexpos)
        if prev_type in ("FROM", "UPDATE"):
            raise InvalidPathError(f"Invalid path {where}", p.lexpos)
        if prev_type in _COMPARISON_TOKENS:
            if p.type in _COMPARISON_TOKENS:
                raise InvalidOperatorError(f"Invalid operator '{prev.value}{p.value}'", prev.lexpos)
            raise InvalidValueError(f"Invalid value {where}", p.lexpos)
        if prev_type in _VALUE_EXPECTING_TOKENS:
            raise InvalidValueError(f"Invalid value {where}", p.lexpos)
        if prev_type == "SELECT":
            raise MissingClauseError(f"Missing column list after SELECT {where}", p.lexpos)
        if prev_type == "WHERE":
            raise MissingClauseError(f"Missing condition after WHERE {where}", p.lexpos)
        if prev_type == "WITH":
            raise UnsupportedFeatureError(f"Only WITH RECURSIVE is supported {where}", p.lexpos)
        if prev_type == "IDENTIFIER" and self._inside_condition(index):
            raise InvalidOperatorError(f"Expected an operator after '{prev.value}' {where}", p.lexpos)
        if prev_type == "SET" or (prev_type == "IDENTIFIER" and self._inside_set(index)):
            raise InvalidOperatorError(f"Expected '=' in SET clause {where}", p.lexpos)
        if p.type != "FROM" and self._missing_from(index):
            raise MissingClauseError(f"Missing FROM clause {where}", p.lexpos)
        raise UnsupportedFeatureError(f"Unexpected {where}", p.lexpos)

    def _token_index(self, tok: Any) -> int:
        """Return the index of ``tok`` in the current token list (end if None)."""
        if tok is not None:
            for i, candidate in enumerate(self._tokens):
                if candidate is tok:
                    return i
        return len(self._tokens)

    def _inside_condition(self, index: int) -> bool:
        return any(t.type == "WHERE" for t in self._tokens[:index])

    def _missing_from(self, index: int) -> bool:
        seen = [t.type for t in self._tokens[:index]]
        return bool(seen) and seen[0] in ("SELECT", "WITH") and "FROM" not in seen

    def _inside_set(self, index: int) -> bool:
        seen = [t.type for t in self._tokens[:index]]
        return "SET" in seen and "WHERE" not in seen

    # --- Paths ---

    def resolve_path(self, text: str, position: int | None = None) -> Path:
        """Resolve a path token, expanding a leading ``~``."""
        if not text:
            raise InvalidPathError("Empty path", position)
        if text == "~" or text.startswith(("~/", "~\\")):
            try:
                home = self.home_resolver()
            except (RuntimeError, KeyError, OSError) as e:
                raise InvalidPathError(f"Could not determine home directory: {e}", position) from e
            return Path(home) / text[2:] if len(text) > 1 else Path(home)
        if text.startswith("~"):
            expanded = os.path.expanduser(text)
            if expanded == text:
                raise InvalidPathError(f"Could not resolve home directory in {text}", position)
            return Path(expanded)
        return Path(text)

    # --- Parser methods ---

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="statement", **kwargs)

    def parse(self, data: str) -> FileQuery:
        """Parse a query string."""
        match = _LEADING_WORD.match(data)
        keyword = match.group(1).upper() if match else ""
        if keyword not in SUPPORTED_STATEMENTS:
            shown = data.strip() or "<empty>"
            raise UnsupportedStatementError(f"Unsupported statement: {shown}", 0)

        if self.parser is None:
            self.build(debug=False, write_tables=False, errorlog=yacc.NullLogger())

        self._tokens = self.lexer.tokenize(data)
        tokens = iter(self._tokens)
        try:
            query = self.parser.parse(
                data, lexer=self.lexer.lexer, tokenfunc=lambda: next(tokens, None)
            )
        finally:
            self._tokens = []
        logger.debug("Parsed %r into %r", data, query)
        return query


_default_parser: QueryParser | None = None


def parse_query(data: str) -> FileQuery:
    """Parse a query string with a shared default parser."""
    global _default_parser
    if _default_parser is None:
        _default_parser = QueryParser()
    return _default_parser.parse(data)
