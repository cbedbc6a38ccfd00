"""Parsing module for the file-query dialect."""

from fmql.parsing.query_lexer import QueryLexer
from fmql.parsing.query_parser import (
    And,
    Between,
    Compare,
    FileAttributeUpdate,
    FileCondition,
    FileQuery,
    Like,
    Not,
    Or,
    QueryParser,
    Regexp,
    SelectQuery,
    UpdateQuery,
    parse_query,
)

__all__ = [
    "And",
    "Between",
    "Compare",
    "FileAttributeUpdate",
    "FileCondition",
    "FileQuery",
    "Like",
    "Not",
    "Or",
    "QueryLexer",
    "QueryParser",
    "Regexp",
    "SelectQuery",
    "UpdateQuery",
    "parse_query",
]
