"""Lexer for the fmql file-query dialect.

Identifiers are path-aware: besides ordinary identifier characters they may
start with ``~ / . _ -`` and continue with ``/ \\ . _ - ~ :``, so that
``~/Documents``, ``/var/log``, ``../src`` and ``C:/Users`` each lex as a
single IDENTIFIER. Keyword lookup happens only after a whole identifier has
been consumed, which keeps ``/data/select`` an identifier.
"""

import re

import ply.lex as lex

from fmql.exceptions import InvalidOperatorError, InvalidValueError

# Characters an identifier may start with in addition to letters and "_"
IDENTIFIER_START_EXTRA = "~/._-"

# Characters an identifier may continue with in addition to letters, digits and "_"
IDENTIFIER_PART_EXTRA = "/\\._-~:"

IDENTIFIER_PATTERN = (
    r"(?:[^\W\d]|[" + re.escape(IDENTIFIER_START_EXTRA) + r"])"
    r"[\w" + re.escape(IDENTIFIER_PART_EXTRA) + r"]*"
)

# Stray characters that look like a (mistyped) operator
_OPERATOR_CHARS = frozenset("!&|^")


class QueryLexer:
    """Lexer for tokenizing fmql queries."""

    # Reserved keywords
    reserved = {
        "select": "SELECT",
        "from": "FROM",
        "where": "WHERE",
        "with": "WITH",
        "recursive": "RECURSIVE",
        "update": "UPDATE",
        "set": "SET",
        "and": "AND",
        "or": "OR",
        "not": "NOT",
        "like": "LIKE",
        "binary": "BINARY",
        "regexp": "REGEXP",
        "between": "BETWEEN",
        "true": "TRUE",
        "false": "FALSE",
        "null": "NULL",
    }

    # Token list
    tokens = [
        "IDENTIFIER",
        "NUMBER",
        "STRING",
        "STAR",
        "COMMA",
        "LPAREN",
        "RPAREN",
        "EQ",
        "NEQ",
        "LT",
        "LTE",
        "GT",
        "GTE",
        "SEMICOLON",
    ] + list(reserved.values())

    # Simple tokens
    t_STAR = r"\*"
    t_COMMA = r","
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_SEMICOLON = r";"
    t_EQ = r"="
    t_NEQ = r"!=|<>"
    t_LTE = r"<="
    t_LT = r"<"
    t_GTE = r">="
    t_GT = r">"

    t_ignore = " \t\r"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    # Function rules are tried in definition order, so numbers win over
    # identifiers starting with "-".

    def t_NUMBER(self, t: lex.LexToken) -> lex.LexToken:
        r"-?\d+(?:\.\d+)?"
        t.value = float(t.value) if "." in t.value else int(t.value)
        return t

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"""'(?:[^']|'')*'|"(?:[^"]|"")*\""""
        quote = t.value[0]
        # Backslashes are kept verbatim so regex escapes survive
        t.value = t.value[1:-1].replace(quote * 2, quote)
        t.lexer.lineno += t.value.count("\n")
        return t

    def t_BACKTICK_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"`[^`]+`"
        # Strip backticks: always an IDENTIFIER, bypassing keyword lookup
        t.value = t.value[1:-1]
        t.type = "IDENTIFIER"
        return t

    @lex.TOKEN(IDENTIFIER_PATTERN)
    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        t.type = self.reserved.get(t.value.lower(), "IDENTIFIER")
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_error(self, t: lex.LexToken) -> None:
        ch = t.value[0]
        message = f"Illegal character '{ch}' at position {t.lexpos}"
        if ch in _OPERATOR_CHARS:
            raise InvalidOperatorError(message, t.lexpos)
        raise InvalidValueError(message, t.lexpos)

    # --- Lexer methods ---

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens
