"""Command line and interactive REPL for fmql."""

from __future__ import annotations

import argparse
import json
import logging
import readline  # noqa: F401 - enables line editing in input()
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from fmql.config import OUTPUT_FORMATS, FmqlConfig
from fmql.exceptions import FmqlError, UpdateError
from fmql.parsing.query_parser import QueryParser, SelectQuery
from fmql.query_executor import QueryExecutor
from fmql.types import FileAttribute, FileResult

logger = logging.getLogger(__name__)

# Columns shown for SELECT *
DEFAULT_COLUMNS = [
    FileAttribute.PATH,
    FileAttribute.NAME,
    FileAttribute.SIZE,
    FileAttribute.IS_DIRECTORY,
    FileAttribute.EXTENSION,
    FileAttribute.PERMISSIONS,
    FileAttribute.MODIFIED,
    FileAttribute.OWNER,
]


def _split_statements(content: str) -> list[str]:
    """Split content into statements on semicolons outside string literals."""
    statements = []
    current = []
    quote: str | None = None

    for ch in content:
        if quote is not None:
            # A doubled quote closes and reopens the literal, which is harmless here
            if ch == quote:
                quote = None
            current.append(ch)
        elif ch in ("'", '"'):
            quote = ch
            current.append(ch)
        elif ch == ";":
            stmt = "".join(current).strip()
            if stmt:
                statements.append(stmt)
            current = []
        else:
            current.append(ch)

    stmt = "".join(current).strip()
    if stmt:
        statements.append(stmt)
    return statements


def _strip_comments(content: str) -> str:
    """Drop lines starting with ``--``."""
    return "\n".join(
        line for line in content.split("\n") if not line.strip().startswith("--")
    )


def format_value(value: Any, max_width: int = 40) -> str:
    """Format a value for display."""
    if value is None:
        return "NULL"
    elif isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, datetime):
        return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    else:
        s = str(value)
        if len(s) > max_width:
            return s[: max_width - 3] + "..."
        return s


def attribute_value(result: FileResult, attribute: FileAttribute) -> Any:
    """Return the display value of one attribute."""
    if attribute is FileAttribute.PERMISSIONS:
        return f"{result.permissions:o}"
    if attribute is FileAttribute.PATH:
        return str(result.path)
    return getattr(result, attribute.value)


def result_columns(attributes: list[FileAttribute] | None) -> list[FileAttribute]:
    if not attributes or FileAttribute.ALL in attributes:
        return list(DEFAULT_COLUMNS)
    return attributes


def result_rows(
    results: list[FileResult], attributes: list[FileAttribute] | None = None
) -> list[dict[str, Any]]:
    """Project results onto the requested attributes."""
    columns = result_columns(attributes)
    return [
        {col.value: attribute_value(result, col) for col in columns}
        for result in results
    ]


def print_result(
    results: list[FileResult],
    attributes: list[FileAttribute] | None = None,
    output_format: str = "text",
) -> None:
    """Print query results as a table or as JSON."""
    if output_format == "json":
        print(json.dumps([result.to_dict() for result in results], indent=2))
        return

    if not results:
        print("(no results)")
        return

    columns = [col.value for col in result_columns(attributes)]
    rows = result_rows(results, attributes)

    # Calculate column widths
    col_widths = {col: len(col) for col in columns}
    for row in rows:
        for col in columns:
            col_widths[col] = max(col_widths[col], len(format_value(row.get(col))))

    # Cap column widths
    max_col_width = 60
    for col in col_widths:
        col_widths[col] = min(col_widths[col], max_col_width)

    header = " | ".join(col.ljust(col_widths[col])[: col_widths[col]] for col in columns)
    print(header)
    print("-" * len(header))

    for row in rows:
        values = []
        for col in columns:
            val = format_value(row.get(col), col_widths[col])
            values.append(val.ljust(col_widths[col]))
        print(" | ".join(values))

    print(f"\n({len(rows)} row{'s' if len(rows) != 1 else ''})")


def run_query(
    text: str, parser: QueryParser, executor: QueryExecutor, output_format: str = "text"
) -> None:
    """Parse, execute and print one statement."""
    query = parser.parse(text)
    results = executor.execute(query)
    attributes = query.attributes if isinstance(query, SelectQuery) else None
    print_result(results, attributes, output_format)


def _report(error: FmqlError | OSError) -> None:
    print(f"Error: {error}", file=sys.stderr)
    if isinstance(error, UpdateError) and error.completed:
        print(
            f"{len(error.completed)} entries were updated before the failure:",
            file=sys.stderr,
        )
        for entry in error.completed:
            print(f"  {entry.path}", file=sys.stderr)


def print_help() -> None:
    """Print help information."""
    print("""
fmql - query the filesystem with SQL

QUERIES:
  SELECT * FROM <path> [WHERE <condition>];
  SELECT name, size FROM <path> [WHERE <condition>];
  WITH RECURSIVE SELECT * FROM <path> [WHERE <condition>];
  UPDATE <path> SET permissions = '644' [WHERE <condition>];

ATTRIBUTES:
  name, path, size, extension (ext), modified (mtime), created,
  accessed (atime), permissions (perms, mode), owner,
  is_directory (is_dir), is_symlink (is_link), is_executable

CONDITIONS:
  attr = value, !=, <>, <, <=, >, >=
  attr [NOT] LIKE 'pattern'          % any run, _ one character, \\ escapes
  attr [NOT] LIKE BINARY 'pattern'   case-sensitive LIKE
  attr [NOT] BETWEEN a AND b
  attr REGEXP 'pattern', REGEXP(attr, 'pattern')
  NOT, AND, OR, parentheses

OTHER:
  help                     Show this help
  exit, quit               Exit the REPL

Queries can span multiple lines. End them with a semicolon.
""")


def run_repl(config: FmqlConfig) -> int:
    """Run the interactive REPL."""
    print("fmql - filesystem query REPL")
    print("Type 'help' for commands, 'exit' to quit.\n")

    parser = QueryParser(like_case_sensitive=config.like_case_sensitive)
    executor = QueryExecutor()

    history_file = Path(config.history_file)
    try:
        readline.read_history_file(history_file)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not read history file %s: %s", history_file, e)

    buffer: list[str] = []
    try:
        while True:
            try:
                line = input("fmql> " if not buffer else "  ... ")
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                buffer = []
                continue

            stripped = line.strip()
            if not buffer:
                if not stripped:
                    continue
                if stripped.lower() in ("exit", "quit"):
                    break
                if stripped.lower() == "help":
                    print_help()
                    continue

            buffer.append(line)
            text = "\n".join(buffer)
            if not text.rstrip().endswith(";"):
                continue
            buffer = []

            for statement in _split_statements(_strip_comments(text)):
                try:
                    run_query(statement, parser, executor, config.output_format)
                except (FmqlError, OSError) as e:
                    _report(e)
            print()
    finally:
        try:
            readline.set_history_length(1000)
            readline.write_history_file(history_file)
        except OSError as e:
            logger.warning("Could not write history file %s: %s", history_file, e)

    return 0


def run_file(
    file_path: Path, config: FmqlConfig, verbose: bool = False
) -> int:
    """Execute queries from a file.

    Args:
        file_path: Path to the file containing queries
        config: Output format and LIKE defaults
        verbose: If True, print each query before executing

    Returns:
        0 on success, 1 on error
    """
    try:
        content = file_path.read_text()
    except OSError as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    queries = _split_statements(_strip_comments(content))
    if not queries:
        print("No queries found in file", file=sys.stderr)
        return 1

    parser = QueryParser(like_case_sensitive=config.like_case_sensitive)
    executor = QueryExecutor()

    for query_text in queries:
        if verbose:
            print(f"fmql> {query_text};")
        try:
            run_query(query_text, parser, executor, config.output_format)
        except (FmqlError, OSError) as e:
            _report(e)
            return 1
        if verbose:
            print()

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    arg_parser = argparse.ArgumentParser(
        prog="fmql",
        description="Query and update the filesystem with SQL",
    )
    arg_parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Query to execute (starts the REPL when omitted)",
    )
    arg_parser.add_argument(
        "-f", "--file",
        type=Path,
        help="Execute queries from a file and exit",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print each query before executing (for -f/--file)",
    )
    arg_parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Output format (default: FMQL_OUTPUT_FORMAT or text)",
    )
    arg_parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: FMQL_LOG_LEVEL or WARNING)",
    )

    args = arg_parser.parse_args(argv)

    config = FmqlConfig.from_env()
    if args.format:
        config.output_format = args.format
    if args.log_level:
        config.log_level = args.log_level.upper()
    try:
        config.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=config.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.file:
        if not args.file.exists():
            print(f"Error: File not found: {args.file}", file=sys.stderr)
            return 1
        return run_file(args.file, config, args.verbose)

    if args.query:
        parser = QueryParser(like_case_sensitive=config.like_case_sensitive)
        try:
            run_query(args.query, parser, QueryExecutor(), config.output_format)
        except (FmqlError, OSError) as e:
            _report(e)
            return 1
        return 0

    return run_repl(config)


if __name__ == "__main__":
    sys.exit(main())
