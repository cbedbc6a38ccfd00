"""Shared fixtures for fmql tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from fmql.parsing.query_parser import QueryParser
from fmql.query_executor import QueryExecutor
from fmql.types import FileResult


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    """A small tree: four files and one sub-directory holding two more files.

        tree/
            file1.txt       (5 bytes)
            file2.txt       (29 bytes)
            config.ini
            script.sh       (mode 755)
            subdir/
                file3.txt
                config.xml
    """
    root = tmp_path / "tree"
    root.mkdir()
    (root / "file1.txt").write_text("hello")
    (root / "file2.txt").write_text("hello world, this is file two")
    (root / "config.ini").write_text("[main]\nkey=value\n")
    (root / "script.sh").write_text("#!/bin/sh\necho hi\n")
    subdir = root / "subdir"
    subdir.mkdir()
    (subdir / "file3.txt").write_text("three")
    (subdir / "config.xml").write_text("<config/>")

    for path in root.rglob("*"):
        if path.is_file():
            path.chmod(0o644)
    (root / "script.sh").chmod(0o755)
    return root


@pytest.fixture
def parser() -> QueryParser:
    """A parser whose home directory is /home/tester."""
    return QueryParser(home_resolver=lambda: Path("/home/tester"))


@pytest.fixture
def executor() -> QueryExecutor:
    return QueryExecutor()


def _make_file(**overrides) -> FileResult:
    values = dict(
        path=Path("/data/report.txt"),
        name="report.txt",
        size=2048,
        is_directory=False,
        extension="txt",
        permissions=0o644,
        modified=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
        owner="alice",
        created=None,
        accessed=datetime(2024, 6, 2, 8, 30, tzinfo=timezone.utc),
        is_symlink=False,
    )
    values.update(overrides)
    return FileResult(**values)


@pytest.fixture
def make_file():
    """Factory for FileResult snapshots with sensible defaults."""
    return _make_file
