"""Tests for query execution against a real directory tree."""

import os
import stat
from pathlib import Path

import pytest

from fmql.capabilities import PosixCapabilities, UnsupportedCapabilities
from fmql.exceptions import (
    FileAccessError,
    InvalidRegexError,
    PathNotFoundError,
    TypeMismatchError,
    UnsupportedAttributeError,
    UnsupportedOperationError,
    UpdateError,
)
from fmql.parsing.query_parser import FileAttributeUpdate, UpdateQuery
from fmql.query_executor import QueryExecutor, execute_query
from fmql.types import FileAttribute

posix_only = pytest.mark.skipif(os.name != "posix", reason="requires POSIX permissions")


def run(parser, executor, text):
    return executor.execute(parser.parse(text))


def names(results):
    return sorted(r.name for r in results)


def mode_of(path: Path) -> int:
    return stat.S_IMODE(os.stat(path).st_mode)


class TestSelect:
    """Tests for SELECT execution."""

    def test_direct_children(self, parser, executor, sample_tree):
        """Test that a plain select returns only the direct children."""
        results = run(parser, executor, f"SELECT * FROM '{sample_tree}'")
        assert names(results) == ["config.ini", "file1.txt", "file2.txt", "script.sh", "subdir"]

    def test_recursive(self, parser, executor, sample_tree):
        """Test that WITH RECURSIVE returns every file and directory."""
        results = run(parser, executor, f"WITH RECURSIVE SELECT * FROM '{sample_tree}'")
        # 6 files + 1 sub-directory
        assert len(results) == 7
        assert sample_tree / "subdir" / "file3.txt" in [r.path for r in results]

    def test_directories_before_contents(self, parser, executor, sample_tree):
        """Test that a directory is reported before the entries inside it."""
        results = run(parser, executor, f"WITH RECURSIVE SELECT * FROM '{sample_tree}'")
        paths = [r.path for r in results]
        assert paths.index(sample_tree / "subdir") < paths.index(sample_tree / "subdir" / "file3.txt")

    def test_snapshot_fields(self, parser, executor, sample_tree):
        """Test the values reported for a file and a directory."""
        results = {r.name: r for r in run(parser, executor, f"SELECT * FROM '{sample_tree}'")}

        f = results["file1.txt"]
        assert f.path == sample_tree / "file1.txt"
        assert f.size == 5
        assert f.extension == "txt"
        assert f.is_directory is False
        assert f.is_symlink is False
        assert f.modified.tzinfo is not None

        d = results["subdir"]
        assert d.is_directory is True
        assert d.extension is None

    def test_where_extension(self, parser, executor, sample_tree):
        """Test filtering by extension over the whole tree."""
        results = run(parser, executor, f"WITH RECURSIVE SELECT * FROM '{sample_tree}' WHERE extension = 'txt'")
        assert names(results) == ["file1.txt", "file2.txt", "file3.txt"]

    def test_where_like(self, parser, executor, sample_tree):
        """Test filtering with LIKE."""
        results = run(parser, executor, f"WITH RECURSIVE SELECT * FROM '{sample_tree}' WHERE name LIKE 'CONFIG%'")
        assert names(results) == ["config.ini", "config.xml"]

    def test_where_size_and_type(self, parser, executor, sample_tree):
        """Test combining conditions."""
        results = run(
            parser, executor,
            f"SELECT * FROM '{sample_tree}' WHERE size > 10 AND is_directory = FALSE AND NOT extension = 'sh'",
        )
        assert names(results) == ["config.ini", "file2.txt"]

    @posix_only
    def test_where_executable(self, parser, executor, sample_tree):
        """Test filtering on the execute bit."""
        results = run(parser, executor, f"SELECT * FROM '{sample_tree}' WHERE is_executable = TRUE AND is_directory = FALSE")
        assert names(results) == ["script.sh"]

    @posix_only
    def test_where_permissions(self, parser, executor, sample_tree):
        """Test filtering on an octal mode."""
        results = run(parser, executor, f"SELECT * FROM '{sample_tree}' WHERE permissions = 755 AND is_directory = FALSE")
        assert names(results) == ["script.sh"]

    def test_where_regexp(self, parser, executor, sample_tree):
        """Test filtering with REGEXP."""
        results = run(parser, executor, f"WITH RECURSIVE SELECT * FROM '{sample_tree}' WHERE REGEXP(name, '^file[13]')")
        assert names(results) == ["file1.txt", "file3.txt"]

    def test_select_is_idempotent(self, parser, executor, sample_tree):
        """Test that running the same select twice gives the same results."""
        text = f"WITH RECURSIVE SELECT * FROM '{sample_tree}' WHERE extension = 'txt'"
        assert run(parser, executor, text) == run(parser, executor, text)

    def test_root_file(self, parser, executor, sample_tree):
        """Test that a file root yields its own snapshot."""
        results = run(parser, executor, f"SELECT * FROM '{sample_tree / 'file1.txt'}'")
        assert [r.name for r in results] == ["file1.txt"]

    def test_empty_directory(self, parser, executor, tmp_path):
        """Test selecting from an empty directory."""
        assert run(parser, executor, f"SELECT * FROM '{tmp_path}'") == []

    def test_missing_root(self, parser, executor, tmp_path):
        """Test that a missing root path is an error, not an empty result."""
        with pytest.raises(PathNotFoundError) as exc_info:
            run(parser, executor, f"SELECT * FROM '{tmp_path / 'missing'}'")
        assert exc_info.value.path == tmp_path / "missing"

    def test_evaluation_errors_propagate(self, parser, executor, sample_tree):
        """Test that a type error aborts the select."""
        with pytest.raises(TypeMismatchError):
            run(parser, executor, f"SELECT * FROM '{sample_tree}' WHERE size = 'big'")

    def test_bad_regex_on_empty_directory(self, parser, executor, tmp_path):
        """Test that a malformed pattern is reported even with nothing to match."""
        with pytest.raises(InvalidRegexError):
            run(parser, executor, f"SELECT * FROM '{tmp_path}' WHERE name REGEXP '('")

    @posix_only
    def test_symlinks_not_followed(self, parser, executor, sample_tree):
        """Test that a symlinked directory is reported but not entered."""
        (sample_tree / "link").symlink_to(sample_tree / "subdir", target_is_directory=True)

        results = run(parser, executor, f"WITH RECURSIVE SELECT * FROM '{sample_tree}'")
        by_name = {r.path.relative_to(sample_tree).as_posix(): r for r in results}

        assert by_name["link"].is_symlink is True
        assert by_name["link"].is_directory is False
        assert not any(key.startswith("link/") for key in by_name)
        assert len(results) == 8

    @posix_only
    @pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root can read any directory")
    def test_unreadable_directory_skipped(self, parser, executor, sample_tree):
        """Test that an unreadable sub-directory is skipped, not fatal."""
        subdir = sample_tree / "subdir"
        subdir.chmod(0o000)
        try:
            results = run(parser, executor, f"WITH RECURSIVE SELECT * FROM '{sample_tree}'")
        finally:
            subdir.chmod(0o755)
        assert names(results) == ["config.ini", "file1.txt", "file2.txt", "script.sh", "subdir"]

    def test_execute_query_helper(self, parser, sample_tree):
        """Test the module-level execute_query helper."""
        results = execute_query(parser.parse(f"SELECT name FROM '{sample_tree}'"))
        assert len(results) == 5


@posix_only
class TestUpdate:
    """Tests for UPDATE execution."""

    @pytest.fixture
    def mixed_dir(self, tmp_path: Path) -> Path:
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "a.txt").chmod(0o600)
        (tmp_path / "b.jpg").write_text("b")
        (tmp_path / "b.jpg").chmod(0o644)
        return tmp_path

    def test_update_matching_only(self, parser, executor, mixed_dir):
        """Test that only matching files are changed and fresh snapshots are returned."""
        results = run(
            parser, executor,
            f"UPDATE '{mixed_dir}' SET permissions = '644' WHERE extension = 'txt'",
        )

        assert [r.name for r in results] == ["a.txt"]
        assert results[0].permissions == 0o644
        assert mode_of(mixed_dir / "a.txt") == 0o644
        assert mode_of(mixed_dir / "b.jpg") == 0o644

    def test_update_is_recursive(self, parser, executor, sample_tree):
        """Test that updates reach nested entries."""
        results = run(parser, executor, f"UPDATE '{sample_tree}' SET permissions = 600 WHERE name = 'file3.txt'")

        assert [r.name for r in results] == ["file3.txt"]
        assert mode_of(sample_tree / "subdir" / "file3.txt") == 0o600

    def test_update_without_where(self, parser, executor, mixed_dir):
        """Test updating every entry."""
        results = run(parser, executor, f"UPDATE '{mixed_dir}' SET permissions = '640'")
        assert names(results) == ["a.txt", "b.jpg"]
        assert all(r.permissions == 0o640 for r in results)

    def test_update_owner_unsupported(self, parser, executor, mixed_dir):
        """Test that owner updates always fail and touch nothing."""
        with pytest.raises(UnsupportedOperationError):
            run(parser, executor, f"UPDATE '{mixed_dir}' SET permissions = '777', owner = 'admin'")
        assert mode_of(mixed_dir / "a.txt") == 0o600

    def test_update_other_attribute(self, parser, executor, mixed_dir):
        """Test that non-permission attributes cannot be updated."""
        with pytest.raises(UnsupportedAttributeError):
            run(parser, executor, f"UPDATE '{mixed_dir}' SET name = 'c.txt'")
        assert (mixed_dir / "a.txt").exists()

    def test_update_bad_mode(self, executor, mixed_dir):
        """Test that a malformed mode in a built query is a type error."""
        query = UpdateQuery(
            path=mixed_dir,
            updates=[FileAttributeUpdate(FileAttribute.PERMISSIONS, "rwx")],
        )
        with pytest.raises(TypeMismatchError):
            executor.execute(query)

    def test_update_missing_root(self, parser, executor, tmp_path):
        """Test that updating a missing path is an error."""
        with pytest.raises(PathNotFoundError):
            run(parser, executor, f"UPDATE '{tmp_path / 'nope'}' SET permissions = '644'")

    def test_update_refuses_symlinks(self, parser, executor, mixed_dir):
        """Test that a matched symlink aborts the update before any change."""
        (mixed_dir / "link.txt").symlink_to(mixed_dir / "a.txt")

        with pytest.raises(UnsupportedOperationError):
            run(parser, executor, f"UPDATE '{mixed_dir}' SET permissions = '644' WHERE extension = 'txt'")
        assert mode_of(mixed_dir / "a.txt") == 0o600

    def test_partial_failure(self, parser, mixed_dir):
        """Test that a failure mid-batch reports the completed entries."""

        class FailingSecond(PosixCapabilities):
            calls = 0

            def set_permissions(self, path, mode):
                self.calls += 1
                if self.calls == 2:
                    raise PermissionError(1, "Operation not permitted", str(path))
                super().set_permissions(path, mode)

        executor = QueryExecutor(FailingSecond())
        with pytest.raises(UpdateError) as exc_info:
            run(parser, executor, f"UPDATE '{mixed_dir}' SET permissions = '604'")

        error = exc_info.value
        assert error.attribute is FileAttribute.PERMISSIONS
        assert len(error.completed) == 1
        assert error.completed[0].permissions == 0o604
        assert str(error.path) in str(error)

    def test_contents_changed_before_directory(self, parser, sample_tree):
        """Test that entries inside a directory are changed before the directory itself."""

        class Recording(PosixCapabilities):
            def __init__(self):
                self.changed = []

            def set_permissions(self, path, mode):
                self.changed.append(path)
                super().set_permissions(path, mode)

        capabilities = Recording()
        results = run(parser, QueryExecutor(capabilities), f"UPDATE '{sample_tree}' SET permissions = '755'")

        subdir = sample_tree / "subdir"
        assert capabilities.changed.index(subdir / "file3.txt") < capabilities.changed.index(subdir)
        paths = [r.path for r in results]
        assert paths.index(subdir) < paths.index(subdir / "file3.txt")

    @pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root ignores directory modes")
    def test_update_directory_without_search_bit(self, parser, executor, tmp_path):
        """Test that removing a directory's search bit does not block its contents."""
        inner = tmp_path / "d" / "sub"
        inner.mkdir(parents=True)
        (inner / "f.txt").write_text("f")

        try:
            results = run(parser, executor, f"UPDATE '{tmp_path / 'd'}' SET permissions = '600'")
        finally:
            inner.chmod(0o755)
        assert sorted(r.path for r in results) == [inner, inner / "f.txt"]
        assert all(r.permissions == 0o600 for r in results)
        assert mode_of(inner / "f.txt") == 0o600

    def test_unsupported_platform(self, parser, mixed_dir):
        """Test that platforms without mode bits refuse permission updates."""
        executor = QueryExecutor(UnsupportedCapabilities())
        with pytest.raises(UnsupportedOperationError):
            run(parser, executor, f"UPDATE '{mixed_dir}' SET permissions = '644'")
        assert mode_of(mixed_dir / "a.txt") == 0o600


class TestExecutorErrors:
    """Tests for executor-level errors."""

    def test_unknown_query_type(self, executor):
        """Test that unknown query objects are rejected."""
        with pytest.raises(ValueError):
            executor.execute("SELECT * FROM /tmp")  # type: ignore[arg-type]

    def test_file_access_error_message(self, tmp_path):
        """Test the message of FileAccessError."""
        error = FileAccessError(tmp_path, "Permission denied")
        assert str(error) == f"Cannot access {tmp_path}: Permission denied"
