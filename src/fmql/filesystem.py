"""Directory traversal and file snapshots."""

from __future__ import annotations

import logging
import os
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from fmql.capabilities import FileCapabilities, default_capabilities
from fmql.exceptions import FileAccessError, PathNotFoundError
from fmql.types import FileResult

logger = logging.getLogger(__name__)


def _timestamp(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def snapshot(
    path: Path,
    capabilities: FileCapabilities | None = None,
    follow_symlinks: bool = False,
) -> FileResult:
    """Read the metadata of one entry.

    Symlinks are described as links unless ``follow_symlinks`` is set.
    Raises OSError if the entry cannot be stat'ed.
    """
    capabilities = capabilities or default_capabilities()
    path = Path(path)
    st = os.stat(path, follow_symlinks=follow_symlinks)
    birth = getattr(st, "st_birthtime", None)
    suffix = path.suffix
    return FileResult(
        path=path,
        name=path.name or str(path),
        size=st.st_size,
        is_directory=stat.S_ISDIR(st.st_mode),
        extension=suffix[1:] if suffix else None,
        permissions=capabilities.get_permissions(st),
        modified=_timestamp(st.st_mtime),
        owner=capabilities.get_owner(st),
        created=_timestamp(birth) if birth is not None else None,
        accessed=_timestamp(st.st_atime),
        is_symlink=stat.S_ISLNK(st.st_mode),
    )


def walk(
    root: Path,
    recursive: bool = False,
    capabilities: FileCapabilities | None = None,
) -> Iterator[FileResult]:
    """Yield a snapshot for every entry below ``root``.

    Entries come in directory-enumeration order, depth first, each directory
    before its contents. Only direct children are visited unless
    ``recursive`` is set. Symlinked directories are reported but never
    entered. The root itself is not reported, unless it is not a directory,
    in which case its own snapshot is the only result.

    Raises:
        PathNotFoundError: ``root`` does not exist.
        FileAccessError: ``root`` exists but cannot be read.
    """
    capabilities = capabilities or default_capabilities()
    root = Path(root)
    try:
        st = os.stat(root)
    except FileNotFoundError as e:
        raise PathNotFoundError(root) from e
    except OSError as e:
        raise FileAccessError(root, e.strerror or str(e)) from e

    if not stat.S_ISDIR(st.st_mode):
        try:
            yield snapshot(root, capabilities, follow_symlinks=True)
        except OSError as e:
            raise FileAccessError(root, e.strerror or str(e)) from e
        return

    try:
        listing = os.scandir(root)
    except OSError as e:
        raise FileAccessError(root, e.strerror or str(e)) from e

    logger.debug("Walking %s (recursive=%s)", root, recursive)
    stack = [listing]
    try:
        while stack:
            try:
                entry = next(stack[-1], None)
            except OSError as e:
                logger.warning("Stopped listing a directory below %s: %s", root, e)
                entry = None
            if entry is None:
                stack.pop().close()
                continue

            try:
                result = snapshot(Path(entry.path), capabilities)
            except OSError as e:
                # Removed or made unreadable since the listing was taken
                logger.warning("Skipping %s: %s", entry.path, e)
                continue
            yield result

            if recursive and result.is_directory:
                try:
                    stack.append(os.scandir(entry.path))
                except OSError as e:
                    logger.warning("Skipping unreadable directory %s: %s", entry.path, e)
    finally:
        for listing in stack:
            listing.close()
