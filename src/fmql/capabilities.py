"""Platform-specific permission and owner handling.

The evaluator and executor only ever talk to a FileCapabilities object, so
that mode bits and user names stay out of the platform-neutral core.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from fmql.exceptions import UnsupportedOperationError

logger = logging.getLogger(__name__)

class FileCapabilities:
    """Base capability set: permission bits from stat, no owner information."""

    name = "generic"

    def get_permissions(self, st: os.stat_result) -> int:
        """Return the permission bits of a stat result."""
        return stat.S_IMODE(st.st_mode)

    def set_permissions(self, path: Path, mode: int) -> None:
        raise UnsupportedOperationError(
            f"Changing permissions is not supported on this platform ({self.name})"
        )

    def get_owner(self, st: os.stat_result) -> str | None:
        return None


class PosixCapabilities(FileCapabilities):
    """Unix mode bits and the passwd database."""

    name = "posix"

    def set_permissions(self, path: Path, mode: int) -> None:
        # Symlinks are refused by the executor, so following is safe here
        os.chmod(path, mode)
        logger.debug("chmod %o %s", mode, path)

    def get_owner(self, st: os.stat_result) -> str | None:
        import pwd

        try:
            return pwd.getpwuid(st.st_uid).pw_name
        except KeyError:
            # uid without a passwd entry, e.g. inside containers
            return str(st.st_uid)

class UnsupportedCapabilities(FileCapabilities):
    """Platforms without Unix ownership or mode bits."""

    name = "unsupported"

def default_capabilities() -> FileCapabilities:
    """Return the capability set for the running platform."""
    if os.name == "posix":
        return PosixCapabilities()
    return UnsupportedCapabilities()
