"""Attribute model and value types for file queries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


class FileAttribute(Enum):
    """Queryable properties of a filesystem entry."""

    ALL = "*"
    NAME = "name"
    PATH = "path"
    SIZE = "size"
    EXTENSION = "extension"
    MODIFIED = "modified"
    CREATED = "created"
    ACCESSED = "accessed"
    PERMISSIONS = "permissions"
    OWNER = "owner"
    IS_DIRECTORY = "is_directory"
    IS_SYMLINK = "is_symlink"
    IS_EXECUTABLE = "is_executable"

    @classmethod
    def lookup(cls, name: str) -> FileAttribute | None:
        """Return the attribute for a (case-insensitive) name or alias."""
        return ATTRIBUTE_NAMES.get(name.lower())


# Mapping from attribute names and aliases used in query text
ATTRIBUTE_NAMES: dict[str, FileAttribute] = {
    attr.value: attr for attr in FileAttribute if attr is not FileAttribute.ALL
}
ATTRIBUTE_NAMES.update({
    "ext": FileAttribute.EXTENSION,
    "mtime": FileAttribute.MODIFIED,
    "atime": FileAttribute.ACCESSED,
    "perms": FileAttribute.PERMISSIONS,
    "mode": FileAttribute.PERMISSIONS,
    "is_dir": FileAttribute.IS_DIRECTORY,
    "is_link": FileAttribute.IS_SYMLINK,
})

# Attributes whose values are timestamps
DATETIME_ATTRIBUTES = frozenset({
    FileAttribute.MODIFIED,
    FileAttribute.CREATED,
    FileAttribute.ACCESSED,
})


class ComparisonOperator(Enum):
    """Comparison operators usable in a WHERE clause."""

    EQ = "="
    NOT_EQ = "!="
    LT = "<"
    LT_EQ = "<="
    GT = ">"
    GT_EQ = ">="

    @property
    def is_equality(self) -> bool:
        return self in (ComparisonOperator.EQ, ComparisonOperator.NOT_EQ)


class ValueKind(Enum):
    """The kind tag of a FileValue."""

    STRING = "string"
    NUMBER = "number"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    NULL = "null"


@dataclass(frozen=True)
class FileValue:
    """A tagged literal or attribute value.

    Values are only ordered against values of the same kind. NULL supports
    equality and inequality only.
    """

    kind: ValueKind
    value: Any = None

    @classmethod
    def string(cls, value: str) -> FileValue:
        return cls(ValueKind.STRING, value)

    @classmethod
    def number(cls, value: float) -> FileValue:
        return cls(ValueKind.NUMBER, float(value))

    @classmethod
    def datetime(cls, value: datetime) -> FileValue:
        return cls(ValueKind.DATETIME, value)

    @classmethod
    def boolean(cls, value: bool) -> FileValue:
        return cls(ValueKind.BOOLEAN, bool(value))

    @classmethod
    def null(cls) -> FileValue:
        return cls(ValueKind.NULL)

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def __str__(self) -> str:
        if self.kind is ValueKind.NULL:
            return "NULL"
        if self.kind is ValueKind.STRING:
            return repr(self.value)
        if self.kind is ValueKind.BOOLEAN:
            return "true" if self.value else "false"
        if self.kind is ValueKind.DATETIME:
            return self.value.isoformat()
        if self.value == int(self.value):
            return str(int(self.value))
        return str(self.value)


@dataclass(frozen=True)
class FileResult:
    """Snapshot of one filesystem entry, taken when it was visited."""

    path: Path
    name: str
    size: int
    is_directory: bool
    extension: str | None
    permissions: int  # permission bits only, e.g. 0o644
    modified: datetime
    owner: str | None = None
    created: datetime | None = None
    accessed: datetime | None = None
    is_symlink: bool = False

    @property
    def is_executable(self) -> bool:
        return bool(self.permissions & 0o100)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation (timestamps as epoch seconds)."""
        return {
            "path": str(self.path),
            "name": self.name,
            "size": self.size,
            "is_directory": self.is_directory,
            "is_symlink": self.is_symlink,
            "extension": self.extension,
            "permissions": f"{self.permissions:o}",
            "modified": int(self.modified.timestamp()),
            "created": int(self.created.timestamp()) if self.created else None,
            "accessed": int(self.accessed.timestamp()) if self.accessed else None,
            "owner": self.owner,
        }
