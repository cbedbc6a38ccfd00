"""Query executor for fmql queries."""

from __future__ import annotations

import logging
from pathlib import Path

from fmql.capabilities import FileCapabilities, default_capabilities
from fmql.evaluator import evaluate, validate_condition
from fmql.exceptions import (
    FileAccessError,
    TypeMismatchError,
    UnsupportedAttributeError,
    UnsupportedOperationError,
    UpdateError,
)
from fmql.filesystem import snapshot, walk
from fmql.parsing.query_parser import (
    FileAttributeUpdate,
    FileCondition,
    FileQuery,
    SelectQuery,
    UpdateQuery,
    parse_octal_mode,
)
from fmql.types import FileAttribute, FileResult

logger = logging.getLogger(__name__)


class QueryExecutor:
    """Executes fmql queries against the local filesystem."""

    def __init__(self, capabilities: FileCapabilities | None = None) -> None:
        self.capabilities = capabilities or default_capabilities()

    def execute(self, query: FileQuery) -> list[FileResult]:
        """Execute a query and return the matching (or updated) entries."""
        if isinstance(query, SelectQuery):
            return self._execute_select(query)
        elif isinstance(query, UpdateQuery):
            return self._execute_update(query)
        else:
            raise ValueError(f"Unknown query type: {type(query)}")

    def _matching(
        self, root: Path, recursive: bool, condition: FileCondition | None
    ) -> list[FileResult]:
        validate_condition(condition)
        results = []
        for entry in walk(root, recursive=recursive, capabilities=self.capabilities):
            if condition is None or evaluate(entry, condition):
                results.append(entry)
        return results

    def _execute_select(self, query: SelectQuery) -> list[FileResult]:
        results = self._matching(query.path, query.recursive, query.condition)
        logger.debug("SELECT on %s matched %d entries", query.path, len(results))
        return results

    def _execute_update(self, query: UpdateQuery) -> list[FileResult]:
        if not query.updates:
            raise UnsupportedOperationError("UPDATE without any assignment")
        modes = [self._permission_mode(update) for update in query.updates]

        # Updates always scan the whole subtree
        targets = self._matching(query.path, True, query.condition)
        for target in targets:
            if target.is_symlink:
                raise UnsupportedOperationError(
                    f"Refusing to change permissions through symlink {target.path}"
                )

        # Children before their directory, so a mode without the search bit
        # does not lock the rest of the batch out
        completed: list[FileResult] = []
        for target in reversed(targets):
            for mode in modes:
                try:
                    self.capabilities.set_permissions(target.path, mode)
                except OSError as e:
                    raise UpdateError(
                        target.path, FileAttribute.PERMISSIONS, e.strerror or str(e), completed
                    ) from e
            try:
                completed.append(snapshot(target.path, self.capabilities))
            except OSError as e:
                raise FileAccessError(target.path, e.strerror or str(e)) from e
        completed.reverse()

        logger.info(
            "Updated permissions of %d of %d matched entries under %s",
            len(completed), len(targets), query.path,
        )
        return completed

    @staticmethod
    def _permission_mode(update: FileAttributeUpdate) -> int:
        """Return the mode an update sets, or raise if it cannot be applied."""
        if update.attribute is FileAttribute.OWNER:
            raise UnsupportedOperationError("Changing the owner of a file is not supported")
        if update.attribute is not FileAttribute.PERMISSIONS:
            raise UnsupportedAttributeError(
                f"Attribute '{update.attribute.value}' cannot be updated", update.attribute
            )
        try:
            return parse_octal_mode(update.value)
        except ValueError as e:
            raise TypeMismatchError(str(e)) from e


def execute_query(query: FileQuery, capabilities: FileCapabilities | None = None) -> list[FileResult]:
    """Execute a parsed query with a fresh executor."""
    return QueryExecutor(capabilities).execute(query)
