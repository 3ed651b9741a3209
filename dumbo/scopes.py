"""
Nested uniqueness scopes.

The stack holds one entry per open test scope, root first. Each entry maps a
table to one set of reserved keys per indexer position. Lookups consult every
scope; writes only ever touch the innermost scope, so a
reservation made by an enclosing test blocks nested tests while a nested
test's reservations vanish when its scope is popped.
"""

from __future__ import annotations

import contextlib
from typing import Dict, Generator, List, Optional, Set

from dumbo.errors import ScopeError
from dumbo.utils.logging import get_logger

log = get_logger(__name__)

_Scope = Dict[str, List[Set[str]]]


class ScopeStack:
    """
    Stack of per-table uniqueness indexes.

    Not thread-safe: callers serialize scope entry/exit per instance.
    """

    def __init__(self) -> None:
        self._scopes: List[_Scope] = [{}]

    @property
    def depth(self) -> int:
        """Number of open scopes, including the root."""
        return len(self._scopes)

    def push(self) -> None:
        self._scopes.append({})
        log.debug("scope pushed", extra={"depth": self.depth})

    def pop(self) -> None:
        if len(self._scopes) == 1:
            raise ScopeError("cannot pop the root scope")
        self._scopes.pop()
        log.debug("scope popped", extra={"depth": self.depth})

    @contextlib.contextmanager
    def scope(self) -> Generator["ScopeStack", None, None]:
        """Push a scope for the duration of the block, popping it even on error."""
        self.push()
        try:
            yield self
        finally:
            self.pop()

    def ensure_table(self, table: str, indexer_count: int) -> None:
        current = self._scopes[-1]
        indexes = current.setdefault(table, [])
        while len(indexes) < indexer_count:
            indexes.append(set())

    def commit_key(self, table: str, position: int, key: str) -> None:
        self.ensure_table(table, position + 1)
        self._scopes[-1][table][position].add(key)

    def rollback_key(self, table: str, position: int, key: str) -> None:
        """
        Release a single reservation made in the current scope.

        Keys reserved by an enclosing scope are left alone, as are keys that
        are not reserved at all.
        """
        indexes = self._scopes[-1].get(table)
        if indexes is not None and position < len(indexes):
            indexes[position].discard(key)

    def contains(self, table: str, position: int, key: str) -> bool:
        return self._find(table, position, key) is not None

    def _find(self, table: str, position: int, key: str) -> Optional[Set[str]]:
        for scope in reversed(self._scopes):
            indexes = scope.get(table)
            if indexes is None or position >= len(indexes):
                continue
            if key in indexes[position]:
                return indexes[position]
        return None


__all__ = ["ScopeStack"]
