"""
Factory registry: table name -> Factory (and optional Schema).
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from dumbo.domain.models import Factory, Schema
from dumbo.errors import DuplicateFactory, UnknownTable


class FactoryRegistry:
    """
    Lookup table of registered factories and schemas.

    Registering the same table twice is rejected with DuplicateFactory rather
    than silently replacing the earlier registration.
    """

    def __init__(
        self,
        factories: Iterable[Factory] = (),
        schemas: Iterable[Schema] = (),
    ) -> None:
        self._factories: Dict[str, Factory] = {}
        self._schemas: Dict[str, Schema] = {}
        self.register(*factories)
        self.register_schema(*schemas)

    def register(self, *factories: Factory) -> None:
        pending: Dict[str, Factory] = {}
        for factory in factories:
            if factory.table in self._factories or factory.table in pending:
                raise DuplicateFactory(factory.table)
            pending[factory.table] = factory
        self._factories.update(pending)

    def register_schema(self, *schemas: Schema) -> None:
        pending: Dict[str, Schema] = {}
        for schema in schemas:
            if schema.table in self._schemas or schema.table in pending:
                raise DuplicateFactory(schema.table, kind="schema")
            pending[schema.table] = schema
        self._schemas.update(pending)

    def lookup(self, table: str) -> Optional[Factory]:
        """Return the factory for `table`, or None when it has none."""
        return self._factories.get(table)

    def get(self, table: str) -> Factory:
        factory = self._factories.get(table)
        if factory is None:
            raise UnknownTable(table)
        return factory

    def schema_for(self, table: str) -> Optional[Schema]:
        return self._schemas.get(table)

    def tables(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, table: object) -> bool:
        return table in self._factories

    def __len__(self) -> int:
        return len(self._factories)


__all__ = ["FactoryRegistry"]
