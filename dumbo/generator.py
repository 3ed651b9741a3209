"""
Record generation with bounded retry on uniqueness collisions.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional

from dumbo.domain.models import CommittedKey, Factory, GenerationOutcome, Record
from dumbo.errors import GenerationExhausted, UnknownColumn
from dumbo.registry import FactoryRegistry
from dumbo.scopes import ScopeStack
from dumbo.utils.logging import get_logger

log = get_logger(__name__)


class RecordGenerator:
    """
    Produce records from registered factories, reserving their uniqueness keys
    in the current scope.

    Batches are all-or-nothing: if any partial in a batch fails (typically by
    exhausting its retry budget), every key already reserved for earlier
    records of that batch is released before the error propagates.
    """

    def __init__(
        self,
        registry: FactoryRegistry,
        scopes: ScopeStack,
        strict_overrides: bool = False,
    ) -> None:
        self.registry = registry
        self.scopes = scopes
        self.strict_overrides = strict_overrides

    def generate(
        self,
        table: str,
        partials: Iterable[Optional[Mapping]],
        retry_limit: int,
    ) -> List[GenerationOutcome]:
        """
        Generate one record per partial, in input order.

        Parameters
        ----------
        table : str
            Registered table name.
        partials : iterable of mappings
            Field overrides applied on top of each generated default. None is
            treated as an empty override.
        retry_limit : int
            Retries allowed per partial after the first attempt.

        Raises
        ------
        UnknownTable
            If no factory is registered for `table`.
        GenerationExhausted
            If a partial collides on every one of its `retry_limit + 1`
            attempts.
        """
        if retry_limit < 0:
            raise ValueError(f"retry_limit must be >= 0, got {retry_limit}")
        factory = self.registry.get(table)
        self.scopes.ensure_table(table, len(factory.indexers))

        outcomes: List[GenerationOutcome] = []
        try:
            for partial in partials:
                outcomes.append(self._generate_one(factory, partial or {}, retry_limit))
        except Exception:
            self.release(outcomes)
            raise
        return outcomes

    def release(self, outcomes: Iterable[GenerationOutcome]) -> None:
        """Undo the reservations of previously generated records."""
        for outcome in outcomes:
            for committed in outcome.keys:
                self.scopes.rollback_key(committed.table, committed.position, committed.key)

    def _generate_one(
        self, factory: Factory, partial: Mapping, retry_limit: int
    ) -> GenerationOutcome:
        table = factory.table
        for attempt in range(1, retry_limit + 2):
            candidate = self._merge(factory, dict(factory.new_record()), partial)
            keys = [indexer(candidate) for indexer in factory.indexers]
            collision = next(
                (
                    position
                    for position, key in enumerate(keys)
                    if self.scopes.contains(table, position, key)
                ),
                None,
            )
            if collision is None:
                for position, key in enumerate(keys):
                    self.scopes.commit_key(table, position, key)
                return GenerationOutcome(
                    record=candidate,
                    keys=tuple(
                        CommittedKey(table=table, position=position, key=key)
                        for position, key in enumerate(keys)
                    ),
                )
            log.debug(
                "uniqueness collision, retrying",
                extra={"table": table, "attempt": attempt, "indexer": collision},
            )

        log.warning(
            "generation exhausted",
            extra={"table": table, "retry_limit": retry_limit},
        )
        raise GenerationExhausted(table, retry_limit)

    def _merge(self, factory: Factory, record: Record, partial: Mapping) -> Record:
        unknown = [column for column in partial if column not in record]
        if unknown:
            if self.strict_overrides:
                raise UnknownColumn(factory.table, unknown)
            log.debug(
                "dropping override(s) for columns the factory does not produce",
                extra={"table": factory.table, "columns": unknown},
            )
        for column, value in partial.items():
            if column in record:
                record[column] = value
        return record


__all__ = ["RecordGenerator"]
