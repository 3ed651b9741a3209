"""
Domain package for dumbo.

Exports the records, registrations and generation outcomes shared by the
registry, generator, executor and seeder.
"""

from dumbo.domain.models import (
    DEFAULT,
    CommittedKey,
    Factory,
    GenerationOutcome,
    Indexer,
    Record,
    Schema,
)

__all__ = [
    "DEFAULT",
    "CommittedKey",
    "Factory",
    "GenerationOutcome",
    "Indexer",
    "Record",
    "Schema",
]
