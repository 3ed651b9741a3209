"""
dumbo - test-data fixtures for PostgreSQL-backed test suites.

Register a factory per table (a default-record generator plus uniqueness
indexers) and let the Seeder generate, insert and clean up rows:

- Generated uniqueness keys never collide within the active scope or any
  enclosing scope; nested scopes follow nested tests and savepoints.
- Collisions are retried a bounded number of times, then fail loudly.
- Inserts are single multi-row `INSERT ... RETURNING *` statements whose
  results flow back into plain records or typed target objects.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from dumbo.config import Settings, get_settings
from dumbo.domain.models import (
    DEFAULT,
    CommittedKey,
    Factory,
    GenerationOutcome,
    Record,
    Schema,
)
from dumbo.errors import (
    ColumnMismatch,
    DuplicateFactory,
    DumboError,
    GenerationExhausted,
    ReconciliationError,
    ScopeError,
    StoreError,
    UnknownColumn,
    UnknownTable,
)
from dumbo.executor import Executor
from dumbo.generator import RecordGenerator
from dumbo.identifiers import quote_identifier
from dumbo.infrastructure.store import PsycopgStore, Rows, Store
from dumbo.reconcile import Nullable, reconcile
from dumbo.registry import FactoryRegistry
from dumbo.scopes import ScopeStack
from dumbo.seeder import Seeder
from dumbo.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Engine
    "Seeder",
    "FactoryRegistry",
    "ScopeStack",
    "RecordGenerator",
    "Executor",
    "quote_identifier",
    "Nullable",
    "reconcile",
    # Models
    "DEFAULT",
    "CommittedKey",
    "Factory",
    "GenerationOutcome",
    "Record",
    "Schema",
    # Stores
    "PsycopgStore",
    "Rows",
    "Store",
    # Errors
    "DumboError",
    "ColumnMismatch",
    "DuplicateFactory",
    "GenerationExhausted",
    "ReconciliationError",
    "ScopeError",
    "StoreError",
    "UnknownColumn",
    "UnknownTable",
    # Logging
    "configure_logging",
    "get_logger",
]
