"""
Infrastructure package for dumbo.

Centralizes database connectivity (DSN, connections, pooling) and the store
adapter the fixture engine talks to. Keep this layer focused on I/O,
decoupled from generation and scoping logic.
"""

from dumbo.infrastructure.db_factory import (
    build_dsn,
    get_sync_connection,
    get_sync_pool,
)
from dumbo.infrastructure.store import PsycopgStore, Rows, Store

__all__ = [
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
    "PsycopgStore",
    "Rows",
    "Store",
]
