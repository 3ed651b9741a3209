"""
Utilities package for dumbo.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of fixture-engine logic.
"""

from dumbo.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
