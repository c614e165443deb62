"""Persistence store adapters.

Provides the ``DatabaseClient`` Protocol and the asyncpg-backed
``AsyncPostgresAdapter``.

Usage:
    from school_archive.adapters import DatabaseClient, AsyncPostgresAdapter
"""

from school_archive.adapters.base import DatabaseClient
from school_archive.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "DatabaseClient",
    "AsyncPostgresAdapter",
]
