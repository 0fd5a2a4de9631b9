"""Database adapters package.

Provides the ``DatabaseClient`` Protocol, per-engine quoting, and the
synchronous PostgreSQL and MySQL adapters.

Usage:
    from db_snapshot.adapters import DatabaseClient, PostgresAdapter, MySQLAdapter
"""

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.adapters.engine import create_engine_pooled
from db_snapshot.adapters.mysql import MySQLAdapter
from db_snapshot.adapters.postgres import PostgresAdapter
from db_snapshot.adapters.quoting import MySQLQuoter, PostgresQuoter, Quoter, get_quoter

__all__ = [
    "DatabaseClient",
    "PostgresAdapter",
    "MySQLAdapter",
    "create_engine_pooled",
    "Quoter",
    "PostgresQuoter",
    "MySQLQuoter",
    "get_quoter",
]
