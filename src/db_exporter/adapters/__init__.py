"""Row source adapters.

Provides the ``QuerySource`` Protocol and the SQLAlchemy-backed async
implementation used for PostgreSQL and MySQL.

Usage:
    from db_exporter.adapters import QuerySource, AsyncSQLAlchemySource
"""

from db_exporter.adapters.base import QuerySource
from db_exporter.adapters.sql_source import AsyncSQLAlchemySource

__all__ = [
    "QuerySource",
    "AsyncSQLAlchemySource",
]
