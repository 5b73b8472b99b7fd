"""Row source protocol definition.

Defines the ``QuerySource`` Protocol that the export engine reads from.
All I/O methods are ``async def`` -- the library is async-first.

Usage:
    from db_exporter.adapters.base import QuerySource

    async def count_all(source: QuerySource) -> int:
        total = 0
        for table in await source.table_names():
            total += await source.row_count(table)
        return total
"""

from typing import Any, Protocol


class QuerySource(Protocol):
    """Read-only view of a live database used by the export engine.

    Implementations must raise ``SourceUnavailable`` on any failure rather
    than return partial data.
    """

    database_name: str

    async def table_names(self) -> list[str]:
        """Return all table names in a stable order."""
        ...

    async def row_count(self, table: str) -> int:
        """Return the current number of rows in ``table``."""
        ...

    async def columns(self, table: str) -> list[str]:
        """Return the column names of ``table`` in table order."""
        ...

    async def page(self, table: str, offset: int, limit: int) -> list[tuple[Any, ...]]:
        """Read up to ``limit`` rows starting at ``offset``.

        Pages are ordered consistently between calls so that consecutive
        offsets neither skip nor repeat rows.

        Returns:
            One tuple per row, values aligned with ``columns(table)``.
        """
        ...

    async def schema_ddl(self, table: str) -> str:
        """Return the ``CREATE TABLE`` statement for ``table`` (no trailing ``;``)."""
        ...

    async def table_sizes(self) -> dict[str, int]:
        """Return on-disk size in bytes for every table."""
        ...

    async def close(self) -> None:
        """Release connections held by the source."""
        ...
