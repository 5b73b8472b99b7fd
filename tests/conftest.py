"""Shared test doubles for the export engine."""

from typing import Any

import pytest

from db_exporter.errors import SourceUnavailable


class FakeSource:
    """In-memory ``QuerySource``.

    ``tables`` maps a table name to ``(columns, rows, ddl)``.  Every ``page``
    call is recorded in ``page_calls`` as ``(table, offset, limit)``.
    """

    def __init__(
        self,
        tables: dict[str, tuple[list[str], list[tuple], str | None]],
        database_name: str = "shop",
        fail_on: set[str] | None = None,
    ) -> None:
        self.tables = tables
        self.database_name = database_name
        self.fail_on = fail_on or set()
        self.page_calls: list[tuple[str, int, int]] = []
        self.closed = False

    def _table(self, table: str):
        if table not in self.tables:
            raise SourceUnavailable(f"Table {table} does not exist")
        return self.tables[table]

    async def table_names(self) -> list[str]:
        return list(self.tables)

    async def row_count(self, table: str) -> int:
        return len(self._table(table)[1])

    async def columns(self, table: str) -> list[str]:
        return list(self._table(table)[0])

    async def page(self, table: str, offset: int, limit: int) -> list[tuple[Any, ...]]:
        self.page_calls.append((table, offset, limit))
        if table in self.fail_on:
            raise SourceUnavailable(f"Lost connection while reading {table}")
        return list(self._table(table)[1][offset:offset + limit])

    async def schema_ddl(self, table: str) -> str:
        ddl = self._table(table)[2]
        if ddl is None:
            raise SourceUnavailable(f"No CREATE TABLE statement for {table}")
        return ddl

    async def table_sizes(self) -> dict[str, int]:
        return {name: len(rows) * 1024 for name, (_, rows, _) in self.tables.items()}

    async def close(self) -> None:
        self.closed = True


def _users_table(count: int) -> tuple[list[str], list[tuple], str]:
    """``users`` table with ``count`` rows and sqlite-compatible DDL."""
    rows = [(i, f"user{i}", f"user{i}@example.com") for i in range(1, count + 1)]
    ddl = "CREATE TABLE `users` (`id` INTEGER PRIMARY KEY, `name` TEXT, `email` TEXT)"
    return ["id", "name", "email"], rows, ddl


def _logs_table(count: int = 0) -> tuple[list[str], list[tuple], str]:
    rows = [(i, f"event {i}") for i in range(1, count + 1)]
    ddl = "CREATE TABLE `logs` (`id` INTEGER PRIMARY KEY, `message` TEXT)"
    return ["id", "message"], rows, ddl


@pytest.fixture
def make_source():
    """Factory fixture: ``make_source({"users": users_table(3)})``."""

    def _make(tables, database_name: str = "shop", fail_on: set[str] | None = None):
        return FakeSource(tables, database_name=database_name, fail_on=fail_on)

    return _make


@pytest.fixture
def users_table():
    """Builder for a ``users`` table: ``users_table(1200)``."""
    return _users_table


@pytest.fixture
def logs_table():
    """Builder for a ``logs`` table: ``logs_table(0)``."""
    return _logs_table
