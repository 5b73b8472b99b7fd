"""Tests for the chunked table reader."""

import logging

import pytest

from db_exporter.errors import SourceUnavailable
from db_exporter.export.models import TableDescriptor
from db_exporter.export.reader import iter_chunks


def _descriptor(row_count: int) -> TableDescriptor:
    return TableDescriptor(name="users", columns=["id", "name", "email"], row_count=row_count)


class TestIterChunks:
    """Window arithmetic and early stop."""

    async def test_full_and_partial_windows(self, make_source, users_table):
        source = make_source({"users": users_table(1200)})
        chunks = [chunk async for chunk in iter_chunks(source, _descriptor(1200), 500)]

        assert [(c.offset, len(c)) for c in chunks] == [(0, 500), (500, 500), (1000, 200)]
        assert source.page_calls == [("users", 0, 500), ("users", 500, 500), ("users", 1000, 200)]
        assert chunks[2].rows[-1][0] == 1200

    async def test_empty_table_reads_nothing(self, make_source, users_table):
        source = make_source({"users": users_table(0)})
        chunks = [chunk async for chunk in iter_chunks(source, _descriptor(0), 500)]
        assert chunks == []
        assert source.page_calls == []

    async def test_rows_added_later_are_not_read(self, make_source, users_table):
        """The snapshot row count bounds the read."""
        source = make_source({"users": users_table(10)})
        chunks = [chunk async for chunk in iter_chunks(source, _descriptor(4), 3)]
        assert sum(len(c) for c in chunks) == 4

    async def test_shrinking_table_stops_early(self, make_source, users_table, caplog):
        source = make_source({"users": users_table(3)})
        with caplog.at_level(logging.WARNING, logger="db_exporter.export.reader"):
            chunks = [chunk async for chunk in iter_chunks(source, _descriptor(10), 5)]
        assert [len(c) for c in chunks] == [3]
        assert "stopping early" in caplog.text

    async def test_window_must_be_positive(self, make_source, users_table):
        source = make_source({"users": users_table(1)})
        with pytest.raises(ValueError, match="positive"):
            async for _ in iter_chunks(source, _descriptor(1), 0):
                pass

    async def test_source_failure_propagates(self, make_source, users_table):
        source = make_source({"users": users_table(5)}, fail_on={"users"})
        with pytest.raises(SourceUnavailable):
            async for _ in iter_chunks(source, _descriptor(5), 2):
                pass
