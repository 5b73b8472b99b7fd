"""Chunked table reader.

Walks a table in fixed-size row windows so memory use depends on the
window size, never on the table size.
"""

import logging
from collections.abc import AsyncIterator

from db_exporter.adapters.base import QuerySource
from db_exporter.export.models import RowChunk, TableDescriptor

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500


async def iter_chunks(
    source: QuerySource,
    descriptor: TableDescriptor,
    window: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[RowChunk]:
    """Yield ``RowChunk``s covering ``[0, descriptor.row_count)`` in order.

    The row count is the snapshot taken when the table export started.
    Rows added later are not read; if the table shrinks, iteration stops at
    the first empty page.  The final chunk may be shorter than ``window``.

    Args:
        source: Row source to page through.
        descriptor: Table snapshot (name and row count).
        window: Maximum rows per chunk.

    Raises:
        ValueError: If ``window`` is not positive.
        SourceUnavailable: If a page request fails.
    """
    if window <= 0:
        raise ValueError(f"Chunk window must be positive, got {window}")

    offset = 0
    while offset < descriptor.row_count:
        limit = min(window, descriptor.row_count - offset)
        rows = await source.page(descriptor.name, offset, limit)
        if not rows:
            logger.warning(
                "Table %s returned no rows at offset %d (expected %d total); stopping early",
                descriptor.name,
                offset,
                descriptor.row_count,
            )
            return
        rows = rows[:limit]
        yield RowChunk(table=descriptor.name, offset=offset, rows=rows)
        offset += len(rows)
