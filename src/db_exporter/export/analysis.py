"""Table size analysis.

Lists tables by on-disk size and flags the large ones, so a caller can
export everything else in a main backup and handle large tables separately.
"""

from pydantic import BaseModel

from db_exporter.adapters.base import QuerySource

DEFAULT_LARGE_TABLE_THRESHOLD_MB = 10


class TableInfo(BaseModel):
    """Size summary for one table."""

    name: str
    size_bytes: int
    size_mb: float
    is_large: bool


async def analyze_tables(
    source: QuerySource,
    threshold_mb: float = DEFAULT_LARGE_TABLE_THRESHOLD_MB,
) -> list[TableInfo]:
    """Return every table with its size, largest first.

    Args:
        source: Row source to inspect.
        threshold_mb: Tables strictly larger than this are flagged ``is_large``.

    Raises:
        SourceUnavailable: If the source cannot be queried.
    """
    threshold_bytes = threshold_mb * 1024 * 1024
    sizes = await source.table_sizes()
    infos = [
        TableInfo(
            name=name,
            size_bytes=size,
            size_mb=round(size / 1024 / 1024, 2),
            is_large=size > threshold_bytes,
        )
        for name, size in sizes.items()
    ]
    infos.sort(key=lambda info: (-info.size_bytes, info.name))
    return infos


def split_main_and_skipped(
    infos: list[TableInfo],
    skipped: set[str] | None = None,
) -> tuple[list[str], list[str]]:
    """Split tables into the main backup and the skipped (large) set.

    Args:
        infos: Output of ``analyze_tables``.
        skipped: Explicit skip list.  When ``None``, large tables are skipped.

    Returns:
        ``(main_tables, skipped_tables)``, both in ``infos`` order.
    """
    if skipped is None:
        skipped = {info.name for info in infos if info.is_large}
    main = [info.name for info in infos if info.name not in skipped]
    rest = [info.name for info in infos if info.name in skipped]
    return main, rest
