"""Export coordinator.

Drives one export job from start to finish: opens the sink, walks every
table through the serializer in fixed-size chunks, checks the cancellation
token at each checkpoint and yields progress events as it goes.

State machine::

    INITIALIZING -> (HEADER -> DATA -> FOOTER) per table -> FINALIZING
                 -> COMPLETED | CANCELLED | FAILED

Every job ends with exactly one terminal event.  On failure or cancellation
the sink is aborted and the partial artifact deleted before the
``ErrorEvent`` is yielded.

Usage:
    coordinator = ExportCoordinator(source, job, "backups/shop.sql")
    async for event in coordinator.run():
        print(event.to_sse(), end="")
"""

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from enum import Enum
from pathlib import Path

from db_exporter.adapters.base import QuerySource
from db_exporter.errors import ArchiveUnsupported, ExportCancelled, ExportError
from db_exporter.export.cancellation import CancellationToken
from db_exporter.export.events import CompleteEvent, ErrorEvent, ExportEvent, ProgressEvent
from db_exporter.export.models import ExportJob, TableDescriptor
from db_exporter.export.reader import DEFAULT_CHUNK_SIZE, iter_chunks
from db_exporter.export.serializers import Serializer, create_serializer
from db_exporter.export.sinks import Sink, archive_supported, open_sink

logger = logging.getLogger(__name__)

MESSAGES = {
    "exporting_structure": "Exporting structure for: `{table}`...",
    "exporting_format": "Exporting table `{table}` as {format}...",
    "exporting_data": "Exporting table `{table}`: {rows_processed}/{total_rows} rows...",
}


class CoordinatorState(str, Enum):
    INITIALIZING = "initializing"
    HEADER = "header"
    DATA = "data"
    FOOTER = "footer"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {CoordinatorState.COMPLETED, CoordinatorState.CANCELLED, CoordinatorState.FAILED}
)


def overall_percent(tables_completed: int, total_tables: int) -> int:
    """Share of fully exported tables, in whole percent.

    A one-row table and a ten-million-row table count the same.  Rounded
    down, so 100 is reached only once every table is done.
    """
    if total_tables <= 0:
        return 0
    return tables_completed * 100 // total_tables


class ExportCoordinator:
    """Sequential worker for a single export job.

    Args:
        source: Row source to read from.
        job: Validated export job.
        destination: Output path, treated as an opaque write target.
        token: Cancellation token shared with the controller.  A fresh one
            is created when omitted.
        chunk_size: Rows per chunk.
        archive_supported: Override for the archive capability check
            (defaults to probing for zlib).
    """

    def __init__(
        self,
        source: QuerySource,
        job: ExportJob,
        destination: str | Path,
        token: CancellationToken | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        archive_supported: bool | None = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.source = source
        self.job = job
        self.destination = Path(destination)
        self.token = token or CancellationToken()
        self.chunk_size = chunk_size
        self._archive_supported = archive_supported
        self.state = CoordinatorState.INITIALIZING
        self._started = False

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    async def run(self) -> AsyncIterator[ExportEvent]:
        """Run the job, yielding progress events and one terminal event.

        Raises:
            RuntimeError: If the coordinator has already run.
        """
        if self._started:
            raise RuntimeError("Export job has already run")
        self._started = True

        job = self.job
        total = len(job.tables)
        sink: Sink | None = None
        logger.info(
            "Starting %s export of %d table(s) to %s", job.format, total, self.destination
        )

        try:
            self._check_archive_support()
            sink = open_sink(job, self.destination)
            serializer = create_serializer(job, self.source.database_name)
            sink.write(serializer.emit_preamble())

            for index, table in enumerate(job.tables):
                self._checkpoint()
                percent = overall_percent(index, total)
                async with aclosing(self._export_table(table, serializer, sink, percent)) as events:
                    async for event in events:
                        yield event

            self.state = CoordinatorState.FINALIZING
            sink.write(serializer.emit_footer())
            locator = sink.finalize()
        except ExportError as e:
            cancelled = isinstance(e, ExportCancelled)
            self.state = CoordinatorState.CANCELLED if cancelled else CoordinatorState.FAILED
            if sink is not None:
                sink.abort()
            if cancelled:
                logger.info("Export to %s cancelled", self.destination)
            else:
                logger.error("Export to %s failed: %s", self.destination, e)
            yield ErrorEvent(message=str(e), code=e.code)
            return
        except BaseException:
            self.state = CoordinatorState.FAILED
            if sink is not None:
                sink.abort()
            raise

        self.token.clear()
        self.state = CoordinatorState.COMPLETED
        logger.info("Export complete: %s", locator)
        yield CompleteEvent(result_locator=locator)

    # ------------------------------------------------------------------
    # Per-table steps
    # ------------------------------------------------------------------

    async def _export_table(
        self,
        table: str,
        serializer: Serializer,
        sink: Sink,
        percent: int,
    ) -> AsyncIterator[ProgressEvent]:
        self.state = CoordinatorState.HEADER
        descriptor = await self._describe(table, serializer)
        logger.debug("Exporting %s (%d rows)", table, descriptor.row_count)

        sink.start_table(table)
        sink.write(serializer.emit_header(descriptor))
        if serializer.format == "sql":
            message = MESSAGES["exporting_structure"].format(table=table)
        else:
            message = MESSAGES["exporting_format"].format(
                table=table, format=serializer.format.upper()
            )
        yield ProgressEvent(
            table=table,
            rows_done=0,
            rows_total=descriptor.row_count,
            overall_percent=percent,
            message=message,
        )

        if serializer.includes_data:
            self.state = CoordinatorState.DATA
            async with aclosing(iter_chunks(self.source, descriptor, self.chunk_size)) as chunks:
                while True:
                    self._checkpoint()
                    try:
                        chunk = await anext(chunks)
                    except StopAsyncIteration:
                        break
                    sink.write(serializer.emit_chunk(descriptor, chunk))
                    rows_done = chunk.offset + len(chunk)
                    yield ProgressEvent(
                        table=table,
                        rows_done=rows_done,
                        rows_total=descriptor.row_count,
                        overall_percent=percent,
                        message=MESSAGES["exporting_data"].format(
                            table=table,
                            rows_processed=rows_done,
                            total_rows=descriptor.row_count,
                        ),
                    )

        self.state = CoordinatorState.FOOTER
        sink.write(serializer.emit_table_end(descriptor))
        sink.end_table(table)

    async def _describe(self, table: str, serializer: Serializer) -> TableDescriptor:
        columns = await self.source.columns(table)
        row_count = await self.source.row_count(table) if serializer.includes_data else 0
        ddl = await self.source.schema_ddl(table) if serializer.needs_ddl else None
        return TableDescriptor(name=table, columns=columns, row_count=row_count, ddl=ddl)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _checkpoint(self) -> None:
        if self.token.is_cancelled:
            raise ExportCancelled()

    def _check_archive_support(self) -> None:
        if not self.job.uses_archive:
            return
        supported = (
            archive_supported() if self._archive_supported is None else self._archive_supported
        )
        if not supported:
            raise ArchiveUnsupported()
