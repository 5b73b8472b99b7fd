"""Job submission API.

A caller prepares a job (validation happens here), starts it against a row
source to get a progress channel, and may cancel it through the handle at
any time.  The handle carries all job state between those calls; nothing is
kept in module globals.

Usage:
    handle = prepare_export(["users", "logs"], "sql", destination="backups/shop.sql")
    channel = start_export(handle, source)
    async for event in channel:
        ...
    cancel(handle)  # from anywhere, any time; no-op once finished
"""

import uuid
from dataclasses import dataclass, field
from pathlib import Path

from db_exporter.adapters.base import QuerySource
from db_exporter.errors import InvalidJob
from db_exporter.export.cancellation import CancellationToken
from db_exporter.export.coordinator import ExportCoordinator
from db_exporter.export.events import ErrorEvent, ProgressChannel
from db_exporter.export.models import ExportJob, build_job
from db_exporter.export.reader import DEFAULT_CHUNK_SIZE


@dataclass
class ExportHandle:
    """Everything needed to start, follow and cancel one export job."""

    job: ExportJob
    destination: Path
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    token: CancellationToken = field(default_factory=CancellationToken)
    coordinator: ExportCoordinator | None = None

    @property
    def started(self) -> bool:
        return self.coordinator is not None

    @property
    def finished(self) -> bool:
        return self.coordinator is not None and self.coordinator.finished


def prepare_export(
    tables: list[str],
    format: str = "sql",
    scope: str = "both",
    csv_multi: str = "archive",
    destination: str | Path = "export",
) -> ExportHandle:
    """Validate an export request and return its handle.

    Raises:
        InvalidJob: If the request is invalid.
    """
    job = build_job(tables, format=format, scope=scope, csv_multi=csv_multi)
    return ExportHandle(job=job, destination=Path(destination))


def start_export(
    handle: ExportHandle,
    source: QuerySource,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    archive_supported: bool | None = None,
) -> ProgressChannel:
    """Start a prepared job and return its progress channel.

    The job runs as the channel is consumed.

    Raises:
        RuntimeError: If the handle was already started.
    """
    if handle.started:
        raise RuntimeError(f"Export job {handle.job_id} was already started")
    handle.coordinator = ExportCoordinator(
        source,
        handle.job,
        handle.destination,
        token=handle.token,
        chunk_size=chunk_size,
        archive_supported=archive_supported,
    )
    return ProgressChannel(handle.coordinator.run())


def cancel(handle: ExportHandle) -> None:
    """Request cancellation.  Idempotent; a no-op once the job has finished."""
    if handle.finished:
        return
    handle.token.cancel()


async def _invalid_job_stream(error: InvalidJob):
    yield ErrorEvent(message=str(error), code=error.code)


def export_tables(
    source: QuerySource,
    tables: list[str],
    format: str = "sql",
    scope: str = "both",
    csv_multi: str = "archive",
    destination: str | Path = "export",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ProgressChannel:
    """Prepare and start in one call.

    Invalid requests do not raise: the returned channel carries a single
    ``ErrorEvent`` with code ``invalid_job``.
    """
    try:
        handle = prepare_export(tables, format, scope, csv_multi, destination)
    except InvalidJob as e:
        return ProgressChannel(_invalid_job_stream(e))
    return start_export(handle, source, chunk_size=chunk_size)
