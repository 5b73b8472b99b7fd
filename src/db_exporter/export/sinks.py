"""Output sinks.

A sink hides whether a job produces one physical file or many:

- ``SingleFileSink``: one table, one file.
- ``ConcatenatedSink``: several tables appended into one file.
- ``ArchiveSink``: one ZIP member per table (multi-table CSV).

Archive members must be complete before they are sealed, so the archive
sink buffers the current table in a spooled temporary file (memory first,
disk past a threshold) and commits it when the table ends.

Usage:
    sink = open_sink(job, "backups/db_backup.sql")
    sink.start_table("users")
    sink.write(b"...")
    sink.end_table("users")
    path = sink.finalize()
"""

import importlib.util
import logging
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import IO

from db_exporter.errors import SerializationFailed, SinkCreationFailed
from db_exporter.export.models import ExportJob

logger = logging.getLogger(__name__)

# In-memory limit for one archive member before spilling to disk
ARCHIVE_SPOOL_BYTES = 8 * 1024 * 1024


def archive_supported() -> bool:
    """Whether deflate-compressed ZIP archives can be written (needs zlib)."""
    return importlib.util.find_spec("zlib") is not None


class Sink:
    """Write destination for one export job."""

    def __init__(self, destination: str | Path) -> None:
        self.path = Path(destination)
        self._table: str | None = None

    def open(self) -> "Sink":
        """Create the destination.

        Raises:
            SinkCreationFailed: If the file cannot be created.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._open()
        except OSError as e:
            raise SinkCreationFailed(
                f"Failed to create backup file {self.path}: {e}"
            ) from e
        logger.debug("Opened %s at %s", type(self).__name__, self.path)
        return self

    def start_table(self, table: str) -> None:
        self._table = table

    def write(self, data: bytes) -> None:
        if not data:
            return
        try:
            self._write(data)
        except OSError as e:
            raise SerializationFailed(self._table or "", e) from e

    def end_table(self, table: str) -> None:
        self._table = None

    def finalize(self) -> str:
        """Close the destination and return its path."""
        try:
            self._close()
        except OSError as e:
            raise SerializationFailed(self._table or "", e) from e
        return str(self.path)

    def abort(self) -> None:
        """Close the destination and delete whatever was written."""
        try:
            self._discard()
        except OSError:
            logger.warning("Failed to close %s during abort", self.path, exc_info=True)
        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to remove partial export %s", self.path, exc_info=True)
            return
        logger.info("Removed partial export %s", self.path)

    # Subclass hooks

    def _open(self) -> None:
        raise NotImplementedError

    def _write(self, data: bytes) -> None:
        raise NotImplementedError

    def _close(self) -> None:
        raise NotImplementedError

    def _discard(self) -> None:
        self._close()


class SingleFileSink(Sink):
    """One physical stream; writes append directly."""

    def __init__(self, destination: str | Path) -> None:
        super().__init__(destination)
        self._handle: IO[bytes] | None = None

    def _open(self) -> None:
        self._handle = open(self.path, "wb")

    def _write(self, data: bytes) -> None:
        self._handle.write(data)

    def _close(self) -> None:
        if self._handle is not None and not self._handle.closed:
            self._handle.close()


class ConcatenatedSink(SingleFileSink):
    """Several tables appended in order into the same physical file."""

    def __init__(self, destination: str | Path) -> None:
        super().__init__(destination)
        self.tables_written: list[str] = []

    def end_table(self, table: str) -> None:
        self.tables_written.append(table)
        super().end_table(table)


class ArchiveSink(Sink):
    """ZIP archive with one ``<table>.csv`` member per table."""

    member_suffix = ".csv"

    def __init__(self, destination: str | Path) -> None:
        super().__init__(destination)
        self._zip: zipfile.ZipFile | None = None
        self._buffer: tempfile.SpooledTemporaryFile | None = None

    def _open(self) -> None:
        self._zip = zipfile.ZipFile(self.path, "w", compression=zipfile.ZIP_DEFLATED)

    def start_table(self, table: str) -> None:
        super().start_table(table)
        self._buffer = tempfile.SpooledTemporaryFile(max_size=ARCHIVE_SPOOL_BYTES)

    def _write(self, data: bytes) -> None:
        if self._buffer is None:
            raise RuntimeError("ArchiveSink.write() called outside a table")
        self._buffer.write(data)

    def end_table(self, table: str) -> None:
        if self._buffer is None:
            return
        try:
            self._buffer.seek(0)
            with self._zip.open(f"{table}{self.member_suffix}", "w", force_zip64=True) as member:
                shutil.copyfileobj(self._buffer, member)
        except OSError as e:
            raise SerializationFailed(table, e) from e
        finally:
            self._buffer.close()
            self._buffer = None
        super().end_table(table)

    def _close(self) -> None:
        if self._buffer is not None:
            self._buffer.close()
            self._buffer = None
        if self._zip is not None:
            self._zip.close()
            self._zip = None


def open_sink(job: ExportJob, destination: str | Path) -> Sink:
    """Select and open the sink for ``job``.

    Raises:
        SinkCreationFailed: If the destination cannot be created.
    """
    if job.uses_archive:
        sink: Sink = ArchiveSink(destination)
    elif job.is_multi_table:
        sink = ConcatenatedSink(destination)
    else:
        sink = SingleFileSink(destination)
    return sink.open()
