"""Export error taxonomy.

Every error here is job-fatal: the coordinator aborts the sink, deletes any
partial artifact and turns the error into a single terminal ``ErrorEvent``.
Nothing is retried automatically.
"""


class ExportError(Exception):
    """Base class for job-fatal export errors."""

    code: str = "export_failed"


class InvalidJob(ExportError):
    """Raised when an export job fails validation (no tables, bad format)."""

    code = "invalid_job"


class SourceUnavailable(ExportError):
    """Raised when the row source fails (lost connection, query error)."""

    code = "source_unavailable"


class SerializationFailed(ExportError):
    """Raised when a value or a write cannot be encoded for the target format."""

    code = "serialization_failed"

    def __init__(self, table: str, cause: Exception | str) -> None:
        self.table = table
        self.cause = cause
        super().__init__(f"Failed to serialize table `{table}`: {cause}")


class SinkCreationFailed(ExportError):
    """Raised when the destination cannot be opened."""

    code = "sink_creation_failed"


class ArchiveUnsupported(ExportError):
    """Raised when multi-table CSV needs an archive but zlib is missing."""

    code = "archive_unsupported"

    def __init__(self, message: str = "archive unsupported") -> None:
        super().__init__(message)


class ExportCancelled(ExportError):
    """Raised at a checkpoint once the cancellation token is set."""

    code = "cancelled"

    def __init__(self, message: str = "Export cancelled by user.") -> None:
        super().__init__(message)
