"""db-exporter: Streaming database export to SQL, CSV and XML.

Reads tables in fixed-size chunks from an async SQLAlchemy source, writes
them through a format serializer into a file or ZIP archive, and reports
progress as a stream of events that can be cancelled at any time.

Usage:
    from db_exporter import AsyncSQLAlchemySource, prepare_export, start_export, cancel
    from db_exporter import ProgressEvent, CompleteEvent, ErrorEvent
    from db_exporter import load_db_config, get_source
"""

__version__ = "0.1.0"

# Adapters
from db_exporter.adapters.base import QuerySource
from db_exporter.adapters.sql_source import AsyncSQLAlchemySource

# Config
from db_exporter.config.loader import load_db_config
from db_exporter.config.models import DatabaseProfile, ExporterConfig, ExportSettings

# Errors
from db_exporter.errors import (
    ArchiveUnsupported,
    ExportCancelled,
    ExportError,
    InvalidJob,
    SerializationFailed,
    SinkCreationFailed,
    SourceUnavailable,
)

# Export engine
from db_exporter.export import (
    CancellationToken,
    CompleteEvent,
    ErrorEvent,
    ExportCoordinator,
    ExportHandle,
    ExportJob,
    ProgressChannel,
    ProgressEvent,
    build_destination,
    cancel,
    export_tables,
    prepare_export,
    start_export,
)

# Factory
from db_exporter.factory import ProfileNotFoundError, get_source, resolve_url

__all__ = [
    # Adapters
    "QuerySource",
    "AsyncSQLAlchemySource",
    # Config
    "load_db_config",
    "DatabaseProfile",
    "ExporterConfig",
    "ExportSettings",
    # Errors
    "ExportError",
    "InvalidJob",
    "SourceUnavailable",
    "SerializationFailed",
    "SinkCreationFailed",
    "ArchiveUnsupported",
    "ExportCancelled",
    # Export engine
    "ExportJob",
    "ExportHandle",
    "ExportCoordinator",
    "CancellationToken",
    "ProgressChannel",
    "ProgressEvent",
    "CompleteEvent",
    "ErrorEvent",
    "prepare_export",
    "start_export",
    "export_tables",
    "cancel",
    "build_destination",
    # Factory
    "get_source",
    "resolve_url",
    "ProfileNotFoundError",
]
