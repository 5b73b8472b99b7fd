"""Streaming export engine.

Usage:
    from db_exporter.export import prepare_export, start_export, cancel
    from db_exporter.export import ExportCoordinator, ExportJob
"""

from db_exporter.export.analysis import TableInfo, analyze_tables, split_main_and_skipped
from db_exporter.export.cancellation import CancellationToken
from db_exporter.export.coordinator import CoordinatorState, ExportCoordinator
from db_exporter.export.events import (
    CompleteEvent,
    ErrorEvent,
    ExportEvent,
    ProgressChannel,
    ProgressEvent,
)
from db_exporter.export.models import ExportJob, RowChunk, TableDescriptor, build_job
from db_exporter.export.naming import build_destination
from db_exporter.export.reader import iter_chunks
from db_exporter.export.serializers import (
    CsvSerializer,
    Serializer,
    SqlSerializer,
    XmlSerializer,
    create_serializer,
)
from db_exporter.export.service import (
    ExportHandle,
    cancel,
    export_tables,
    prepare_export,
    start_export,
)
from db_exporter.export.sinks import (
    ArchiveSink,
    ConcatenatedSink,
    SingleFileSink,
    Sink,
    archive_supported,
    open_sink,
)

__all__ = [
    # Models
    "ExportJob",
    "TableDescriptor",
    "RowChunk",
    "build_job",
    # Events
    "ProgressEvent",
    "CompleteEvent",
    "ErrorEvent",
    "ExportEvent",
    "ProgressChannel",
    # Engine
    "CancellationToken",
    "CoordinatorState",
    "ExportCoordinator",
    "iter_chunks",
    # Serializers
    "Serializer",
    "SqlSerializer",
    "CsvSerializer",
    "XmlSerializer",
    "create_serializer",
    # Sinks
    "Sink",
    "SingleFileSink",
    "ConcatenatedSink",
    "ArchiveSink",
    "archive_supported",
    "open_sink",
    # Service
    "ExportHandle",
    "prepare_export",
    "start_export",
    "export_tables",
    "cancel",
    # Analysis & naming
    "TableInfo",
    "analyze_tables",
    "split_main_and_skipped",
    "build_destination",
]
