"""Format serializers: SQL, CSV and XML.

Each serializer turns a table descriptor or a chunk of rows into bytes for
its format.  The coordinator drives every variant through the same calls:

    emit_preamble()                 once per job
    emit_header(descriptor)         per table
    emit_chunk(descriptor, chunk)   per row window
    emit_table_end(descriptor)      per table
    emit_footer()                   once per job

Any value that cannot be represented raises ``SerializationFailed``; there is
no per-row recovery.

Usage:
    from db_exporter.export.serializers import create_serializer

    serializer = create_serializer(job, database_name="shop")
    sink.write(serializer.emit_preamble())
"""

import csv
import functools
import io
import json
import math
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID
from xml.sax.saxutils import escape, quoteattr

from db_exporter.errors import SerializationFailed
from db_exporter.export.models import XML_NAME_PATTERN, ExportJob, RowChunk, TableDescriptor


# ============================================================================
# Value rendering
# ============================================================================


def render_text(value: Any) -> str:
    """Render a non-null scalar as text.

    Raises:
        TypeError: For types with no textual form.
        UnicodeDecodeError: For binary values that are not UTF-8.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, (timedelta, UUID)):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8")
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    raise TypeError(f"Unsupported value type: {type(value).__name__}")


def quote_identifier(name: str) -> str:
    """Backtick-quote an identifier (MySQL quoting rules)."""
    return "`" + name.replace("`", "``") + "`"


def quote_string(value: str) -> str:
    """Single-quote a string literal, escaping quotes, backslashes and NUL."""
    escaped = value.replace("\\", "\\\\").replace("'", "''").replace("\x00", "\\0")
    return f"'{escaped}'"


def sql_literal(value: Any) -> str:
    """Render one value as a SQL literal.  ``None`` becomes an unquoted NULL."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Non-finite float {value!r} has no SQL literal")
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Non-finite decimal {value!r} has no SQL literal")
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"X'{bytes(value).hex()}'"
    return quote_string(render_text(value))


def _encoding_errors(method):
    """Re-raise encoding errors from a serializer method as ``SerializationFailed``."""

    @functools.wraps(method)
    def wrapper(self: "Serializer", *args: Any, **kwargs: Any) -> bytes:
        try:
            return method(self, *args, **kwargs)
        except (TypeError, ValueError) as e:
            table = args[0].name if args and isinstance(args[0], TableDescriptor) else ""
            raise SerializationFailed(table, e) from e

    return wrapper


# ============================================================================
# Serializer base
# ============================================================================


class Serializer(ABC):
    """Common capability set shared by every export format."""

    format: ClassVar[str]
    extension: ClassVar[str]

    def __init__(self, job: ExportJob, database_name: str = "") -> None:
        self.job = job
        self.database_name = database_name

    @property
    def includes_data(self) -> bool:
        """Whether rows are read and emitted at all."""
        return self.job.includes_data

    @property
    def needs_ddl(self) -> bool:
        """Whether the coordinator must fetch ``CREATE TABLE`` text."""
        return False

    def emit_preamble(self) -> bytes:
        return b""

    @abstractmethod
    def emit_header(self, descriptor: TableDescriptor) -> bytes: ...

    @abstractmethod
    def emit_chunk(self, descriptor: TableDescriptor, chunk: RowChunk) -> bytes: ...

    def emit_table_end(self, descriptor: TableDescriptor) -> bytes:
        return b""

    def emit_footer(self) -> bytes:
        return b""


# ============================================================================
# SQL
# ============================================================================


class SqlSerializer(Serializer):
    """MySQL-style dump: DROP/CREATE per table, one extended INSERT per chunk."""

    format = "sql"
    extension = "sql"

    @property
    def needs_ddl(self) -> bool:
        return self.job.includes_structure

    def emit_preamble(self) -> bytes:
        generated = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        lines = [
            f"-- SQL Dump For Database: {quote_identifier(self.database_name)}",
            f"-- Generation Time: {generated}",
            "",
        ]
        if self.includes_data:
            lines += ["SET NAMES utf8mb4;", "SET FOREIGN_KEY_CHECKS=0;", ""]
        return ("\n".join(lines) + "\n").encode("utf-8")

    @_encoding_errors
    def emit_header(self, descriptor: TableDescriptor) -> bytes:
        parts: list[str] = []
        table = quote_identifier(descriptor.name)
        if self.job.includes_structure:
            if descriptor.ddl is None:
                raise ValueError("structure export requested but no DDL was supplied")
            ddl = descriptor.ddl.strip().rstrip(";")
            parts.append(f"DROP TABLE IF EXISTS {table};\n{ddl};\n\n")
        if self.includes_data and descriptor.row_count > 0:
            parts.append(f"-- Dumping data for table {table}\n")
        return "".join(parts).encode("utf-8")

    @_encoding_errors
    def emit_chunk(self, descriptor: TableDescriptor, chunk: RowChunk) -> bytes:
        if not self.includes_data or not chunk.rows:
            return b""
        columns = ", ".join(quote_identifier(col) for col in descriptor.columns)
        values = ",\n".join(
            "(" + ", ".join(sql_literal(value) for value in row) + ")"
            for row in chunk.rows
        )
        statement = f"INSERT INTO {quote_identifier(descriptor.name)} ({columns}) VALUES\n{values};\n"
        return statement.encode("utf-8")

    def emit_table_end(self, descriptor: TableDescriptor) -> bytes:
        if self.includes_data and descriptor.row_count > 0:
            return b"\n"
        return b""

    def emit_footer(self) -> bytes:
        if self.includes_data:
            return b"SET FOREIGN_KEY_CHECKS=1;\n"
        return b""


# ============================================================================
# CSV
# ============================================================================


class CsvSerializer(Serializer):
    """RFC 4180 CSV: a header row of column names, then one record per row."""

    format = "csv"
    extension = "csv"

    @property
    def marks_tables(self) -> bool:
        """Concatenated multi-table output needs a marker before each table."""
        return self.job.is_multi_table and self.job.csv_multi == "concatenated"

    def _records(self, records: list[list[str]]) -> bytes:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerows(records)
        return buffer.getvalue().encode("utf-8")

    @_encoding_errors
    def emit_header(self, descriptor: TableDescriptor) -> bytes:
        marker = b""
        if self.marks_tables:
            marker = f"\n#\n# TABLE: {quote_identifier(descriptor.name)}\n#\n".encode("utf-8")
        return marker + self._records([list(descriptor.columns)])

    @_encoding_errors
    def emit_chunk(self, descriptor: TableDescriptor, chunk: RowChunk) -> bytes:
        return self._records(
            [["" if value is None else render_text(value) for value in row] for row in chunk.rows]
        )


# ============================================================================
# XML
# ============================================================================

_XML_INVALID_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def _xml_name(name: str) -> str:
    if not XML_NAME_PATTERN.match(name):
        raise ValueError(f"{name!r} is not a valid XML element name")
    return name


def _xml_text(value: Any) -> str:
    text = render_text(value)
    if _XML_INVALID_CHARS.search(text):
        raise ValueError("value contains characters not allowed in XML 1.0")
    return escape(text)


class XmlSerializer(Serializer):
    """Streamed XML document: ``<database>`` > ``<table>`` > ``<row>`` > ``<column>``.

    Tracks open elements on a stack so the document closes correctly no
    matter how many rows (or tables) were written.  Null columns are left
    out of a row entirely.
    """

    format = "xml"
    extension = "xml"
    indent = "  "

    def __init__(self, job: ExportJob, database_name: str = "") -> None:
        super().__init__(job, database_name)
        self._open: list[str] = []

    @property
    def depth(self) -> int:
        return len(self._open)

    def _open_root(self) -> str:
        self._open.append("database")
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            f"<database name={quoteattr(self.database_name)}>\n"
        )

    def _close(self) -> str:
        name = self._open.pop()
        return f"{self.indent * self.depth}</{name}>\n"

    @_encoding_errors
    def emit_header(self, descriptor: TableDescriptor) -> bytes:
        name = _xml_name(descriptor.name)
        out = self._open_root() if not self._open else ""
        while self.depth > 1:
            out += self._close()
        out += f"{self.indent * self.depth}<{name}>\n"
        self._open.append(name)
        return out.encode("utf-8")

    @_encoding_errors
    def emit_chunk(self, descriptor: TableDescriptor, chunk: RowChunk) -> bytes:
        row_pad = self.indent * self.depth
        col_pad = row_pad + self.indent
        names = [_xml_name(col) for col in descriptor.columns]
        parts: list[str] = []
        for row in chunk.rows:
            parts.append(f"{row_pad}<row>\n")
            for name, value in zip(names, row):
                if value is None:
                    continue
                parts.append(f"{col_pad}<{name}>{_xml_text(value)}</{name}>\n")
            parts.append(f"{row_pad}</row>\n")
        return "".join(parts).encode("utf-8")

    def emit_table_end(self, descriptor: TableDescriptor) -> bytes:
        if self.depth > 1 and self._open[-1] == descriptor.name:
            return self._close().encode("utf-8")
        return b""

    def emit_footer(self) -> bytes:
        out = self._open_root() if not self._open else ""
        while self._open:
            out += self._close()
        return out.encode("utf-8")


_SERIALIZERS: dict[str, type[Serializer]] = {
    "sql": SqlSerializer,
    "csv": CsvSerializer,
    "xml": XmlSerializer,
}


def create_serializer(job: ExportJob, database_name: str = "") -> Serializer:
    """Return the serializer for ``job.format``."""
    return _SERIALIZERS[job.format](job, database_name)
