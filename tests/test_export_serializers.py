"""Tests for the SQL, CSV and XML serializers.

Verifies that:
- SQL literals quote strings, leave numbers bare and render NULL unquoted
- A SQL dump replays into SQLite with identical rows
- CSV survives commas, quotes and embedded newlines
- Concatenated CSV marks each table
- XML is well formed and leaves null columns out
- Unencodable values raise ``SerializationFailed`` naming the table
"""

import csv
import io
import sqlite3
import xml.etree.ElementTree as ET
from datetime import date, datetime
from decimal import Decimal

import pytest

from db_exporter.errors import SerializationFailed
from db_exporter.export.models import RowChunk, TableDescriptor, build_job
from db_exporter.export.serializers import (
    CsvSerializer,
    SqlSerializer,
    XmlSerializer,
    create_serializer,
    quote_identifier,
    quote_string,
    sql_literal,
)

USERS_DDL = "CREATE TABLE `users` (`id` INTEGER PRIMARY KEY, `name` TEXT, `score` REAL, `note` TEXT)"


def _descriptor(rows: list[tuple], ddl: str | None = USERS_DDL) -> TableDescriptor:
    return TableDescriptor(
        name="users",
        columns=["id", "name", "score", "note"],
        row_count=len(rows),
        ddl=ddl,
    )


def _dump(serializer, descriptor: TableDescriptor, rows: list[tuple]) -> bytes:
    out = serializer.emit_preamble()
    out += serializer.emit_header(descriptor)
    if rows:
        out += serializer.emit_chunk(
            descriptor, RowChunk(table=descriptor.name, offset=0, rows=rows)
        )
    out += serializer.emit_table_end(descriptor)
    out += serializer.emit_footer()
    return out


# ------------------------------------------------------------------
# SQL literals
# ------------------------------------------------------------------


class TestSqlLiterals:
    def test_null_unquoted(self):
        assert sql_literal(None) == "NULL"

    def test_numbers_unquoted(self):
        assert sql_literal(42) == "42"
        assert sql_literal(1.5) == "1.5"
        assert sql_literal(Decimal("10.25")) == "10.25"
        assert sql_literal(True) == "1"

    def test_strings_escaped(self):
        assert sql_literal("O'Brien") == "'O''Brien'"
        assert quote_string("a\\b") == "'a\\\\b'"
        assert quote_string("nul\x00byte") == "'nul\\0byte'"

    def test_dates_quoted(self):
        assert sql_literal(date(2024, 1, 31)) == "'2024-01-31'"
        assert sql_literal(datetime(2024, 1, 31, 12, 30)) == "'2024-01-31 12:30:00'"

    def test_bytes_hex(self):
        assert sql_literal(b"\x00\xff") == "X'00ff'"

    def test_non_finite_float_rejected(self):
        with pytest.raises(ValueError):
            sql_literal(float("nan"))

    def test_identifier_backticks(self):
        assert quote_identifier("users") == "`users`"
        assert quote_identifier("we`ird") == "`we``ird`"


# ------------------------------------------------------------------
# SQL serializer
# ------------------------------------------------------------------


class TestSqlSerializer:
    ROWS = [
        (1, "Alice", 9.5, "likes 'quotes'"),
        (2, "Bob", None, None),
        (3, "Carol, Jr.", 0.0, "multi\nline"),
    ]

    def test_dump_layout(self):
        serializer = SqlSerializer(build_job(["users"]), database_name="shop")
        text = _dump(serializer, _descriptor(self.ROWS), self.ROWS).decode("utf-8")

        assert text.startswith("-- SQL Dump For Database: `shop`")
        assert "SET FOREIGN_KEY_CHECKS=0;" in text
        assert "DROP TABLE IF EXISTS `users`;" in text
        assert "-- Dumping data for table `users`" in text
        assert text.count("INSERT INTO `users` (`id`, `name`, `score`, `note`) VALUES") == 1
        assert "(2, 'Bob', NULL, NULL)" in text
        assert text.rstrip().endswith("SET FOREIGN_KEY_CHECKS=1;")

    def test_replays_into_sqlite(self):
        serializer = SqlSerializer(build_job(["users"]), database_name="shop")
        text = _dump(serializer, _descriptor(self.ROWS), self.ROWS).decode("utf-8")
        script = "\n".join(line for line in text.splitlines() if not line.startswith("SET "))

        conn = sqlite3.connect(":memory:")
        try:
            conn.executescript(script)
            restored = conn.execute("SELECT id, name, score, note FROM users ORDER BY id").fetchall()
        finally:
            conn.close()
        assert restored == self.ROWS

    def test_structure_only(self):
        serializer = SqlSerializer(build_job(["users"], scope="structure"), "shop")
        text = _dump(serializer, _descriptor([]), []).decode("utf-8")
        assert "CREATE TABLE `users`" in text
        assert "INSERT" not in text
        assert "FOREIGN_KEY_CHECKS" not in text
        assert serializer.needs_ddl
        assert not serializer.includes_data

    def test_data_only(self):
        serializer = SqlSerializer(build_job(["users"], scope="data"), "shop")
        descriptor = _descriptor(self.ROWS, ddl=None)
        text = _dump(serializer, descriptor, self.ROWS).decode("utf-8")
        assert "DROP TABLE" not in text
        assert "INSERT INTO `users`" in text
        assert not serializer.needs_ddl

    def test_empty_table_has_no_data_marker(self):
        serializer = SqlSerializer(build_job(["users"]), "shop")
        text = _dump(serializer, _descriptor([]), []).decode("utf-8")
        assert "DROP TABLE IF EXISTS `users`;" in text
        assert "Dumping data" not in text

    def test_missing_ddl_fails(self):
        serializer = SqlSerializer(build_job(["users"]), "shop")
        with pytest.raises(SerializationFailed, match="`users`"):
            serializer.emit_header(_descriptor([], ddl=None))

    def test_nan_fails_with_table_name(self):
        serializer = SqlSerializer(build_job(["users"]), "shop")
        rows = [(1, "x", float("inf"), None)]
        with pytest.raises(SerializationFailed) as exc_info:
            serializer.emit_chunk(_descriptor(rows), RowChunk(table="users", offset=0, rows=rows))
        assert exc_info.value.table == "users"
        assert exc_info.value.code == "serialization_failed"


# ------------------------------------------------------------------
# CSV serializer
# ------------------------------------------------------------------


class TestCsvSerializer:
    def test_round_trip_special_characters(self):
        rows = [
            (1, "a,b", 'say "hi"', "line1\nline2"),
            (2, "plain", None, "crlf\r\nend"),
        ]
        serializer = CsvSerializer(build_job(["users"], format="csv"))
        data = _dump(serializer, _descriptor(rows), rows)

        parsed = list(csv.reader(io.StringIO(data.decode("utf-8"), newline="")))
        assert parsed[0] == ["id", "name", "score", "note"]
        assert parsed[1] == ["1", "a,b", 'say "hi"', "line1\nline2"]
        assert parsed[2] == ["2", "plain", "", "crlf\r\nend"]
        assert len(parsed) == 3

    def test_no_marker_for_single_table(self):
        serializer = CsvSerializer(build_job(["users"], format="csv"))
        header = serializer.emit_header(_descriptor([]))
        assert header == b"id,name,score,note\n"

    def test_concatenated_marker(self):
        job = build_job(["users", "logs"], format="csv", csv_multi="concatenated")
        serializer = CsvSerializer(job)
        header = serializer.emit_header(_descriptor([])).decode("utf-8")
        assert header.startswith("\n#\n# TABLE: `users`\n#\n")
        assert header.endswith("id,name,score,note\n")
        assert "\r" not in header

    def test_archive_members_unmarked(self):
        serializer = CsvSerializer(build_job(["users", "logs"], format="csv"))
        assert not serializer.marks_tables

    def test_unsupported_value_fails(self):
        serializer = CsvSerializer(build_job(["users"], format="csv"))
        rows = [(1, object(), None, None)]
        with pytest.raises(SerializationFailed, match="`users`"):
            serializer.emit_chunk(_descriptor(rows), RowChunk(table="users", offset=0, rows=rows))


# ------------------------------------------------------------------
# XML serializer
# ------------------------------------------------------------------


class TestXmlSerializer:
    def test_null_columns_omitted(self):
        rows = [(1, "Alice", None, "<b>&</b>"), (2, None, 3.0, None)]
        serializer = XmlSerializer(build_job(["users"], format="xml"), "shop")
        data = _dump(serializer, _descriptor(rows), rows)

        root = ET.fromstring(data)
        assert root.tag == "database"
        assert root.get("name") == "shop"
        table = root.find("users")
        first, second = table.findall("row")
        assert first.find("name").text == "Alice"
        assert first.find("score") is None
        assert first.find("note").text == "<b>&</b>"
        assert [child.tag for child in second] == ["id", "score"]

    def test_multiple_tables_nest_under_root(self):
        job = build_job(["users", "logs"], format="xml")
        serializer = XmlSerializer(job, "shop")
        users = _descriptor([(1, "a", None, None)])
        logs = TableDescriptor(name="logs", columns=["id", "message"], row_count=0)

        out = serializer.emit_preamble()
        out += serializer.emit_header(users)
        out += serializer.emit_chunk(users, RowChunk(table="users", offset=0, rows=[(1, "a", None, None)]))
        out += serializer.emit_table_end(users)
        out += serializer.emit_header(logs)
        out += serializer.emit_table_end(logs)
        out += serializer.emit_footer()

        root = ET.fromstring(out)
        assert [child.tag for child in root] == ["users", "logs"]
        assert serializer.depth == 0

    def test_footer_without_tables_is_valid_document(self):
        serializer = XmlSerializer(build_job(["users"], format="xml"), "shop")
        root = ET.fromstring(serializer.emit_footer())
        assert root.tag == "database"

    def test_control_characters_rejected(self):
        serializer = XmlSerializer(build_job(["users"], format="xml"), "shop")
        rows = [(1, "bell\x07", None, None)]
        descriptor = _descriptor(rows)
        serializer.emit_header(descriptor)
        with pytest.raises(SerializationFailed):
            serializer.emit_chunk(descriptor, RowChunk(table="users", offset=0, rows=rows))

    def test_invalid_column_name_rejected(self):
        serializer = XmlSerializer(build_job(["users"], format="xml"), "shop")
        descriptor = TableDescriptor(name="users", columns=["1st"], row_count=1)
        serializer.emit_header(descriptor)
        with pytest.raises(SerializationFailed):
            serializer.emit_chunk(descriptor, RowChunk(table="users", offset=0, rows=[("x",)]))


class TestCreateSerializer:
    @pytest.mark.parametrize(
        "fmt,cls",
        [("sql", SqlSerializer), ("csv", CsvSerializer), ("xml", XmlSerializer)],
    )
    def test_dispatch(self, fmt, cls):
        serializer = create_serializer(build_job(["users"], format=fmt), "shop")
        assert isinstance(serializer, cls)
        assert serializer.extension == fmt
