"""Export job models.

``ExportJob`` is immutable once built.  Options that do not apply to the
chosen format are reset to their defaults instead of being rejected, so a
CSV job carrying ``scope="structure"`` is still valid.

Usage:
    from db_exporter.export.models import ExportJob

    job = ExportJob(tables=["users", "logs"], format="csv", csv_multi="archive")
"""

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from db_exporter.errors import InvalidJob

ExportFormat = Literal["sql", "csv", "xml"]
ExportScope = Literal["structure", "data", "both"]
CsvMultiPolicy = Literal["archive", "concatenated"]

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
# XML element names cannot start with a digit
XML_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")

# Policy names used by the browser front end
_CSV_MULTI_ALIASES = {"zip": "archive", "single": "concatenated"}


class ExportJob(BaseModel):
    """A validated, immutable export request."""

    model_config = ConfigDict(frozen=True)

    tables: list[str] = Field(min_length=1)
    format: ExportFormat = "sql"
    scope: ExportScope = "both"
    csv_multi: CsvMultiPolicy = "archive"

    @model_validator(mode="before")
    @classmethod
    def _ignore_inapplicable_options(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        fmt = data.get("format", "sql")
        if isinstance(fmt, str):
            fmt = fmt.lower()
            data["format"] = fmt
        if fmt != "sql":
            data.pop("scope", None)
        if fmt != "csv":
            data.pop("csv_multi", None)
        elif isinstance(data.get("csv_multi"), str):
            policy = data["csv_multi"].lower()
            data["csv_multi"] = _CSV_MULTI_ALIASES.get(policy, policy)
        return data

    @field_validator("tables")
    @classmethod
    def _check_table_names(cls, tables: list[str]) -> list[str]:
        for name in tables:
            if not TABLE_NAME_PATTERN.match(name):
                raise ValueError(f"Invalid table name: {name!r}")
        return tables

    @model_validator(mode="after")
    def _check_xml_names(self) -> "ExportJob":
        if self.format == "xml":
            for name in self.tables:
                if not XML_NAME_PATTERN.match(name):
                    raise ValueError(f"Table name {name!r} is not a valid XML element name")
        return self

    @property
    def is_multi_table(self) -> bool:
        return len(self.tables) > 1

    @property
    def uses_archive(self) -> bool:
        """True when each table becomes its own archive member."""
        return self.format == "csv" and self.is_multi_table and self.csv_multi == "archive"

    @property
    def includes_structure(self) -> bool:
        return self.format == "sql" and self.scope in ("structure", "both")

    @property
    def includes_data(self) -> bool:
        return self.format != "sql" or self.scope in ("data", "both")


def build_job(
    tables: list[str],
    format: str = "sql",
    scope: str = "both",
    csv_multi: str = "archive",
) -> ExportJob:
    """Build an ``ExportJob``, mapping validation errors to ``InvalidJob``.

    Raises:
        InvalidJob: If the table list is empty, a table name is invalid, or
            the format (or an applicable option) is unknown.
    """
    try:
        return ExportJob(
            tables=list(tables),
            format=format,
            scope=scope,
            csv_multi=csv_multi,
        )
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'job'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidJob(f"Invalid export job: {problems}") from e


class TableDescriptor(BaseModel):
    """Point-in-time description of one table taken when its export starts."""

    name: str
    columns: list[str]
    row_count: int = Field(ge=0)
    ddl: str | None = None          # only fetched for SQL structure exports


class RowChunk(BaseModel):
    """A bounded window of rows, positionally aligned to the table's columns."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    table: str
    offset: int
    rows: list[tuple]

    def __len__(self) -> int:
        return len(self.rows)
