"""Pydantic models for exporter configuration."""

from pydantic import BaseModel, Field

from db_exporter.export.models import CsvMultiPolicy, ExportFormat, ExportScope


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "postgres"
    database_name: str | None = None  # Overrides the name taken from the URL


class ExportSettings(BaseModel):
    """Defaults for export jobs from the ``[export]`` table."""

    chunk_size: int = Field(default=500, gt=0)
    output_dir: str = "backups"
    large_table_threshold_mb: float = Field(default=10, ge=0)
    default_format: ExportFormat = "sql"
    default_scope: ExportScope = "both"
    default_csv_multi: CsvMultiPolicy = "archive"


class ExporterConfig(BaseModel):
    """Complete exporter configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    export: ExportSettings = Field(default_factory=ExportSettings)
