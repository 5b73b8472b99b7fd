"""Backup file naming.

``db_backup_main_<db>_<timestamp>.<ext>`` for a main backup,
``db_backup_table_<table>_<timestamp>.<ext>`` for a single table and
``db_backup_selected_<db>_<timestamp>.<ext>`` for a hand-picked set.
Multi-table CSV exports packaged as an archive get the ``zip`` extension.
"""

from datetime import datetime
from pathlib import Path
from typing import Literal

from db_exporter.export.models import ExportJob

BackupKind = Literal["main", "table", "selected"]

FILENAME_PREFIXES: dict[str, str] = {
    "main": "db_backup_main_",
    "table": "db_backup_table_",
    "selected": "db_backup_selected_",
}


def file_extension(job: ExportJob) -> str:
    return "zip" if job.uses_archive else job.format


def build_destination(
    output_dir: str | Path,
    job: ExportJob,
    database_name: str,
    kind: BackupKind = "main",
    now: datetime | None = None,
) -> Path:
    """Return the output path for ``job``.

    A ``table`` backup is named after its (single) table instead of the
    database.
    """
    now = now or datetime.now()
    subject = job.tables[0] if kind == "table" else database_name
    stamp = now.strftime("%Y-%m-%d_%H-%M-%S")
    name = f"{FILENAME_PREFIXES[kind]}{subject}_{stamp}.{file_extension(job)}"
    return Path(output_dir) / name
