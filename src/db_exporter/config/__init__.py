"""Configuration management: profiles, export settings and TOML loading.

Usage:
    >>> from db_exporter.config import load_db_config, DatabaseProfile, ExporterConfig
"""

from db_exporter.config.loader import load_db_config
from db_exporter.config.models import DatabaseProfile, ExporterConfig, ExportSettings

__all__ = ["load_db_config", "DatabaseProfile", "ExporterConfig", "ExportSettings"]
