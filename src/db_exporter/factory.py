"""Row source factory.

Resolves a named profile from ``db.toml`` (or an explicit URL) into an
``AsyncSQLAlchemySource``.

Profile resolution order:
1. Explicit ``profile_name`` argument (``--profile`` on the CLI)
2. ``<env_prefix>DB_PROFILE`` environment variable
3. The only profile, when ``db.toml`` defines exactly one
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from db_exporter.adapters.sql_source import AsyncSQLAlchemySource
from db_exporter.config.loader import load_db_config
from db_exporter.config.models import DatabaseProfile, ExporterConfig

logger = logging.getLogger(__name__)


class ProfileNotFoundError(Exception):
    """Raised when no database profile can be resolved."""

    pass


def get_active_profile_name(
    config: ExporterConfig,
    profile_name: str | None = None,
    env_prefix: str = "",
) -> str:
    """Pick the profile to use.

    Args:
        config: Loaded configuration.
        profile_name: Explicit choice; wins over everything else.
        env_prefix: Prefix for the ``DB_PROFILE`` environment variable
            (e.g. ``"APP_"`` reads ``APP_DB_PROFILE``).

    Returns:
        Profile name present in ``config.profiles``.

    Raises:
        ProfileNotFoundError: If no profile is configured or the chosen one
            does not exist.
    """
    name = profile_name or os.environ.get(f"{env_prefix}DB_PROFILE")
    if not name and len(config.profiles) == 1:
        name = next(iter(config.profiles))

    available = ", ".join(config.profiles) or "(none)"
    if not name:
        raise ProfileNotFoundError(
            "No database profile selected.\n"
            f"Pass --profile or set {env_prefix}DB_PROFILE.\n"
            f"Available profiles: {available}"
        )
    if name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{name}' not found in db.toml.\nAvailable profiles: {available}"
        )
    return name


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Replaces the ``[YOUR-PASSWORD]`` placeholder with the URL-quoted
    ``db_password`` when both are present.
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_source(
    profile_name: str | None = None,
    config_path: str | Path | None = None,
    env_prefix: str = "",
    database_url: str | None = None,
) -> AsyncSQLAlchemySource:
    """Build a row source from a profile or an explicit URL.

    Args:
        profile_name: Profile in ``db.toml``.
        config_path: Path to ``db.toml``.
        env_prefix: Prefix for the ``DB_PROFILE`` environment variable.
        database_url: Bypass profiles entirely and connect to this URL.

    Raises:
        FileNotFoundError: If ``db.toml`` is needed but missing.
        ProfileNotFoundError: If no usable profile is found.
    """
    if database_url:
        return AsyncSQLAlchemySource(database_url)

    config = load_db_config(config_path)
    name = get_active_profile_name(config, profile_name, env_prefix)
    profile = config.profiles[name]
    logger.debug("Using profile %s (%s)", name, profile.provider)
    return AsyncSQLAlchemySource(resolve_url(profile), database_name=profile.database_name)
