"""Database adapter factory.

Resolves the active profile from ``db.toml`` and builds a
``SqlServerAdapter`` for it.

Profile resolution priority:
1. Explicit ``profile_name`` argument
2. ``{env_prefix}DB_PROFILE`` environment variable
3. Raise ``ProfileNotFoundError``

Usage:
    from dbschema.factory import get_adapter

    adapter = get_adapter("local")
    adapter = get_adapter(env_prefix="APP_")  # reads APP_DB_PROFILE
"""

import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import quote

from dbschema.adapters.sqlserver import SqlServerAdapter
from dbschema.config.loader import load_db_config
from dbschema.config.models import DatabaseConfig, DatabaseProfile

logger = logging.getLogger(__name__)

PASSWORD_PLACEHOLDER = "[YOUR-PASSWORD]"


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


# ============================================================================
# Profile Resolution
# ============================================================================


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from the environment.

    Args:
        env_prefix: Prefix for the environment variable, e.g. ``"APP_"``
            reads ``APP_DB_PROFILE``.

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If the variable is unset or empty
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Run: {env_var}=<name> dbschema <command>"
    )


def get_active_profile(
    profile_name: str | None = None,
    env_prefix: str = "",
    config: DatabaseConfig | None = None,
    config_path: Path | None = None,
) -> tuple[str, DatabaseProfile]:
    """Get active profile name and configuration.

    Args:
        profile_name: Explicit profile name. If None, resolved from the
            environment.
        env_prefix: Prefix for the ``DB_PROFILE`` environment variable.
        config: Already loaded configuration. Loaded from *config_path*
            when omitted.
        config_path: Path to db.toml (default: current directory).

    Returns:
        Tuple of (profile_name, DatabaseProfile)

    Raises:
        ProfileNotFoundError: If no profile is configured or the name is
            not defined in db.toml
        FileNotFoundError: If db.toml doesn't exist
    """
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix=env_prefix)
    if config is None:
        config = load_db_config(config_path)

    if profile_name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return profile_name, config.profiles[profile_name]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted (URL-encoded)
    """
    url = profile.url
    if profile.db_password and PASSWORD_PLACEHOLDER in url:
        url = url.replace(PASSWORD_PLACEHOLDER, quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Adapter Factory
# ============================================================================


def get_adapter(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: Path | None = None,
    database_url: str | None = None,
    **engine_kwargs: Any,
) -> SqlServerAdapter:
    """Create a ``SqlServerAdapter`` for a profile or direct URL.

    Args:
        profile_name: Profile name from db.toml. If None, uses
            ``{env_prefix}DB_PROFILE``.
        env_prefix: Prefix for environment variable lookup.
        config_path: Path to db.toml (default: current directory).
        database_url: Direct connection URL; bypasses profile lookup.
        **engine_kwargs: Forwarded to the SQLAlchemy engine.

    Returns:
        Configured ``SqlServerAdapter``

    Raises:
        ProfileNotFoundError: If no profile can be resolved
        FileNotFoundError: If db.toml doesn't exist

    Example:
        >>> with get_adapter("local") as adapter:
        ...     print(adapter.server_version())
    """
    if database_url is None:
        name, profile = get_active_profile(
            profile_name, env_prefix=env_prefix, config_path=config_path
        )
        logger.info(f"Using database profile '{name}'")
        database_url = resolve_url(profile)

    return SqlServerAdapter(database_url, **engine_kwargs)
