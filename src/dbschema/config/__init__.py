"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from dbschema.config import load_db_config, DatabaseProfile, DatabaseConfig
"""

from dbschema.config.loader import load_db_config
from dbschema.config.models import DatabaseConfig, DatabaseProfile

__all__ = ["load_db_config", "DatabaseConfig", "DatabaseProfile"]
