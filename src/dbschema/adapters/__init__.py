"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the SQLAlchemy-backed
``SqlServerAdapter``. The SQL Server driver (``pyodbc``) ships in the
``mssql`` extra; the adapter itself imports without it.

Usage:
    from dbschema.adapters import DatabaseClient, SqlServerAdapter
"""

from dbschema.adapters.base import DatabaseClient
from dbschema.adapters.sqlserver import SqlServerAdapter, create_engine_pooled

__all__ = [
    "DatabaseClient",
    "SqlServerAdapter",
    "create_engine_pooled",
]
