"""SQL Server schema introspection via the system catalog.

This module queries the live database to build a ``Schema``:
- Tables owned by the configured schema owner (``dbo`` by default)
- Columns, data types, sizes, nullability, defaults (``sp_columns``)
- Primary key columns (``sp_pkeys``)
- Non-primary indexes (``sys.indexes``), only on servers that have the
  extended index catalogs (major version 9 and later)
- Single-column foreign keys (``sp_fkeys``)

All statements go through the ``DatabaseClient`` Protocol, so the
introspector never owns a connection.
"""

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from dbschema.exceptions import ConnectivityError, StatementError
from dbschema.schema.activity import ActivityLog
from dbschema.schema.models import Schema, Table

if TYPE_CHECKING:
    from dbschema.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

# First major version exposing sys.indexes / sys.index_columns
EXTENDED_INDEX_CATALOG_MIN_MAJOR = 9

# Types whose declared size is part of the type token
LENGTH_TYPES = {"char", "varchar", "nchar", "nvarchar", "binary", "varbinary"}
MAX_FIXED_LENGTH = 8000

TABLES_QUERY = """
    SELECT TABLE_NAME
    FROM INFORMATION_SCHEMA.TABLES
    WHERE TABLE_SCHEMA = :owner
      AND TABLE_TYPE = 'BASE TABLE'
    ORDER BY TABLE_NAME
"""

COLUMNS_QUERY = "EXEC sp_columns @table_name = :table_name, @table_owner = :owner"

PKEYS_QUERY = "EXEC sp_pkeys @table_name = :table_name, @table_owner = :owner"

INDEXES_QUERY = """
    SELECT
        idx.name AS idx_name,
        idx.type_desc,
        idx.is_unique,
        cols.name AS col_name,
        ixc.is_descending_key
    FROM sys.indexes idx
    JOIN sys.index_columns ixc
        ON ixc.object_id = idx.object_id
        AND ixc.index_id = idx.index_id
    JOIN sys.columns cols
        ON cols.object_id = ixc.object_id
        AND cols.column_id = ixc.column_id
    WHERE idx.object_id = OBJECT_ID(:qualified_name)
      AND idx.is_primary_key = 0
      AND idx.type > 0
      AND ixc.is_included_column = 0
    ORDER BY idx.name, ixc.key_ordinal
"""

FKEYS_QUERY = "EXEC sp_fkeys @fktable_name = :table_name, @fktable_owner = :owner"


def parse_major_version(version: str) -> int | None:
    """Return the major component of a dotted version string.

    Examples:
        >>> parse_major_version("15.0.2000.5")
        15
        >>> parse_major_version("unknown") is None
        True
    """
    head = version.strip().split(".", 1)[0]
    try:
        return int(head)
    except ValueError:
        return None


class SchemaIntrospector:
    """Introspects a SQL Server database schema.

    Usage:
        introspector = SchemaIntrospector(client)
        schema = introspector.capture()
        if not introspector.index_catalogs_available:
            print("indexes were not captured")

    Args:
        client: Database adapter implementing ``DatabaseClient``.
        owner: Schema owner whose tables are captured.
        excluded_tables: System/internal tables to skip.
        log: Activity log of the calling operation. A private log is used
            when omitted.
    """

    # Tables to exclude from introspection (system tables)
    EXCLUDED_TABLES = frozenset({"dtproperties", "sysdiagrams"})

    def __init__(
        self,
        client: "DatabaseClient",
        owner: str = "dbo",
        excluded_tables: Iterable[str] | None = None,
        log: ActivityLog | None = None,
    ) -> None:
        self._client = client
        self._owner = owner
        self._excluded = (
            frozenset(excluded_tables)
            if excluded_tables is not None
            else self.EXCLUDED_TABLES
        )
        self._log = log if log is not None else ActivityLog(logger)
        self.index_catalogs_available: bool | None = None

    @property
    def log(self) -> ActivityLog:
        return self._log

    def capture(self) -> Schema:
        """Build a ``Schema`` from the live database.

        Returns:
            Schema with every user table, its columns, primary key, indexes
            (when supported) and foreign keys.

        Raises:
            ConnectivityError: If any metadata query fails. No partial
                schema is returned.
        """
        schema = Schema()

        self._log.info("Reading database tables...")
        tables = self._get_tables()
        self._log.info(f"Found {len(tables)} tables...")

        self.index_catalogs_available = self._has_index_catalogs()

        for table_name in tables:
            self._log.info(f"Populating schema for table '{table_name}'...")
            table = schema.add_table(table_name)
            self._add_columns(table)
            self._add_primary_key(table)
            if self.index_catalogs_available:
                self._add_indexes(table)
            self._add_foreign_keys(table)
            self._log.info(f"Schema captured for table '{table_name}'")

        return schema

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def _query(
        self, step: str, sql: str, params: dict[str, Any], table: str | None = None
    ) -> list[dict]:
        try:
            return self._client.fetch_all(sql, params)
        except StatementError as e:
            self._log.error(
                f"Failed to read {step}" + (f" for table '{table}'" if table else "")
            )
            raise ConnectivityError(step, table=table, cause=e) from e

    def _get_tables(self) -> list[str]:
        rows = self._query("tables", TABLES_QUERY, {"owner": self._owner})
        return [
            row["TABLE_NAME"]
            for row in rows
            if row["TABLE_NAME"] not in self._excluded
        ]

    def _has_index_catalogs(self) -> bool:
        try:
            version = self._client.server_version()
        except StatementError as e:
            self._log.error("Failed to read server version")
            raise ConnectivityError("server version", cause=e) from e

        major = parse_major_version(version)
        if major is None or major < EXTENDED_INDEX_CATALOG_MIN_MAJOR:
            self._log.warning(
                f"Server version '{version}' has no extended index catalogs; "
                "indexes will not be captured"
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Per-table capture
    # ------------------------------------------------------------------

    def _add_columns(self, table: Table) -> None:
        self._log.info(f"Getting columns for table '{table.name}'...")
        rows = self._query(
            "columns",
            COLUMNS_QUERY,
            {"table_name": table.name, "owner": self._owner},
            table=table.name,
        )
        for row in rows:
            # sp_columns treats the table name as a LIKE pattern
            if row.get("TABLE_NAME", table.name) != table.name:
                continue
            table.add_column(
                row["COLUMN_NAME"],
                self._data_type(row),
                self._options(row),
            )

    def _data_type(self, row: dict) -> str:
        """Fold the declared size into length-bearing type names."""
        type_name = str(row["TYPE_NAME"])
        if type_name.lower() not in LENGTH_TYPES:
            return type_name

        size = row.get("PRECISION")
        if size is None:
            size = row.get("LENGTH")
        size = int(size) if size is not None else 0
        if size <= 0 or size > MAX_FIXED_LENGTH:
            return f"{type_name}(max)"
        return f"{type_name}({size})"

    def _options(self, row: dict) -> str:
        """Synthesize ``NOT NULL`` / ``NULL`` plus a default clause."""
        options = "NOT NULL" if int(row["NULLABLE"]) == 0 else "NULL"
        default = row.get("COLUMN_DEF")
        if default not in (None, ""):
            options += f" DEFAULT {default}"
        return options

    def _add_primary_key(self, table: Table) -> None:
        self._log.info(f"Getting primary keys for table '{table.name}'...")
        rows = self._query(
            "primary keys",
            PKEYS_QUERY,
            {"table_name": table.name, "owner": self._owner},
            table=table.name,
        )

        keys: dict[str, list[str]] = {}
        for row in rows:
            keys.setdefault(row["PK_NAME"], []).append(row["COLUMN_NAME"])

        if keys:
            name, columns = next(iter(keys.items()))
            table.set_primary_key(name, columns)

    def _add_indexes(self, table: Table) -> None:
        self._log.info(f"Getting indexes for table '{table.name}'...")
        rows = self._query(
            "indexes",
            INDEXES_QUERY,
            {"qualified_name": f"[{self._owner}].[{table.name}]"},
            table=table.name,
        )
        for row in rows:
            index = table.find_index(row["idx_name"])
            if index is None:
                index = table.add_index(
                    row["idx_name"],
                    clustered=row["type_desc"] == "CLUSTERED",
                    unique=bool(row["is_unique"]),
                )
            index.add_column(row["col_name"], bool(row["is_descending_key"]))

    def _add_foreign_keys(self, table: Table) -> None:
        self._log.info(f"Getting foreign keys for table '{table.name}'...")
        rows = self._query(
            "foreign keys",
            FKEYS_QUERY,
            {"table_name": table.name, "owner": self._owner},
            table=table.name,
        )

        grouped: dict[str, list[dict]] = {}
        for row in rows:
            grouped.setdefault(row["FK_NAME"], []).append(row)

        for name, key_rows in grouped.items():
            if len(key_rows) > 1:
                self._log.warning(
                    f"Skipping composite foreign key '{name}' on table '{table.name}'"
                )
                continue
            row = key_rows[0]
            table.add_foreign_key(
                name,
                row["FKCOLUMN_NAME"],
                row["PKTABLE_NAME"],
                row["PKCOLUMN_NAME"],
            )
