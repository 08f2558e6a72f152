"""Shared fixtures: an in-memory SQL Server stand-in and sample schemas.

``FakeClient`` implements the ``DatabaseClient`` Protocol over a
``Schema`` model. It answers the catalog queries the introspector issues
(``INFORMATION_SCHEMA.TABLES``, ``sp_columns``, ``sp_pkeys``,
``sys.indexes``, ``sp_fkeys``) and applies the DDL and INSERT statements
the emitter produces, so whole reconciliation passes can run without a
server.
"""

import re
from typing import Any

import pytest

from dbschema.exceptions import StatementError
from dbschema.schema.models import Schema, Table

IDENT = r"\[([^\]]+)\]"

CREATE_TABLE_RE = re.compile(rf"^CREATE TABLE {IDENT} \(\n(.*)\n\);$", re.DOTALL)
COLUMN_LINE_RE = re.compile(rf"^\t{IDENT} (.+?),?$")
COLUMN_DEF_RE = re.compile(
    r"^(?P<type>.+?)(?P<seed>\(1,1\))?"
    r"(?: (?P<opts>(?:NOT NULL|NULL|DEFAULT|CONSTRAINT|COLLATE)\b.*))?$",
    re.IGNORECASE,
)
PRIMARY_KEY_RE = re.compile(
    rf"\tCONSTRAINT {IDENT} PRIMARY KEY CLUSTERED \(\n(.*?)\n\t\)", re.DOTALL
)
ADD_COLUMN_RE = re.compile(rf"^ALTER TABLE {IDENT} ADD {IDENT} (.+);$")
CREATE_INDEX_RE = re.compile(
    rf"^CREATE( UNIQUE)?( CLUSTERED)? INDEX {IDENT} ON {IDENT} \(\n(.*)\n\);$",
    re.DOTALL,
)
INDEX_COLUMN_RE = re.compile(rf"\t{IDENT}( DESC)?")
ADD_FOREIGN_KEY_RE = re.compile(
    rf"^ALTER TABLE {IDENT} WITH CHECK ADD CONSTRAINT {IDENT}\n"
    rf"\tFOREIGN KEY \({IDENT}\)\n"
    rf"\tREFERENCES {IDENT} \({IDENT}\);$"
)
INSERT_RE = re.compile(rf"^INSERT INTO {IDENT}(?: \((.*)\)\nVALUES \((.*)\)| DEFAULT VALUES);$")

LENGTH_TYPES = {"char", "varchar", "nchar", "nvarchar", "binary", "varbinary"}


class FakeClient:
    """In-memory ``DatabaseClient`` speaking the SQL Server catalog dialect.

    Args:
        schema: Initial live schema (empty when omitted).
        version: Value returned by ``server_version()``.
    """

    def __init__(self, schema: Schema | None = None, version: str = "15.0.2000.5") -> None:
        self.schema = schema if schema is not None else Schema()
        self.version = version
        self.rows: dict[str, list[dict[str, Any]]] = {}
        self.queries: list[str] = []
        self.executed: list[tuple[str, dict[str, Any] | None]] = []
        self.closed = False
        self._failures: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------

    def fail(self, fragment: str, after: int = 0) -> None:
        """Reject statements containing *fragment* once *after* have passed."""
        self._failures[fragment] = after

    def _check_failure(self, sql: str) -> None:
        for fragment, remaining in self._failures.items():
            if fragment in sql:
                if remaining > 0:
                    self._failures[fragment] = remaining - 1
                    continue
                raise StatementError(sql, cause=RuntimeError("injected failure"))

    @property
    def statements(self) -> list[str]:
        return [sql for sql, _ in self.executed]

    # ------------------------------------------------------------------
    # DatabaseClient
    # ------------------------------------------------------------------

    def fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        self.queries.append(sql)
        self._check_failure(sql)
        params = params or {}

        if "INFORMATION_SCHEMA.TABLES" in sql:
            return [{"TABLE_NAME": name} for name in sorted(self.schema.tables)]
        if "sp_columns" in sql:
            return self._column_rows(self._table(params["table_name"]))
        if "sp_pkeys" in sql:
            return self._pkey_rows(self._table(params["table_name"]))
        if "sys.indexes" in sql:
            name = re.findall(IDENT, params["qualified_name"])[-1]
            return self._index_rows(self._table(name))
        if "sp_fkeys" in sql:
            return self._fkey_rows(self._table(params["table_name"]))
        raise StatementError(sql, cause=RuntimeError("unsupported query"))

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        self.executed.append((sql, params))
        self._check_failure(sql)

        if match := CREATE_TABLE_RE.match(sql):
            self._create_table(sql, match.group(1), match.group(2))
        elif match := ADD_COLUMN_RE.match(sql):
            table = self._require(sql, match.group(1))
            self._add_column(sql, table, match.group(2), match.group(3))
        elif match := CREATE_INDEX_RE.match(sql):
            table = self._require(sql, match.group(4))
            self._create_index(sql, table, match)
        elif match := ADD_FOREIGN_KEY_RE.match(sql):
            table = self._require(sql, match.group(1))
            self._require(sql, match.group(4))
            if table.find_foreign_key(match.group(2)) is not None:
                raise StatementError(sql, cause=RuntimeError("constraint exists"))
            table.add_foreign_key(*match.group(2, 3, 4, 5))
        elif match := INSERT_RE.match(sql):
            self._require(sql, match.group(1))
            columns = re.findall(IDENT, match.group(2) or "")
            values = list((params or {}).values())
            self.rows.setdefault(match.group(1), []).append(dict(zip(columns, values)))
        else:
            raise StatementError(sql, cause=RuntimeError("unsupported statement"))
        return 1

    def server_version(self) -> str:
        self._check_failure("server version")
        return self.version

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Catalog rows
    # ------------------------------------------------------------------

    def _table(self, name: str) -> Table:
        return self.schema.tables.get(name) or Table(name=name)

    def _require(self, sql: str, name: str) -> Table:
        table = self.schema.get_table(name)
        if table is None:
            raise StatementError(sql, cause=RuntimeError(f"Invalid object name '{name}'"))
        return table

    @staticmethod
    def _column_rows(table: Table) -> list[dict]:
        rows = []
        for column in table.columns:
            type_name, size = column.data_type, None
            if match := re.match(r"^(\w+)\((\w+)\)$", column.data_type):
                if match.group(1).lower() in LENGTH_TYPES:
                    type_name = match.group(1)
                    size = 2147483647 if match.group(2) == "max" else int(match.group(2))
            options = column.options.upper()
            default = None
            if "DEFAULT " in options:
                default = column.options[options.index("DEFAULT ") + len("DEFAULT "):]
            rows.append(
                {
                    "TABLE_NAME": table.name,
                    "COLUMN_NAME": column.name,
                    "TYPE_NAME": type_name,
                    "PRECISION": size,
                    "LENGTH": size,
                    "NULLABLE": 0 if "NOT NULL" in options else 1,
                    "COLUMN_DEF": default,
                }
            )
        return rows

    @staticmethod
    def _pkey_rows(table: Table) -> list[dict]:
        key = table.primary_key
        if key is None:
            return []
        return [{"PK_NAME": key.name, "COLUMN_NAME": column} for column in key.columns]

    @staticmethod
    def _index_rows(table: Table) -> list[dict]:
        return [
            {
                "idx_name": index.name,
                "type_desc": "CLUSTERED" if index.clustered else "NONCLUSTERED",
                "is_unique": index.unique,
                "col_name": column,
                "is_descending_key": descending,
            }
            for index in table.indexes
            for column, descending in index.columns.items()
        ]

    @staticmethod
    def _fkey_rows(table: Table) -> list[dict]:
        return [
            {
                "FK_NAME": fk.name,
                "FKCOLUMN_NAME": fk.column,
                "PKTABLE_NAME": fk.referenced_table,
                "PKCOLUMN_NAME": fk.referenced_column,
            }
            for fk in table.foreign_keys
        ]

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def _create_table(self, sql: str, name: str, body: str) -> None:
        if name in self.schema.tables:
            raise StatementError(sql, cause=RuntimeError(f"'{name}' already exists"))
        table = Table(name=name)
        for line in body.splitlines():
            if match := COLUMN_LINE_RE.match(line):
                self._add_column(sql, table, match.group(1), match.group(2))
        if match := PRIMARY_KEY_RE.search(body):
            table.set_primary_key(match.group(1), re.findall(IDENT, match.group(2)))
        self.schema.tables[name] = table

    @staticmethod
    def _add_column(sql: str, table: Table, name: str, definition: str) -> None:
        if table.find_column(name) is not None:
            raise StatementError(sql, cause=RuntimeError(f"Column '{name}' exists"))
        match = COLUMN_DEF_RE.match(definition)
        table.add_column(name, match.group("type"), match.group("opts") or "")

    @staticmethod
    def _create_index(sql: str, table: Table, match: re.Match) -> None:
        if table.find_index(match.group(3)) is not None:
            raise StatementError(sql, cause=RuntimeError("index exists"))
        index = table.add_index(
            match.group(3),
            clustered=bool(match.group(2)),
            unique=bool(match.group(1)),
        )
        for column, descending in INDEX_COLUMN_RE.findall(match.group(5)):
            index.add_column(column, bool(descending))


# ============================================================================
# Fixtures
# ============================================================================


def build_sample_schema(with_seeds: bool = True) -> Schema:
    """Roles and Users with keys, indexes, a foreign key and seed rows."""
    schema = Schema()

    roles = schema.add_table("Roles")
    roles.add_column("Id", "int identity", "NOT NULL")
    roles.add_column("Name", "varchar(50)", "NOT NULL")
    roles.set_primary_key("PK_Roles", ["Id"])
    roles.add_index("IX_Roles_Name", unique=True).add_column("Name")

    users = schema.add_table("Users")
    users.add_column("Id", "int identity", "NOT NULL")
    users.add_column("Email", "nvarchar(255)", "NOT NULL")
    users.add_column("RoleId", "int", "NULL")
    users.add_column("Active", "bit", "NOT NULL DEFAULT 1")
    users.set_primary_key("PK_Users", ["Id"])
    users.add_index("IX_Users_Email").add_column("Email", descending=True)
    users.add_foreign_key("FK_Users_Roles", "RoleId", "Roles", "Id")

    if with_seeds:
        roles.add_seed_record().add_text("Name", "admin")
        roles.add_seed_record().add_text("Name", "guest")

    return schema


@pytest.fixture
def sample_schema() -> Schema:
    return build_sample_schema()


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
