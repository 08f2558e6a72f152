"""DDL emission for corrective actions.

Turns each corrective action into SQL Server statements and runs them
through the ``DatabaseClient.execute()`` Protocol method. Statement text is
recorded in the activity log before it is sent.

Usage:
    from dbschema.schema.ddl import AddColumn, DDLEmitter

    emitter = DDLEmitter(client, log)
    emitter.apply(AddColumn(table_name="Users", column=email_column))
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dbschema.exceptions import StatementError, StructuralChangeError
from dbschema.schema.activity import ActivityLog
from dbschema.schema.models import ActionKind, Column, ForeignKey, Index, Table

if TYPE_CHECKING:
    from dbschema.adapters.base import DatabaseClient

IDENTITY_SEED = "(1,1)"


@dataclass
class Statement:
    """One executable SQL statement with optional bind parameters."""

    sql: str
    params: dict[str, Any] | None = None


# ------------------------------------------------------------------
# Statement builders
# ------------------------------------------------------------------


def quote_identifier(name: str) -> str:
    """Bracket-quote a SQL Server identifier.

    Example:
        >>> quote_identifier("Order Details")
        '[Order Details]'
    """
    return "[" + name.replace("]", "]]") + "]"


def column_definition(column: Column) -> str:
    """Render ``[name] type options`` with identity columns seeded (1,1)."""
    definition = f"{quote_identifier(column.name)} {column.data_type}"
    if column.is_identity:
        definition += IDENTITY_SEED
    if column.options:
        definition += f" {column.options}"
    return definition


def create_table_statement(table: Table) -> Statement:
    """Build CREATE TABLE with columns in declared order and the primary key."""
    lines = [f"\t{column_definition(column)}" for column in table.columns]

    key = table.primary_key
    if key is not None and key.name and key.columns:
        key_columns = ",\n".join(f"\t\t{quote_identifier(c)} ASC" for c in key.columns)
        lines.append(
            f"\tCONSTRAINT {quote_identifier(key.name)} PRIMARY KEY CLUSTERED (\n"
            f"{key_columns}\n\t)"
        )

    body = ",\n".join(lines)
    return Statement(f"CREATE TABLE {quote_identifier(table.name)} (\n{body}\n);")


def create_table_statements(table: Table) -> list[Statement]:
    """CREATE TABLE followed by one INSERT per seed record."""
    statements = [create_table_statement(table)]
    for record in table.seed_records:
        statements.append(insert_statement(table.name, record.parameters()))
    return statements


def insert_statement(table_name: str, values: Mapping[str, object]) -> Statement:
    """Build a parameterized INSERT using the record's columns in order.

    Bind names are positional (``v0``, ``v1``...) so column names never
    need to be valid parameter names.
    """
    if not values:
        return Statement(f"INSERT INTO {quote_identifier(table_name)} DEFAULT VALUES;")

    columns = ", ".join(quote_identifier(c) for c in values)
    params = {f"v{i}": value for i, value in enumerate(values.values())}
    placeholders = ", ".join(f":{name}" for name in params)
    return Statement(
        f"INSERT INTO {quote_identifier(table_name)} ({columns})\nVALUES ({placeholders});",
        params,
    )


def add_column_statement(table_name: str, column: Column) -> Statement:
    return Statement(
        f"ALTER TABLE {quote_identifier(table_name)} ADD {column_definition(column)};"
    )


def add_index_statement(table_name: str, index: Index) -> Statement:
    """Build CREATE INDEX honoring unique/clustered and per-column order."""
    prefix = "CREATE"
    if index.unique:
        prefix += " UNIQUE"
    if index.clustered:
        prefix += " CLUSTERED"

    columns = ",\n".join(
        f"\t{quote_identifier(name)}" + (" DESC" if descending else "")
        for name, descending in index.columns.items()
    )
    return Statement(
        f"{prefix} INDEX {quote_identifier(index.name)} "
        f"ON {quote_identifier(table_name)} (\n{columns}\n);"
    )


def add_foreign_key_statement(table_name: str, foreign_key: ForeignKey) -> Statement:
    """Build a single-column FK constraint checked against existing rows."""
    return Statement(
        f"ALTER TABLE {quote_identifier(table_name)} WITH CHECK "
        f"ADD CONSTRAINT {quote_identifier(foreign_key.name)}\n"
        f"\tFOREIGN KEY ({quote_identifier(foreign_key.column)})\n"
        f"\tREFERENCES {quote_identifier(foreign_key.referenced_table)} "
        f"({quote_identifier(foreign_key.referenced_column)});"
    )


# ------------------------------------------------------------------
# Actions
# ------------------------------------------------------------------


@dataclass
class CreateTable:
    """A missing table, created in full with its seed rows.

    Example:
        action = CreateTable(table=users)
        [s.sql for s in action.to_statements()]
        # ['CREATE TABLE [Users] (...);', 'INSERT INTO [Users] ...']
    """

    table: Table
    kind: ActionKind = field(default=ActionKind.CREATE_TABLE, init=False)

    @property
    def table_name(self) -> str:
        return self.table.name

    @property
    def name(self) -> str:
        return self.table.name

    def to_statements(self) -> list[Statement]:
        return create_table_statements(self.table)


@dataclass
class AddColumn:
    """A column missing from an existing table."""

    table_name: str
    column: Column
    kind: ActionKind = field(default=ActionKind.ADD_COLUMN, init=False)

    @property
    def name(self) -> str:
        return self.column.name

    def to_statements(self) -> list[Statement]:
        return [add_column_statement(self.table_name, self.column)]


@dataclass
class AddIndex:
    """An index missing from an existing table."""

    table_name: str
    index: Index
    kind: ActionKind = field(default=ActionKind.ADD_INDEX, init=False)

    @property
    def name(self) -> str:
        return self.index.name

    def to_statements(self) -> list[Statement]:
        return [add_index_statement(self.table_name, self.index)]


@dataclass
class AddForeignKey:
    """A foreign key missing from an existing table."""

    table_name: str
    foreign_key: ForeignKey
    kind: ActionKind = field(default=ActionKind.ADD_FOREIGN_KEY, init=False)

    @property
    def name(self) -> str:
        return self.foreign_key.name

    def to_statements(self) -> list[Statement]:
        return [add_foreign_key_statement(self.table_name, self.foreign_key)]


Action = CreateTable | AddColumn | AddIndex | AddForeignKey


# ------------------------------------------------------------------
# Emitter
# ------------------------------------------------------------------


class DDLEmitter:
    """Executes corrective actions, logging each statement first.

    Args:
        client: Database adapter implementing ``DatabaseClient``.
        log: Activity log of the current call.
        dry_run: If True, statements are logged but never executed.
    """

    def __init__(
        self,
        client: "DatabaseClient",
        log: ActivityLog,
        dry_run: bool = False,
    ) -> None:
        self._client = client
        self._log = log
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def apply(
        self, action: Action, statements: list[Statement] | None = None
    ) -> list[Statement]:
        """Run every statement of an action in order.

        Args:
            action: The corrective action.
            statements: The action's statements when the caller has already
                built them; built from *action* otherwise.

        Returns:
            The statements that were issued (or would be, in dry-run mode).

        Raises:
            StructuralChangeError: If the database rejects a statement. The
                statements after it are not issued; the ones before it stay
                applied. Its ``statement_index`` is the position of the
                rejected statement.
        """
        if statements is None:
            statements = action.to_statements()
        if isinstance(action, CreateTable):
            key = action.table.primary_key
            if key is not None and key.columns and not key.name:
                self._log.warning(
                    f"Primary key of table '{action.table_name}' has no name; "
                    "it is not created"
                )
        for position, statement in enumerate(statements):
            self._log.statement(statement.sql, message=self._describe(action, position))
            if self._dry_run:
                continue
            try:
                self._client.execute(statement.sql, statement.params)
            except StatementError as e:
                self._log.error(
                    f"{action.kind.value} '{action.name}' failed on table "
                    f"'{action.table_name}': {e.cause or e}"
                )
                raise StructuralChangeError(
                    action.kind.value,
                    action.table_name,
                    action.name,
                    cause=e,
                    statement_index=position,
                ) from e
        return statements

    @staticmethod
    def _describe(action: Action, position: int) -> str:
        if action.kind == ActionKind.CREATE_TABLE:
            if position == 0:
                return f"Creating table {action.table_name}..."
            record = action.table.seed_records[position - 1]
            return f"Inserting seed record into table {action.table_name} ({record.summary()})..."
        element = {
            ActionKind.ADD_COLUMN: "column",
            ActionKind.ADD_INDEX: "index",
            ActionKind.ADD_FOREIGN_KEY: "foreign key",
        }[action.kind]
        return f"Altering table {action.table_name} adding {element} '{action.name}'..."
