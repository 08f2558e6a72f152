"""Pydantic models for the schema description and reconciliation results.

This module contains schema-domain models:
- Structure models: Column, PrimaryKey, Index, ForeignKey, Table, Schema
- Seed data models: TextValue, NumberValue, BooleanValue, NullValue,
  SeedRecord, SeedRecords
- Result models: ActionOutcome, SchemaDiff, ReconcileResult,
  DescriptorResult

Every named element is unique within its owner. The ``add_*`` methods
enforce this and raise ``DuplicateDefinitionError`` on a repeated name.
"""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from dbschema.exceptions import DBSchemaError, DuplicateDefinitionError
from dbschema.schema.activity import LogEntry

IDENTITY_MARKER = "identity"


# ============================================================================
# Seed Values
# ============================================================================


class TextValue(BaseModel):
    """A textual seed value, written as a literal block."""

    kind: Literal["text"] = "text"
    value: str

    @property
    def python_value(self) -> str:
        return self.value

    def to_text(self) -> str:
        return self.value


class NumberValue(BaseModel):
    """A numeric seed value."""

    kind: Literal["number"] = "number"
    value: int | float

    @property
    def python_value(self) -> int | float:
        return self.value

    def to_text(self) -> str:
        return str(self.value)


class BooleanValue(BaseModel):
    """A boolean seed value, written as ``True`` / ``False``."""

    kind: Literal["boolean"] = "boolean"
    value: bool

    @property
    def python_value(self) -> bool:
        return self.value

    def to_text(self) -> str:
        return "True" if self.value else "False"


class NullValue(BaseModel):
    """An explicit SQL NULL seed value."""

    kind: Literal["null"] = "null"

    @property
    def python_value(self) -> None:
        return None

    def to_text(self) -> str:
        return ""


SeedValue = Annotated[
    TextValue | NumberValue | BooleanValue | NullValue,
    Field(discriminator="kind"),
]


class SeedRecord(BaseModel):
    """One row inserted into a table right after the table is created.

    Example:
        >>> rec = SeedRecord()
        >>> rec.add_text("name", "admin")
        >>> rec.add_boolean("active", True)
        >>> rec.parameters()
        {'name': 'admin', 'active': True}
    """

    values: dict[str, SeedValue] = Field(default_factory=dict)

    def add_value(self, column: str, value: SeedValue) -> None:
        """Assign a value to a column; each column may be assigned once."""
        if column in self.values:
            raise DuplicateDefinitionError("Seed value", column, "seed record")
        self.values[column] = value

    def add_text(self, column: str, value: str) -> None:
        self.add_value(column, TextValue(value=value))

    def add_number(self, column: str, value: int | float) -> None:
        self.add_value(column, NumberValue(value=value))

    def add_boolean(self, column: str, value: bool) -> None:
        self.add_value(column, BooleanValue(value=value))

    def add_null(self, column: str) -> None:
        self.add_value(column, NullValue())

    def parameters(self) -> dict[str, object]:
        """Column name to plain Python value, in insertion order."""
        return {column: value.python_value for column, value in self.values.items()}

    def summary(self) -> str:
        """Short description showing at most two column/value pairs."""
        if not self.values:
            return "SeedRecord: No Data"

        pairs = [
            f"{column}={value.to_text()}"
            for column, value in list(self.values.items())[:2]
        ]
        text = "SeedRecord: " + ",".join(pairs)
        if len(self.values) > 2:
            text += f", {len(self.values) - 2} other..."
        return text


class SeedRecords(BaseModel):
    """Seed records grouped by table name.

    Supplied by the caller when generating a descriptor from a live
    database, since the catalog has no notion of seed data.

    Example:
        >>> seeds = SeedRecords()
        >>> seeds.add_record("roles").add_text("name", "admin")
        >>> len(seeds.for_table("roles"))
        1
    """

    tables: dict[str, list[SeedRecord]] = Field(default_factory=dict)

    def add_record(self, table: str) -> SeedRecord:
        record = SeedRecord()
        self.tables.setdefault(table, []).append(record)
        return record

    def for_table(self, table: str) -> list[SeedRecord]:
        return self.tables.get(table, [])


# ============================================================================
# Structure Models
# ============================================================================


class Column(BaseModel):
    """Schema for a table column.

    Example:
        >>> col = Column(name="id", data_type="int identity", options="NOT NULL")
        >>> col.is_identity
        True
    """

    name: str
    data_type: str
    options: str = ""

    @property
    def is_identity(self) -> bool:
        return self.data_type.lower().endswith(IDENTITY_MARKER)


class PrimaryKey(BaseModel):
    """Primary key: optional constraint name and ordered key columns."""

    name: str | None = None
    columns: list[str] = Field(default_factory=list)

    def add_column(self, column: str) -> None:
        if column in self.columns:
            raise DuplicateDefinitionError(
                "Primary key column", column, f"primary key '{self.name}'"
            )
        self.columns.append(column)


class Index(BaseModel):
    """Non-primary index. ``columns`` maps column name to descending flag."""

    name: str
    clustered: bool = False
    unique: bool = False
    columns: dict[str, bool] = Field(default_factory=dict)

    def add_column(self, column: str, descending: bool = False) -> None:
        if column in self.columns:
            raise DuplicateDefinitionError(
                "Index column", column, f"index '{self.name}'"
            )
        self.columns[column] = descending


class ForeignKey(BaseModel):
    """Single-column foreign key."""

    name: str
    column: str
    referenced_table: str
    referenced_column: str


class Table(BaseModel):
    """Schema for a database table."""

    name: str = Field(frozen=True)
    columns: list[Column] = Field(default_factory=list)
    primary_key: PrimaryKey | None = None
    indexes: list[Index] = Field(default_factory=list)
    foreign_keys: list[ForeignKey] = Field(default_factory=list)
    seed_records: list[SeedRecord] = Field(default_factory=list)

    def _owner(self) -> str:
        return f"table '{self.name}'"

    def add_column(self, name: str, data_type: str, options: str = "") -> Column:
        if self.find_column(name) is not None:
            raise DuplicateDefinitionError("Column", name, self._owner())
        column = Column(name=name, data_type=data_type, options=options)
        self.columns.append(column)
        return column

    def set_primary_key(
        self, name: str | None, columns: list[str] | tuple[str, ...] = ()
    ) -> PrimaryKey:
        if self.primary_key is not None:
            raise DuplicateDefinitionError("Primary key", name or "", self._owner())
        key = PrimaryKey(name=name)
        for column in columns:
            key.add_column(column)
        self.primary_key = key
        return key

    def add_index(self, name: str, clustered: bool = False, unique: bool = False) -> Index:
        if self.find_index(name) is not None:
            raise DuplicateDefinitionError("Index", name, self._owner())
        index = Index(name=name, clustered=clustered, unique=unique)
        self.indexes.append(index)
        return index

    def add_foreign_key(
        self,
        name: str,
        column: str,
        referenced_table: str,
        referenced_column: str,
    ) -> ForeignKey:
        if self.find_foreign_key(name) is not None:
            raise DuplicateDefinitionError("Foreign key", name, self._owner())
        foreign_key = ForeignKey(
            name=name,
            column=column,
            referenced_table=referenced_table,
            referenced_column=referenced_column,
        )
        self.foreign_keys.append(foreign_key)
        return foreign_key

    def add_seed_record(self) -> SeedRecord:
        record = SeedRecord()
        self.seed_records.append(record)
        return record

    def find_column(self, name: str) -> Column | None:
        return next((c for c in self.columns if c.name == name), None)

    def find_index(self, name: str) -> Index | None:
        return next((i for i in self.indexes if i.name == name), None)

    def find_foreign_key(self, name: str) -> ForeignKey | None:
        return next((f for f in self.foreign_keys if f.name == name), None)


class Schema(BaseModel):
    """Complete database schema: table name to table.

    Example:
        >>> schema = Schema()
        >>> users = schema.add_table("Users")
        >>> _ = users.add_column("Id", "int identity", "NOT NULL")
        >>> schema.table_names
        ['Users']
    """

    tables: dict[str, Table] = Field(default_factory=dict)

    def add_table(self, name: str) -> Table:
        if name in self.tables:
            raise DuplicateDefinitionError("Table", name, "the schema")
        table = Table(name=name)
        self.tables[name] = table
        return table

    def get_table(self, name: str) -> Table | None:
        return self.tables.get(name)

    @property
    def table_names(self) -> list[str]:
        return list(self.tables.keys())


# ============================================================================
# Comparison Result Models
# ============================================================================


class TableDiff(BaseModel):
    """Elements a live table lacks, compared by name only."""

    table: str
    missing_columns: list[str] = Field(default_factory=list)
    missing_indexes: list[str] = Field(default_factory=list)
    missing_foreign_keys: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.missing_columns or self.missing_indexes or self.missing_foreign_keys
        )


class SchemaDiff(BaseModel):
    """Result of comparing a desired schema against a live one.

    Example:
        >>> diff = SchemaDiff()
        >>> diff.valid
        True
        >>> diff.format_report()
        'Schema valid'
    """

    missing_tables: list[str] = Field(default_factory=list)
    tables: list[TableDiff] = Field(default_factory=list)
    extra_tables: list[str] = Field(default_factory=list)  # Warning only
    indexes_checked: bool = True

    @property
    def valid(self) -> bool:
        return not self.missing_tables and all(t.is_empty for t in self.tables)

    @property
    def error_count(self) -> int:
        """Count of missing tables, columns, indexes and foreign keys."""
        return len(self.missing_tables) + sum(
            len(t.missing_columns) + len(t.missing_indexes) + len(t.missing_foreign_keys)
            for t in self.tables
        )

    def format_report(self) -> str:
        """Format comparison result as human-readable report."""
        if self.valid:
            return "Schema valid"

        lines = ["Schema differs from descriptor:"]

        if self.missing_tables:
            lines.append(f"\n  Missing tables ({len(self.missing_tables)}):")
            for table in self.missing_tables:
                lines.append(f"    - {table}")

        for diff in self.tables:
            if diff.is_empty:
                continue
            lines.append(f"\n  Table {diff.table}:")
            for column in diff.missing_columns:
                lines.append(f"    - column {column}")
            for index in diff.missing_indexes:
                lines.append(f"    - index {index}")
            for foreign_key in diff.missing_foreign_keys:
                lines.append(f"    - foreign key {foreign_key}")

        if self.extra_tables:
            lines.append(f"\n  Extra tables (warning): {', '.join(self.extra_tables)}")

        if not self.indexes_checked:
            lines.append("\n  Indexes not checked (server lacks index catalogs)")

        return "\n".join(lines)


# ============================================================================
# Operation Result Models
# ============================================================================


class ActionKind(str, Enum):
    """Kinds of corrective action a reconciliation pass can take."""

    CREATE_TABLE = "CreateTable"
    ADD_COLUMN = "AddColumn"
    ADD_INDEX = "AddIndex"
    ADD_FOREIGN_KEY = "AddForeignKey"


class ActionStatus(str, Enum):
    """Outcome of one corrective action."""

    PLANNED = "planned"
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"


class ActionOutcome(BaseModel):
    """Record of one corrective action and the statements it issued."""

    kind: ActionKind
    table: str
    name: str
    phase: int
    status: ActionStatus = ActionStatus.PLANNED
    statements: list[str] = Field(default_factory=list)
    error: str | None = None


class ReconcileResult(BaseModel):
    """Result of one reconciliation pass.

    Attributes:
        dry_run: True if statements were only logged, never executed.
        actions: Every action considered, in execution order.
        created_tables: Names of tables created in phase 1.
        failures: Errors raised while applying actions (or recapturing).
        log: Ordered activity log for this call.
    """

    dry_run: bool = False
    actions: list[ActionOutcome] = Field(default_factory=list)
    created_tables: list[str] = Field(default_factory=list)
    failures: list[DBSchemaError] = Field(default_factory=list)
    log: list[LogEntry] = Field(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def applied_count(self) -> int:
        return sum(1 for a in self.actions if a.status == ActionStatus.APPLIED)

    @property
    def action_count(self) -> int:
        """Actions emitted by the pass, excluding ones skipped after a failure."""
        return sum(1 for a in self.actions if a.status != ActionStatus.SKIPPED)

    def count(self, kind: ActionKind) -> int:
        return sum(
            1
            for a in self.actions
            if a.kind == kind and a.status in (ActionStatus.APPLIED, ActionStatus.PLANNED)
        )

    def raise_for_failures(self) -> None:
        """Raise the first recorded failure, if any."""
        if self.failures:
            raise self.failures[0]

    def format_report(self) -> str:
        """Format the pass as a human-readable summary."""
        if not self.actions and self.success:
            return "Schema up to date"

        verb = "Planned" if self.dry_run else "Applied"
        lines = [f"{verb} {self.action_count} action(s):"]
        for action in self.actions:
            target = action.table
            if action.kind != ActionKind.CREATE_TABLE:
                target = f"{action.table}.{action.name}"
            lines.append(f"  [{action.status.value}] {action.kind.value} {target}")
        if self.failures:
            lines.append(f"\n  Failures ({len(self.failures)}):")
            for failure in self.failures:
                lines.append(f"    - {failure}")
        return "\n".join(lines)


class DescriptorResult(BaseModel):
    """Result of writing a descriptor from the live database."""

    tables_written: int = 0
    seed_records_written: int = 0
    log: list[LogEntry] = Field(default_factory=list)
