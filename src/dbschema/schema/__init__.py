"""Schema description, introspection and reconciliation.

Provides the schema model, the XML descriptor codec
(``read_descriptor``, ``write_descriptor``, ``generate_descriptor``),
live database introspection (``SchemaIntrospector``), name-only
comparison (``compare_schemas``) and the additive reconciliation pass
(``reconcile``, ``reconcile_schema``).

Usage:
    from dbschema.schema import read_descriptor, reconcile, compare_schemas
    from dbschema.schema import Schema, SeedRecords, SchemaIntrospector
"""

from dbschema.schema.activity import ActivityLog, LogEntry
from dbschema.schema.comparator import compare_schemas
from dbschema.schema.ddl import (
    AddColumn,
    AddForeignKey,
    AddIndex,
    CreateTable,
    DDLEmitter,
    Statement,
)
from dbschema.schema.descriptor import (
    dumps,
    generate_descriptor,
    loads,
    read_descriptor,
    write_descriptor,
)
from dbschema.schema.introspector import SchemaIntrospector
from dbschema.schema.models import (
    ActionKind,
    ActionOutcome,
    ActionStatus,
    BooleanValue,
    Column,
    DescriptorResult,
    ForeignKey,
    Index,
    NullValue,
    NumberValue,
    PrimaryKey,
    ReconcileResult,
    Schema,
    SchemaDiff,
    SeedRecord,
    SeedRecords,
    Table,
    TableDiff,
    TextValue,
)
from dbschema.schema.reconciler import reconcile, reconcile_schema

__all__ = [
    "ActivityLog",
    "LogEntry",
    "compare_schemas",
    "AddColumn",
    "AddForeignKey",
    "AddIndex",
    "CreateTable",
    "DDLEmitter",
    "Statement",
    "dumps",
    "generate_descriptor",
    "loads",
    "read_descriptor",
    "write_descriptor",
    "SchemaIntrospector",
    "ActionKind",
    "ActionOutcome",
    "ActionStatus",
    "BooleanValue",
    "Column",
    "DescriptorResult",
    "ForeignKey",
    "Index",
    "NullValue",
    "NumberValue",
    "PrimaryKey",
    "ReconcileResult",
    "Schema",
    "SchemaDiff",
    "SeedRecord",
    "SeedRecords",
    "Table",
    "TableDiff",
    "TextValue",
    "reconcile",
    "reconcile_schema",
]
