"""dbschema: Declarative schema reconciliation for SQL Server.

Keeps a portable XML descriptor of a database schema (tables, columns,
primary keys, indexes, foreign keys, seed rows), snapshots live databases
into it, and applies the additive changes that make a live database
conform to it.

Usage:
    from dbschema import get_adapter, reconcile, generate_descriptor
    from dbschema import read_descriptor, compare_schemas, SchemaIntrospector
    from dbschema import Schema, SeedRecords, DatabaseConfig
"""

__version__ = "0.1.0"

# Adapters
from dbschema.adapters.base import DatabaseClient
from dbschema.adapters.sqlserver import SqlServerAdapter

# Config
from dbschema.config.loader import load_db_config
from dbschema.config.models import DatabaseConfig, DatabaseProfile

# Errors
from dbschema.exceptions import (
    ConnectivityError,
    DBSchemaError,
    DuplicateDefinitionError,
    ParseError,
    StatementError,
    StructuralChangeError,
)

# Factory
from dbschema.factory import ProfileNotFoundError, get_adapter, resolve_url

# Schema
from dbschema.schema.comparator import compare_schemas
from dbschema.schema.descriptor import (
    generate_descriptor,
    read_descriptor,
    write_descriptor,
)
from dbschema.schema.introspector import SchemaIntrospector
from dbschema.schema.models import (
    DescriptorResult,
    ReconcileResult,
    Schema,
    SchemaDiff,
    SeedRecord,
    SeedRecords,
    Table,
)
from dbschema.schema.reconciler import reconcile, reconcile_schema

__all__ = [
    # Adapters
    "DatabaseClient",
    "SqlServerAdapter",
    # Config
    "load_db_config",
    "DatabaseConfig",
    "DatabaseProfile",
    # Errors
    "DBSchemaError",
    "ParseError",
    "DuplicateDefinitionError",
    "StatementError",
    "ConnectivityError",
    "StructuralChangeError",
    # Factory
    "get_adapter",
    "ProfileNotFoundError",
    "resolve_url",
    # Schema
    "compare_schemas",
    "generate_descriptor",
    "read_descriptor",
    "write_descriptor",
    "SchemaIntrospector",
    "DescriptorResult",
    "ReconcileResult",
    "Schema",
    "SchemaDiff",
    "SeedRecord",
    "SeedRecords",
    "Table",
    "reconcile",
    "reconcile_schema",
]
