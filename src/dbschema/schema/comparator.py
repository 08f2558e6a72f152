"""Schema comparison by element name.

Compares a desired ``Schema`` against a live one. Elements are matched by
name only -- a column, index or foreign key whose definition changed under
an unchanged name is not reported. Pure logic -- no I/O, no database
connections.

Usage:
    from dbschema.schema.comparator import compare_schemas
    from dbschema.schema.descriptor import read_descriptor
    from dbschema.schema.introspector import SchemaIntrospector

    desired = read_descriptor("schema.xml")
    live = SchemaIntrospector(client).capture()

    diff = compare_schemas(desired, live)
    if not diff.valid:
        print(diff.format_report())
"""

from dbschema.schema.models import (
    Column,
    ForeignKey,
    Index,
    Schema,
    SchemaDiff,
    Table,
    TableDiff,
)


def missing_tables(desired: Schema, live: Schema) -> list[Table]:
    """Desired tables absent from the live schema, in desired order."""
    return [t for name, t in desired.tables.items() if name not in live.tables]


def missing_columns(desired: Table, live: Table) -> list[Column]:
    return [c for c in desired.columns if live.find_column(c.name) is None]


def missing_indexes(desired: Table, live: Table) -> list[Index]:
    return [i for i in desired.indexes if live.find_index(i.name) is None]


def missing_foreign_keys(desired: Table, live: Table) -> list[ForeignKey]:
    return [f for f in desired.foreign_keys if live.find_foreign_key(f.name) is None]


def common_tables(desired: Schema, live: Schema) -> list[tuple[Table, Table]]:
    """Pairs of (desired, live) tables present in both, in desired order."""
    return [
        (table, live.tables[name])
        for name, table in desired.tables.items()
        if name in live.tables
    ]


def compare_schemas(
    desired: Schema,
    live: Schema,
    check_indexes: bool = True,
) -> SchemaDiff:
    """Compare a desired schema against a live schema.

    Finds:
    - Missing tables: in *desired* but not in *live*
    - Missing columns, indexes and foreign keys of tables present in both
    - Extra tables: in *live* but not in *desired* (warning only -- does
      not affect ``valid``)

    Args:
        desired: Schema read from the descriptor.
        live: Schema captured from the database.
        check_indexes: False when the live schema could not report indexes;
            index differences are then left out.

    Returns:
        ``SchemaDiff`` describing what the live database lacks.

    Examples:
        >>> desired = Schema()
        >>> _ = desired.add_table("Users").add_column("Id", "int")
        >>> compare_schemas(desired, Schema()).missing_tables
        ['Users']
    """
    diff = SchemaDiff(
        missing_tables=[t.name for t in missing_tables(desired, live)],
        extra_tables=[name for name in live.tables if name not in desired.tables],
        indexes_checked=check_indexes,
    )

    for desired_table, live_table in common_tables(desired, live):
        diff.tables.append(
            TableDiff(
                table=desired_table.name,
                missing_columns=[c.name for c in missing_columns(desired_table, live_table)],
                missing_indexes=(
                    [i.name for i in missing_indexes(desired_table, live_table)]
                    if check_indexes
                    else []
                ),
                missing_foreign_keys=[
                    f.name for f in missing_foreign_keys(desired_table, live_table)
                ],
            )
        )

    return diff
