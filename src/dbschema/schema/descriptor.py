"""XML schema descriptor: read, write and snapshot.

The descriptor is the persisted, portable form of a ``Schema``::

    <tables>
      <table name="Users">
        <column name="Id" datatype="int identity" options="NOT NULL" />
        <primary_key name="PK_Users">
          <column name="Id" />
        </primary_key>
        <index name="IX_Name" clustered="False" unique="False">
          <column name="Name" desc="False" />
        </index>
        <foreign_key name="FK_Users_Roles" column="RoleId"
                     pk_table="Roles" pk_column="Id" />
        <default_record>
          <columnValue column="Name" type="text"><![CDATA[admin]]></columnValue>
        </default_record>
      </table>
    </tables>

Element names, attribute names and the child order column, primary_key,
index, foreign_key, default_record are the file format contract.

Usage:
    from dbschema.schema.descriptor import read_descriptor, write_descriptor

    schema = read_descriptor("schema.xml")
    write_descriptor(schema, "copy.xml")
"""

import io
import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import Path
from typing import IO, TYPE_CHECKING
from xml.dom import minidom

from dbschema.exceptions import ParseError
from dbschema.schema.activity import ActivityLog
from dbschema.schema.introspector import SchemaIntrospector
from dbschema.schema.models import (
    BooleanValue,
    DescriptorResult,
    NullValue,
    NumberValue,
    Schema,
    SeedRecord,
    SeedRecords,
    SeedValue,
    Table,
    TextValue,
)

if TYPE_CHECKING:
    from dbschema.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

ROOT = "tables"
TABLE = "table"
COLUMN = "column"
PRIMARY_KEY = "primary_key"
INDEX = "index"
FOREIGN_KEY = "foreign_key"
DEFAULT_RECORD = "default_record"
COLUMN_VALUE = "columnValue"

# Required position of each table child; unknown elements have none
CHILD_ORDER = {
    COLUMN: 0,
    PRIMARY_KEY: 1,
    INDEX: 2,
    FOREIGN_KEY: 3,
    DEFAULT_RECORD: 4,
}

CDATA_END = "]]>"

Target = str | Path | IO[bytes]
Source = str | Path | IO[bytes] | IO[str]


# ------------------------------------------------------------------
# Writing
# ------------------------------------------------------------------


def _bool_text(value: bool) -> str:
    return "True" if value else "False"


def _append(
    doc: minidom.Document, parent: minidom.Element, tag: str, **attrs: str
) -> minidom.Element:
    element = doc.createElement(tag)
    for key, value in attrs.items():
        element.setAttribute(key, value)
    parent.appendChild(element)
    return element


def _append_value(
    doc: minidom.Document, parent: minidom.Element, column: str, value: SeedValue
) -> None:
    element = _append(doc, parent, COLUMN_VALUE, column=column, type=value.kind)
    if isinstance(value, NullValue):
        return
    text = value.to_text()
    if isinstance(value, TextValue) and CDATA_END not in text:
        element.appendChild(doc.createCDATASection(text))
    else:
        element.appendChild(doc.createTextNode(text))


def _append_table(
    doc: minidom.Document,
    root: minidom.Element,
    table: Table,
    records: list[SeedRecord],
) -> None:
    element = _append(doc, root, TABLE, name=table.name)

    for column in table.columns:
        _append(
            doc,
            element,
            COLUMN,
            name=column.name,
            datatype=column.data_type,
            options=column.options,
        )

    key = table.primary_key
    if key is not None and key.columns:
        key_element = _append(doc, element, PRIMARY_KEY, name=key.name or "")
        for column_name in key.columns:
            _append(doc, key_element, COLUMN, name=column_name)

    for index in table.indexes:
        index_element = _append(
            doc,
            element,
            INDEX,
            name=index.name,
            clustered=_bool_text(index.clustered),
            unique=_bool_text(index.unique),
        )
        for column_name, descending in index.columns.items():
            _append(doc, index_element, COLUMN, name=column_name, desc=_bool_text(descending))

    for foreign_key in table.foreign_keys:
        _append(
            doc,
            element,
            FOREIGN_KEY,
            name=foreign_key.name,
            column=foreign_key.column,
            pk_table=foreign_key.referenced_table,
            pk_column=foreign_key.referenced_column,
        )

    for record in records:
        record_element = _append(doc, element, DEFAULT_RECORD)
        for column_name, value in record.values.items():
            _append_value(doc, record_element, column_name, value)


def _render(schema: Schema, seed_records: SeedRecords | None, log: ActivityLog) -> bytes:
    seeds = seed_records or SeedRecords()
    doc = minidom.Document()
    root = doc.createElement(ROOT)
    doc.appendChild(root)

    log.info(f"Found {len(schema.tables)} tables...")
    for table in schema.tables.values():
        log.info(f"Descriptor XML for table '{table.name}'...")
        records = seeds.for_table(table.name)
        if records:
            log.info(f"Saving {len(records)} seed records for table '{table.name}'...")
        _append_table(doc, root, table, records)

    for name in seeds.tables:
        if name not in schema.tables:
            log.warning(f"Seed records for unknown table '{name}' were not written")

    return doc.toprettyxml(indent="  ", encoding="utf-8")


def write_descriptor(
    schema: Schema,
    target: Target,
    seed_records: SeedRecords | None = None,
    log: ActivityLog | None = None,
) -> int:
    """Write *schema* as an XML descriptor.

    Args:
        schema: Schema to serialize. Its own ``seed_records`` are not
            written; seed rows come only from *seed_records*.
        target: File path or binary stream.
        seed_records: Optional seed rows, matched to tables by name.
        log: Activity log of the calling operation.

    Returns:
        Number of tables written.
    """
    log = log if log is not None else ActivityLog(logger)
    data = _render(schema, seed_records, log)

    if isinstance(target, (str, Path)):
        log.info(f"Creating descriptor file '{target}'...")
        Path(target).write_bytes(data)
    else:
        target.write(data)

    return len(schema.tables)


def dumps(schema: Schema, seed_records: SeedRecords | None = None) -> str:
    """Serialize *schema* to an XML string."""
    return _render(schema, seed_records, ActivityLog(logger)).decode("utf-8")


# ------------------------------------------------------------------
# Reading
# ------------------------------------------------------------------


def _required(element: ET.Element, attr: str) -> str:
    value = element.get(attr)
    if value is None:
        raise ParseError(
            f"<{element.tag}> is missing required attribute '{attr}'",
            details={"element": element.tag},
        )
    return value


def _parse_bool(element: ET.Element, attr: str) -> bool:
    raw = element.get(attr)
    if raw is None:
        return False
    value = raw.strip().lower()
    if value in ("true", "1"):
        return True
    if value in ("false", "0"):
        return False
    raise ParseError(
        f"<{element.tag} {attr}=\"{raw}\"> is not a boolean",
        details={"element": element.tag},
    )


def _parse_number(text: str, column: str) -> int | float:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        raise ParseError(
            f"Seed value for column '{column}' is not a number: '{text}'"
        ) from None


def _parse_value(element: ET.Element, column: str) -> SeedValue:
    kind = element.get("type", "text")
    text = element.text or ""
    if kind == "text":
        return TextValue(value=text)
    if kind == "number":
        return NumberValue(value=_parse_number(text.strip(), column))
    if kind == "boolean":
        flag = text.strip().lower()
        if flag not in ("true", "false", "1", "0"):
            raise ParseError(f"Seed value for column '{column}' is not a boolean: '{text}'")
        return BooleanValue(value=flag in ("true", "1"))
    if kind == "null":
        return NullValue()
    raise ParseError(f"Unknown seed value type '{kind}' for column '{column}'")


def _children(element: ET.Element, tag: str) -> Iterable[ET.Element]:
    return (child for child in element if child.tag == tag)


def _read_table(element: ET.Element, schema: Schema) -> None:
    table = schema.add_table(_required(element, "name"))
    position = 0

    for child in element:
        rank = CHILD_ORDER.get(child.tag)
        if rank is None:
            continue  # forward compatible
        if rank < position:
            raise ParseError(
                f"<{child.tag}> out of order in table '{table.name}'",
                details={"table": table.name},
            )
        position = rank

        if child.tag == COLUMN:
            table.add_column(
                _required(child, "name"),
                _required(child, "datatype"),
                child.get("options", ""),
            )
        elif child.tag == PRIMARY_KEY:
            columns = [_required(c, "name") for c in _children(child, COLUMN)]
            table.set_primary_key(child.get("name") or None, columns)
        elif child.tag == INDEX:
            index = table.add_index(
                _required(child, "name"),
                clustered=_parse_bool(child, "clustered"),
                unique=_parse_bool(child, "unique"),
            )
            for column in _children(child, COLUMN):
                index.add_column(_required(column, "name"), _parse_bool(column, "desc"))
        elif child.tag == FOREIGN_KEY:
            table.add_foreign_key(
                _required(child, "name"),
                _required(child, "column"),
                _required(child, "pk_table"),
                _required(child, "pk_column"),
            )
        else:
            record = table.add_seed_record()
            for value in _children(child, COLUMN_VALUE):
                column = _required(value, "column")
                record.add_value(column, _parse_value(value, column))


def _read_root(root: ET.Element) -> Schema:
    if root.tag != ROOT:
        raise ParseError(f"Expected <{ROOT}> root element, found <{root.tag}>")

    schema = Schema()
    for element in _children(root, TABLE):
        _read_table(element, schema)
    return schema


def read_descriptor(source: Source) -> Schema:
    """Read an XML descriptor into a ``Schema``.

    Args:
        source: File path or stream.

    Returns:
        Schema with tables, columns, keys, indexes, foreign keys and seed
        records.

    Raises:
        ParseError: If the document is malformed, elements are out of order,
            or a required attribute is missing.
        DuplicateDefinitionError: If a named element repeats.
        FileNotFoundError: If *source* is a path that does not exist.
    """
    try:
        tree = ET.parse(source)
    except ET.ParseError as e:
        raise ParseError(f"Malformed descriptor: {e}", cause=e) from e
    return _read_root(tree.getroot())


def loads(text: str) -> Schema:
    """Read a descriptor from an XML string."""
    return read_descriptor(io.BytesIO(text.encode("utf-8")))


# ------------------------------------------------------------------
# Snapshot
# ------------------------------------------------------------------


def generate_descriptor(
    client: "DatabaseClient",
    target: Target,
    seed_records: SeedRecords | None = None,
    owner: str = "dbo",
    excluded_tables: Iterable[str] | None = None,
) -> DescriptorResult:
    """Snapshot the live database schema into a descriptor.

    Args:
        client: Database adapter implementing ``DatabaseClient``.
        target: File path or binary stream.
        seed_records: Optional seed rows to embed per table.
        owner: Schema owner whose tables are captured.
        excluded_tables: System tables to skip (introspector default when
            omitted).

    Returns:
        ``DescriptorResult`` with counts and this call's activity log.

    Raises:
        ConnectivityError: If the live schema cannot be read.

    Example:
        seeds = SeedRecords()
        seeds.add_record("Roles").add_text("Name", "admin")
        result = generate_descriptor(adapter, "schema.xml", seeds)
    """
    log = ActivityLog(logger)
    introspector = SchemaIntrospector(
        client, owner=owner, excluded_tables=excluded_tables, log=log
    )
    schema = introspector.capture()

    seeds = seed_records or SeedRecords()
    tables_written = write_descriptor(schema, target, seeds, log=log)
    seed_count = sum(len(seeds.for_table(name)) for name in schema.tables)
    log.info(f"Descriptor generated with {tables_written} tables")

    return DescriptorResult(
        tables_written=tables_written,
        seed_records_written=seed_count,
        log=log.entries,
    )
