"""Tests for the XML descriptor codec and descriptor generation."""

import io
import textwrap
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from dbschema.exceptions import ConnectivityError, DuplicateDefinitionError, ParseError
from dbschema.schema.descriptor import (
    dumps,
    generate_descriptor,
    loads,
    read_descriptor,
    write_descriptor,
)
from dbschema.schema.models import (
    BooleanValue,
    NullValue,
    NumberValue,
    Schema,
    SeedRecords,
    TextValue,
)

from conftest import FakeClient, build_sample_schema


def _seeds_from_schema(schema: Schema) -> SeedRecords:
    seeds = SeedRecords()
    for table in schema.tables.values():
        seeds.tables[table.name] = list(table.seed_records)
    return seeds


class TestRoundTrip:
    """write_descriptor() followed by read_descriptor()."""

    def test_structure_round_trip(self, sample_schema: Schema) -> None:
        """Tables, columns, keys, indexes and foreign keys survive a round trip."""
        restored = loads(dumps(sample_schema, _seeds_from_schema(sample_schema)))
        assert restored == sample_schema

    def test_file_round_trip(self, sample_schema: Schema, tmp_path: Path) -> None:
        """A path target is written as UTF-8 XML and reads back equal."""
        target = tmp_path / "schema.xml"
        written = write_descriptor(sample_schema, target, _seeds_from_schema(sample_schema))
        assert written == 2
        assert target.read_bytes().startswith(b"<?xml")
        assert read_descriptor(target) == sample_schema

    def test_stream_target(self, sample_schema: Schema) -> None:
        """A binary stream target receives the document."""
        buffer = io.BytesIO()
        write_descriptor(sample_schema, buffer)
        buffer.seek(0)
        restored = read_descriptor(buffer)
        assert restored.table_names == ["Roles", "Users"]
        # seed rows come only from the seed_records argument
        assert restored.tables["Roles"].seed_records == []

    def test_typed_seed_values_round_trip(self) -> None:
        """Every seed value kind keeps its tag and value."""
        schema = Schema()
        schema.add_table("Settings").add_column("Key", "varchar(50)", "NOT NULL")
        seeds = SeedRecords()
        record = seeds.add_record("Settings")
        record.add_text("Key", "a <b> & ]]> c")
        record.add_number("Count", 42)
        record.add_number("Ratio", 0.5)
        record.add_boolean("Enabled", False)
        record.add_null("Notes")

        values = loads(dumps(schema, seeds)).tables["Settings"].seed_records[0].values
        assert values["Key"] == TextValue(value="a <b> & ]]> c")
        assert values["Count"] == NumberValue(value=42)
        assert values["Ratio"] == NumberValue(value=0.5)
        assert values["Enabled"] == BooleanValue(value=False)
        assert values["Notes"] == NullValue()

    def test_text_values_written_as_cdata(self) -> None:
        """Text seed values are written as literal blocks, others as text."""
        schema = Schema()
        schema.add_table("Roles").add_column("Name", "varchar(50)")
        seeds = SeedRecords()
        record = seeds.add_record("Roles")
        record.add_text("Name", "admin & co")
        record.add_boolean("Active", True)

        document = dumps(schema, seeds)
        assert "<![CDATA[admin & co]]>" in document
        assert '<columnValue column="Active" type="boolean">True</columnValue>' in document

    def test_text_whitespace_preserved(self) -> None:
        """Leading and trailing whitespace in text values is kept."""
        schema = Schema()
        schema.add_table("Roles").add_column("Name", "varchar(50)")
        seeds = SeedRecords()
        seeds.add_record("Roles").add_text("Name", "  padded  ")
        restored = loads(dumps(schema, seeds))
        assert restored.tables["Roles"].seed_records[0].parameters() == {"Name": "  padded  "}

    def test_child_order(self, sample_schema: Schema) -> None:
        """Table children are written as column, primary_key, index, foreign_key, default_record."""
        root = ET.fromstring(dumps(sample_schema, _seeds_from_schema(sample_schema)))
        roles = [child.tag for child in root.find("table[@name='Roles']")]
        assert roles == [
            "column",
            "column",
            "primary_key",
            "index",
            "default_record",
            "default_record",
        ]
        users = [child.tag for child in root.find("table[@name='Users']")]
        assert users.index("index") < users.index("foreign_key")

    def test_unknown_seed_table_not_written(self, sample_schema: Schema) -> None:
        """Seed rows for tables absent from the schema are dropped."""
        seeds = SeedRecords()
        seeds.add_record("Ghost").add_text("Name", "x")
        assert "Ghost" not in dumps(sample_schema, seeds)


class TestReadErrors:
    """Malformed descriptors raise ParseError or DuplicateDefinitionError."""

    def test_malformed_xml(self) -> None:
        with pytest.raises(ParseError, match="Malformed descriptor"):
            loads("<tables><table name='A'>")

    def test_wrong_root(self) -> None:
        with pytest.raises(ParseError, match="root element"):
            loads("<schema/>")

    def test_missing_required_attribute(self) -> None:
        """A column without a datatype is rejected."""
        with pytest.raises(ParseError, match="datatype"):
            loads('<tables><table name="A"><column name="Id"/></table></tables>')

    def test_out_of_order_children(self) -> None:
        """A column after an index violates the child order."""
        document = textwrap.dedent("""\
            <tables>
              <table name="A">
                <column name="Id" datatype="int"/>
                <index name="IX_A"><column name="Id"/></index>
                <column name="Name" datatype="varchar(10)"/>
              </table>
            </tables>
        """)
        with pytest.raises(ParseError, match="out of order"):
            loads(document)

    def test_unknown_elements_ignored(self) -> None:
        """Elements outside the format are skipped."""
        document = textwrap.dedent("""\
            <tables>
              <table name="A">
                <column name="Id" datatype="int"/>
                <comment>ignored</comment>
              </table>
            </tables>
        """)
        assert [c.name for c in loads(document).tables["A"].columns] == ["Id"]

    def test_duplicate_table(self) -> None:
        with pytest.raises(DuplicateDefinitionError):
            loads('<tables><table name="A"/><table name="A"/></tables>')

    def test_duplicate_column(self) -> None:
        document = (
            '<tables><table name="A">'
            '<column name="Id" datatype="int"/><column name="Id" datatype="int"/>'
            "</table></tables>"
        )
        with pytest.raises(DuplicateDefinitionError):
            loads(document)

    def test_bad_boolean_attribute(self) -> None:
        document = (
            '<tables><table name="A"><column name="Id" datatype="int"/>'
            '<index name="IX" unique="maybe"><column name="Id"/></index>'
            "</table></tables>"
        )
        with pytest.raises(ParseError, match="not a boolean"):
            loads(document)

    def test_unknown_seed_type(self) -> None:
        document = (
            '<tables><table name="A"><column name="Id" datatype="int"/>'
            '<default_record><columnValue column="Id" type="date">x</columnValue>'
            "</default_record></table></tables>"
        )
        with pytest.raises(ParseError, match="Unknown seed value type"):
            loads(document)

    def test_bad_number(self) -> None:
        document = (
            '<tables><table name="A"><column name="Id" datatype="int"/>'
            '<default_record><columnValue column="Id" type="number">abc</columnValue>'
            "</default_record></table></tables>"
        )
        with pytest.raises(ParseError, match="not a number"):
            loads(document)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            read_descriptor(tmp_path / "missing.xml")


class TestReadDefaults:
    """Lenient defaults when optional attributes are absent."""

    def test_optional_attributes(self) -> None:
        """Missing options, flags and value type fall back to defaults."""
        document = textwrap.dedent("""\
            <tables>
              <table name="A">
                <column name="Id" datatype="int"/>
                <primary_key name="">
                  <column name="Id"/>
                </primary_key>
                <index name="IX_A">
                  <column name="Id"/>
                </index>
                <default_record>
                  <columnValue column="Id">7</columnValue>
                </default_record>
              </table>
            </tables>
        """)
        table = loads(document).tables["A"]
        assert table.columns[0].options == ""
        assert table.primary_key.name is None
        assert table.primary_key.columns == ["Id"]
        index = table.indexes[0]
        assert (index.clustered, index.unique, index.columns) == (False, False, {"Id": False})
        assert table.seed_records[0].values["Id"] == TextValue(value="7")


class TestGenerateDescriptor:
    """generate_descriptor() snapshots a live database."""

    def test_snapshot_with_seeds(self, tmp_path: Path) -> None:
        """The live schema plus supplied seed rows is written to the target."""
        live = build_sample_schema(with_seeds=False)
        client = FakeClient(live)
        seeds = SeedRecords()
        seeds.add_record("Roles").add_text("Name", "admin")

        target = tmp_path / "schema.xml"
        result = generate_descriptor(client, target, seeds)

        assert result.tables_written == 2
        assert result.seed_records_written == 1
        restored = read_descriptor(target)
        assert restored.table_names == ["Roles", "Users"]
        assert restored.tables["Users"].foreign_keys[0].referenced_table == "Roles"
        assert restored.tables["Roles"].seed_records[0].parameters() == {"Name": "admin"}
        assert any("Found 2 tables" in entry.message for entry in result.log)

    def test_snapshot_skips_system_tables(self, tmp_path: Path) -> None:
        """Excluded system tables never reach the descriptor."""
        live = build_sample_schema(with_seeds=False)
        live.add_table("sysdiagrams").add_column("name", "sysname")
        result = generate_descriptor(FakeClient(live), tmp_path / "schema.xml")
        assert result.tables_written == 2

    def test_snapshot_connectivity_error(self, tmp_path: Path) -> None:
        """A failing catalog query raises ConnectivityError and writes nothing."""
        client = FakeClient(build_sample_schema(with_seeds=False))
        client.fail("sp_pkeys")
        target = tmp_path / "schema.xml"
        with pytest.raises(ConnectivityError) as exc_info:
            generate_descriptor(client, target)
        assert exc_info.value.step == "primary keys"
        assert exc_info.value.table == "Roles"
        assert not target.exists()
