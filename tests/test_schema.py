#!/usr/bin/env python
"""Tests for the schema model: column types, tables, schemas and discovery."""

import uuid
from datetime import datetime

import pyarrow as pa
import pytest

from polyquery import Column, ColumnType, PlanError, Schema, Table
from polyquery.schema import columns_from_arrow_schema, discover_table_from_records


class TestColumnType:
    """Mapping of the semantic type set onto Python and arrow types."""

    def test_number_and_time_classification(self):
        assert ColumnType.INTEGER.is_number
        assert ColumnType.FLOAT.is_number
        assert not ColumnType.STRING.is_number
        assert ColumnType.TIMESTAMP.is_time_based
        assert not ColumnType.BIGINT.is_time_based

    def test_valid_values(self):
        assert ColumnType.STRING.is_valid_value(None)
        assert ColumnType.INTEGER.is_valid_value(3)
        assert not ColumnType.INTEGER.is_valid_value(True)
        assert ColumnType.BOOLEAN.is_valid_value(True)
        assert ColumnType.FLOAT.is_valid_value(3)
        assert ColumnType.UUID.is_valid_value(uuid.uuid4())
        assert not ColumnType.UUID.is_valid_value("not a uuid object")

    @pytest.mark.parametrize(
        "arrow_type, expected",
        [
            (pa.int8(), ColumnType.INTEGER),
            (pa.int32(), ColumnType.INTEGER),
            (pa.int64(), ColumnType.BIGINT),
            (pa.float32(), ColumnType.FLOAT),
            (pa.bool_(), ColumnType.BOOLEAN),
            (pa.timestamp("ms"), ColumnType.TIMESTAMP),
            (pa.date32(), ColumnType.TIMESTAMP),
            (pa.string(), ColumnType.STRING),
            (pa.large_string(), ColumnType.STRING),
            (pa.binary(), ColumnType.BINARY),
        ],
    )
    def test_from_arrow(self, arrow_type, expected):
        assert ColumnType.from_arrow(arrow_type) is expected

    def test_field_metadata_preserves_uuid(self):
        field = ColumnType.UUID.to_arrow_field("id")
        assert field.type == pa.large_string()
        assert ColumnType.from_arrow(field.type) is ColumnType.STRING
        assert ColumnType.from_arrow_field(field) is ColumnType.UUID

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("uuid", ColumnType.UUID),
            ("TEXT", ColumnType.STRING),
            ("long", ColumnType.BIGINT),
            ("counter", ColumnType.BIGINT),
            ("date", ColumnType.TIMESTAMP),
            ("double", ColumnType.FLOAT),
            (" boolean ", ColumnType.BOOLEAN),
        ],
    )
    def test_from_native_name(self, name, expected):
        assert ColumnType.from_native_name(name) is expected

    def test_from_unknown_native_name(self):
        with pytest.raises(ValueError, match="Unknown native type"):
            ColumnType.from_native_name("geo_point")

    def test_infer(self):
        assert ColumnType.infer([1, 2, None]) == (ColumnType.INTEGER, True)
        assert ColumnType.infer([1, 2**40]) == (ColumnType.BIGINT, False)
        assert ColumnType.infer([1, 2.5]) == (ColumnType.FLOAT, False)
        assert ColumnType.infer([1, "a"]) == (ColumnType.STRING, False)
        assert ColumnType.infer([True, False]) == (ColumnType.BOOLEAN, False)
        assert ColumnType.infer([datetime(2020, 1, 1)]) == (ColumnType.TIMESTAMP, False)
        assert ColumnType.infer([]) == (ColumnType.STRING, True)


class TestTableAndSchema:
    def test_columns_are_bound_to_table(self):
        table = Table("songs", [Column("id", ColumnType.UUID, primary_key=True)])
        column = table.get_column_by_name("id")
        assert column.table_name == "songs"
        assert column.qualified_name == "songs.id"
        assert table.primary_key_columns == (column,)

    def test_duplicate_columns_rejected(self):
        with pytest.raises(ValueError, match="Duplicate column"):
            Table("t", [Column("a", ColumnType.STRING), Column("a", ColumnType.INTEGER)])

    def test_unknown_column_is_plan_error(self):
        table = Table("songs", [Column("id", ColumnType.UUID)])
        with pytest.raises(PlanError, match="No such column 'nope'"):
            table.get_column_by_name("nope")

    def test_schema_lookup(self):
        schema = Schema.from_tables("music", [Table("songs", [Column("id", ColumnType.UUID)])])
        assert schema.table_names == ("songs",)
        assert schema.get_table_by_name("songs").schema_name == "music"
        with pytest.raises(PlanError, match="No such table"):
            schema.get_table_by_name("albums")

    def test_add_and_remove_table(self):
        schema = Schema("music")
        schema.add_table(Table("songs", [Column("id", ColumnType.UUID)]))
        with pytest.raises(ValueError, match="already exists"):
            schema.add_table(Table("songs", [Column("id", ColumnType.UUID)]))
        schema.remove_table("songs")
        assert not schema.has_table("songs")
        assert len(schema) == 0

    def test_arrow_schema_round_trip(self):
        table = Table(
            "songs",
            [
                Column("id", ColumnType.UUID, nullable=False, primary_key=True),
                Column("plays", ColumnType.BIGINT),
            ],
        )
        columns = columns_from_arrow_schema(table.to_arrow_schema(), primary_keys=["id"])
        assert Table("songs", columns).columns == table.columns


class TestDiscovery:
    def test_union_of_properties_in_first_seen_order(self):
        table = discover_table_from_records(
            "people",
            [
                {"name": "Ann", "age": 31},
                {"name": "Bob", "email": "bob@example.com"},
            ],
        )
        assert table is not None
        assert table.column_names == ("name", "age", "email")
        assert table.get_column_by_name("age").column_type is ColumnType.INTEGER
        assert table.get_column_by_name("age").nullable
        assert table.get_column_by_name("email").nullable
        assert not table.get_column_by_name("name").nullable

    def test_no_records_no_table(self):
        assert discover_table_from_records("empty", []) is None

    def test_primary_keys(self):
        table = discover_table_from_records("people", [{"_id": "a1", "x": 1}], primary_keys=["_id"])
        assert table is not None
        assert [c.name for c in table.primary_key_columns] == ["_id"]
