#!/usr/bin/env python
"""Tests for the reference backends."""

import polars as pl
import pytest

from polyquery import ColumnType, DataContext, UnsupportedOperationError
from polyquery.backends import ArrowTableBackend, RecordListCursor, polars_predicate
from polyquery.query import FilterItem, OperatorType


class TestArrowTableBackend:
    def test_record_list_cursor(self):
        cursor = RecordListCursor([{"x": 1}, {"x": 2}])
        assert cursor.advance()
        assert cursor.current_raw_record() == {"x": 1}
        cursor.release_native()
        assert not cursor.advance()

    def test_polars_predicate_null_semantics(self, songs_schema):
        position = songs_schema.get_table_by_name("songs").get_column_by_name("position")
        df = pl.DataFrame({"position": [1, None, 3]})
        not_one = df.filter(polars_predicate(FilterItem(position, OperatorType.DIFFERENT_FROM, 1)))
        assert not_one["position"].to_list() == [3]
        missing = df.filter(polars_predicate(FilterItem(position, OperatorType.EQUALS_TO, None)))
        assert missing.height == 1

    def test_discovery(self, full_backend):
        schema = full_backend.discover_schema()
        songs = schema.get_table_by_name("songs")
        assert [c.column_type for c in songs.columns] == [
            ColumnType.UUID,
            ColumnType.STRING,
            ColumnType.BOOLEAN,
            ColumnType.FLOAT,
            ColumnType.INTEGER,
            ColumnType.TIMESTAMP,
        ]
        assert [c.name for c in songs.primary_key_columns] == ["id"]


@pytest.fixture
def delta_context(tmp_path) -> DataContext:
    pytest.importorskip("deltalake")
    from polyquery.backends.delta_table_backend import DeltaTableBackend

    context = DataContext(DeltaTableBackend(tmp_path / "lake"))

    def create_bands(callback):
        callback.create_table("bands") \
            .with_column("key", ColumnType.STRING, primary_key=True) \
            .with_column("name", ColumnType.STRING) \
            .with_column("members", ColumnType.INTEGER) \
            .with_column("rating", ColumnType.FLOAT) \
            .with_column("active", ColumnType.BOOLEAN) \
            .execute()
        for key, name, members, rating, active in [
            ("a", "Alpha", 1, 1.5, True),
            ("b", "Bravo", None, 2.0, False),
            ("c", "Charlie", 3, None, True),
        ]:
            callback.insert_into("bands") \
                .value("key", key).value("name", name).value("members", members) \
                .value("rating", rating).value("active", active) \
                .execute()

    context.execute_update(create_bands)
    return context


class TestDeltaTableBackend:
    def test_rediscovered_schema(self, delta_context):
        from polyquery.backends.delta_table_backend import DeltaTableBackend

        backend = DeltaTableBackend(delta_context.backend.base_path)
        assert backend.list_tables() == ["bands"]
        table = backend.discover_schema().get_table_by_name("bands")
        assert table.column_names == ("key", "name", "members", "rating", "active")
        assert table.get_column_by_name("members").column_type is ColumnType.INTEGER
        assert table.get_column_by_name("rating").column_type is ColumnType.FLOAT

    def test_filters_and_residual_ordering(self, delta_context):
        query = (
            delta_context.query().from_table("bands").select("name")
            .where("active").eq(True).order_by_desc("name")
        )
        plan = delta_context.plan(query)
        assert len(plan.native.filters) == 1
        with query.execute() as dataset:
            assert [row["name"] for row in dataset] == ["Charlie", "Alpha"]

    def test_native_max_rows(self, delta_context):
        query = delta_context.query().from_table("bands").select("key").where("members").is_not_null().set_max_rows(1)
        assert delta_context.plan(query).native.max_rows == 1
        assert len(query.execute().to_rows()) == 1

    def test_native_count(self, delta_context):
        query = delta_context.query().from_table("bands").select_count().where("key").in_("a", "b")
        assert query.execute().to_object_arrays() == [[2]]

    def test_like_is_post_processed(self, delta_context):
        query = delta_context.query().from_table("bands").select("name").where("name").like("%a%").order_by("name")
        with query.execute() as dataset:
            assert dataset.is_query_post_processed
            assert [row["name"] for row in dataset] == ["Alpha", "Bravo", "Charlie"]

    def test_delete(self, delta_context):
        delta_context.execute_update(
            lambda callback: callback.delete_from("bands").where("active").eq(False).execute()
        )
        query = delta_context.query().from_table("bands").select("key").order_by("key")
        assert [row["key"] for row in query.execute().to_rows()] == ["a", "c"]

    def test_drop_is_unsupported(self, delta_context):
        with pytest.raises(UnsupportedOperationError):
            delta_context.execute_update(lambda callback: callback.drop_table("bands").execute())
        assert delta_context.schema.has_table("bands")
