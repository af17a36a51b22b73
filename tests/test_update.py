#!/usr/bin/env python
"""Tests for update scripts, the update callback and the mutation builders."""

import uuid

import pytest

from polyquery import (
    BackendCallError,
    Capabilities,
    ColumnType,
    DataContext,
    PlanError,
    UnsupportedOperationError,
)
from polyquery.backends import ArrowTableBackend
from polyquery.update import RowInsertion, UpdateCallback


@pytest.fixture
def read_only_backend(songs_table) -> ArrowTableBackend:
    return ArrowTableBackend({"songs": songs_table}, capabilities=Capabilities(order_by=True))


class TestUpdateCallbackCapabilities:
    def test_predicates(self, full_context, read_only_backend):
        callback = UpdateCallback(full_context.backend, full_context.schema)
        assert callback.is_create_table_supported()
        assert callback.is_drop_table_supported()
        assert callback.is_insert_supported()
        assert callback.is_delete_supported()

        read_only = UpdateCallback(read_only_backend, read_only_backend.discover_schema())
        assert not read_only.is_create_table_supported()
        assert not read_only.is_drop_table_supported()
        assert not read_only.is_insert_supported()
        assert not read_only.is_delete_supported()

    def test_unsupported_drop_fails_before_backend_call(self, songs_table):
        """Dropping a table on a backend that cannot drop makes zero backend calls."""
        backend = ArrowTableBackend(
            {"songs": songs_table},
            capabilities=Capabilities(create_table=True, insert=True, delete=True),
        )
        context = DataContext(backend)

        def drop_songs(callback):
            callback.drop_table("songs").execute()

        with pytest.raises(UnsupportedOperationError):
            context.execute_update(drop_songs)
        assert backend.mutation_calls == 0
        assert context.schema.has_table("songs")

    @pytest.mark.parametrize("factory", ["create_table", "insert_into", "delete_from"])
    def test_other_unsupported_builders(self, read_only_backend, factory):
        callback = UpdateCallback(read_only_backend, read_only_backend.discover_schema())
        with pytest.raises(UnsupportedOperationError):
            getattr(callback, factory)("songs")
        assert read_only_backend.mutation_calls == 0


class TestTableBuilders:
    def test_create_insert_and_query(self, full_context, full_backend):
        album_id = uuid.uuid4()

        def create_albums(callback):
            callback.create_table("albums") \
                .with_column("id", ColumnType.UUID, primary_key=True) \
                .with_column("name", ColumnType.STRING) \
                .with_column("year", ColumnType.INTEGER) \
                .execute()
            callback.insert_into("albums").value("id", str(album_id)).value("name", "Abbey Road").value("year", "1969").execute()

        full_context.execute_update(create_albums)
        assert full_backend.refresh_count == 1

        albums = full_context.get_table_by_name("albums")
        assert albums.column_names == ("id", "name", "year")
        assert albums.get_column_by_name("id").primary_key
        assert not albums.get_column_by_name("id").nullable

        with full_context.query().from_table("albums").select_all().execute() as dataset:
            rows = [row.as_dict() for row in dataset]
        assert rows == [{"id": album_id, "name": "Abbey Road", "year": 1969}]

    def test_create_existing_table(self, full_context, full_backend):
        callback = UpdateCallback(full_backend, full_context.schema)
        with pytest.raises(PlanError, match="already exists"):
            callback.create_table("songs").with_column("id", ColumnType.UUID).execute()
        assert full_backend.mutation_calls == 0

    def test_create_without_columns(self, full_context, full_backend):
        callback = UpdateCallback(full_backend, full_context.schema)
        with pytest.raises(PlanError, match="at least one column"):
            callback.create_table("empty").execute()

    def test_create_with_duplicate_columns(self, full_context, full_backend):
        callback = UpdateCallback(full_backend, full_context.schema)
        builder = callback.create_table("t").with_column("a", ColumnType.STRING).with_column("a", ColumnType.STRING)
        with pytest.raises(PlanError, match="Duplicate"):
            builder.execute()

    def test_drop_table(self, full_context, full_backend):
        full_context.execute_update(lambda callback: callback.drop_table("songs").execute())
        assert not full_context.schema.has_table("songs")
        assert "songs" not in full_backend.tables
        with pytest.raises(PlanError):
            full_context.query().from_table("songs").select("id").execute()

    def test_drop_unknown_table(self, full_context, full_backend):
        callback = UpdateCallback(full_backend, full_context.schema)
        with pytest.raises(PlanError, match="No such table"):
            callback.drop_table("albums")


class TestRowBuilders:
    def test_insert_validates_values(self, full_context, full_backend):
        callback = UpdateCallback(full_backend, full_context.schema)
        with pytest.raises(PlanError, match="Invalid value"):
            callback.insert_into("songs").value("position", "first")
        with pytest.raises(PlanError, match="No such column"):
            callback.insert_into("songs").value("artist", "The Beatles")
        with pytest.raises(PlanError, match="requires a value"):
            callback.insert_into("songs").value("title", "Help!").execute()
        assert full_backend.mutation_calls == 0

    def test_insert_then_count(self, full_context):
        def add_song(callback):
            callback.insert_into("songs").value("id", uuid.uuid4()).value("title", "Help!").execute()

        full_context.execute_update(add_song)
        query = full_context.query().from_table("songs").select("title").where("title").eq("Help!")
        with query.execute() as dataset:
            assert [row["title"] for row in dataset] == ["Help!"]
        assert full_context.query().from_table("songs").select_count().execute().to_object_arrays() == [[4]]

    def test_delete_where(self, full_context):
        full_context.execute_update(
            lambda callback: callback.delete_from("songs").where("hit").eq(False).execute()
        )
        query = full_context.query().from_table("songs").select("title").order_by("title")
        with query.execute() as dataset:
            assert [row["title"] for row in dataset] == ["Hey Jude", "Yellow Submarine"]

    def test_delete_keeps_rows_with_null(self, full_context):
        full_context.execute_update(
            lambda callback: callback.delete_from("songs").where("position").gt(2).execute()
        )
        query = full_context.query().from_table("songs").select("title").order_by("title")
        with query.execute() as dataset:
            assert [row["title"] for row in dataset] == ["Hey Jude", "Julia"]

    def test_delete_all(self, full_context):
        full_context.execute_update(lambda callback: callback.delete_from("songs").execute())
        assert full_context.query().from_table("songs").select_count().execute().to_object_arrays() == [[0]]

    def test_builder_executes_once(self, full_context, full_backend):
        callback = UpdateCallback(full_backend, full_context.schema)
        builder = callback.delete_from("songs").where("position").eq(1)
        builder.execute()
        with pytest.raises(RuntimeError, match="already been executed"):
            builder.execute()
        assert full_backend.mutation_calls == 1


class TestUpdateFailures:
    def test_unsuccessful_result_raises(self, songs_table):
        class RejectingBackend(ArrowTableBackend):
            def insert(self, intent: RowInsertion) -> bool:
                self.mutation_calls += 1
                return False

        context = DataContext(RejectingBackend({"songs": songs_table}))
        with pytest.raises(BackendCallError, match="reported failure"):
            context.execute_update(
                lambda callback: callback.insert_into("songs").value("id", uuid.uuid4()).execute()
            )

    def test_backend_exception_is_wrapped(self, songs_table):
        class FailingBackend(ArrowTableBackend):
            def delete(self, intent):
                raise ConnectionError("connection refused")

        backend = FailingBackend({"songs": songs_table})
        context = DataContext(backend)
        with pytest.raises(BackendCallError) as exc_info:
            context.execute_update(lambda callback: callback.delete_from("songs").execute())
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert backend.refresh_count == 0

    def test_finish_hook_runs_once_per_script(self, full_context, full_backend):
        def add_two(callback):
            for title in ("Help!", "Something"):
                callback.insert_into("songs").value("id", uuid.uuid4()).value("title", title).execute()
            return "done"

        assert full_context.execute_update(add_two) == "done"
        assert full_backend.mutation_calls == 2
        assert full_backend.refresh_count == 1
