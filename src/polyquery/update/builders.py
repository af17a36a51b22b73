import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from polyquery.data.value_decoding import decode_value
from polyquery.errors import PlanError, ValueConversionError
from polyquery.query.query import ColumnRef, FilterBuilder, FilterItem, OperatorType
from polyquery.schema import Column, ColumnType, Table
from polyquery.types import Value
from polyquery.update.intents import RowDeletion, RowInsertion, TableCreation, TableDrop

if TYPE_CHECKING:
    from polyquery.update.callback import UpdateCallback

logger = logging.getLogger(__name__)


class MutationBuilder(ABC):
    """
    Accumulates a single mutation and performs it on ``execute``. Validation errors
    are raised as PlanError before the backend is called; a builder can only be
    executed once.
    """

    def __init__(self, callback: "UpdateCallback"):
        self._callback = callback
        self._executed = False

    @property
    def is_executed(self) -> bool:
        return self._executed

    @abstractmethod
    def _build(self) -> Any:
        """Validate the accumulated state and produce the mutation intent."""
        ...

    @abstractmethod
    def _perform(self, intent: Any) -> Any: ...

    def execute(self) -> Any:
        if self._executed:
            raise RuntimeError(f"{self.__class__.__name__} has already been executed")
        intent = self._build()
        self._executed = True
        return self._perform(intent)


class TableCreationBuilder(MutationBuilder):
    """
    Example:
        callback.create_table("songs") \\
            .with_column("id", ColumnType.UUID, primary_key=True) \\
            .with_column("title", ColumnType.STRING) \\
            .execute()
    """

    def __init__(self, callback: "UpdateCallback", name: str):
        super().__init__(callback)
        self._name = name
        self._columns: list[Column] = []

    def with_column(
        self,
        name: str,
        column_type: ColumnType,
        nullable: bool = True,
        primary_key: bool = False,
    ) -> "TableCreationBuilder":
        self._columns.append(
            Column(
                name=name,
                column_type=column_type,
                table_name=self._name,
                nullable=nullable and not primary_key,
                primary_key=primary_key,
            )
        )
        return self

    def _build(self) -> TableCreation:
        schema = self._callback.schema
        if not self._name:
            raise PlanError("Table name must not be empty")
        if schema.has_table(self._name):
            raise PlanError(f"Table {self._name!r} already exists in schema {schema.name!r}")
        if not self._columns:
            raise PlanError(f"Table {self._name!r} must have at least one column")
        names = [c.name for c in self._columns]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise PlanError(f"Duplicate columns {duplicates} in table {self._name!r}")
        return TableCreation(schema.name, self._name, tuple(self._columns))

    def _perform(self, intent: TableCreation) -> Table:
        self._callback._call_backend("create table", "create_table", intent)
        table = self._callback.schema.add_table(intent.to_table())
        logger.info(f"Created table {table.name!r}")
        return table


class TableDropBuilder(MutationBuilder):
    def __init__(self, callback: "UpdateCallback", table: Table):
        super().__init__(callback)
        self._table = table

    def _build(self) -> TableDrop:
        if not self._callback.schema.has_table(self._table.name):
            raise PlanError(f"Table {self._table.name!r} no longer exists")
        return TableDrop(self._table)

    def _perform(self, intent: TableDrop) -> None:
        self._callback._call_backend("drop table", "drop_table", intent)
        self._callback.schema.remove_table(intent.table.name)
        logger.info(f"Dropped table {intent.table.name!r}")


class RowInsertionBuilder(MutationBuilder):
    def __init__(self, callback: "UpdateCallback", table: Table):
        super().__init__(callback)
        self._table = table
        self._values: dict[str, Value] = {}

    def value(self, column: ColumnRef, value: Any) -> "RowInsertionBuilder":
        """
        Set the value of a column in the inserted row.

        Raises:
            PlanError: if the column is unknown or the value does not fit its type.
        """
        resolved = self._callback.planner.resolve_column(self._table, column)
        try:
            self._values[resolved.name] = decode_value(value, resolved.column_type)
        except ValueConversionError as e:
            raise PlanError(f"Invalid value for {resolved}: {e}") from e
        return self

    def _build(self) -> RowInsertion:
        for column in self._table.columns:
            if self._values.get(column.name) is None and (
                column.primary_key or not column.nullable
            ):
                raise PlanError(f"Column {column} requires a value")
        return RowInsertion(self._table, dict(self._values))

    def _perform(self, intent: RowInsertion) -> None:
        self._callback._call_backend("insert", "insert", intent)


class RowDeletionBuilder(MutationBuilder):
    def __init__(self, callback: "UpdateCallback", table: Table):
        super().__init__(callback)
        self._table = table
        self._filters: list[FilterItem] = []

    def where(self, column: ColumnRef) -> FilterBuilder:
        return FilterBuilder(self, column)

    def _add_filter(self, column: ColumnRef, operator: OperatorType, operand: Any) -> None:
        self._filters.append(
            self._callback.planner.resolve_filter(self._table, (column, operator, operand))
        )

    def _build(self) -> RowDeletion:
        return RowDeletion(self._table, tuple(self._filters))

    def _perform(self, intent: RowDeletion) -> None:
        self._callback._call_backend("delete", "delete", intent)
