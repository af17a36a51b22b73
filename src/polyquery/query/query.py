import logging
import re
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import TYPE_CHECKING, Any, TypeAlias

from polyquery.errors import PlanError
from polyquery.schema import Column, ColumnType, Table

if TYPE_CHECKING:
    from polyquery.context import DataContext
    from polyquery.data.datasets import DataSetBase

logger = logging.getLogger(__name__)

# a column named by string (optionally "table.column") or given directly
ColumnRef: TypeAlias = str | Column


class OperatorType(Enum):
    EQUALS_TO = "="
    DIFFERENT_FROM = "<>"
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    IN = "IN"
    LIKE = "LIKE"

    @property
    def is_ordering(self) -> bool:
        return self in (
            OperatorType.LESS_THAN,
            OperatorType.LESS_THAN_OR_EQUAL,
            OperatorType.GREATER_THAN,
            OperatorType.GREATER_THAN_OR_EQUAL,
        )


class FunctionType(Enum):
    COUNT = "COUNT"
    SUM = "SUM"
    MIN = "MIN"
    MAX = "MAX"
    AVG = "AVG"


@dataclass(frozen=True)
class SelectItem:
    """
    An item of a select list: a column, or an aggregate function over a column.
    ``COUNT(*)`` is represented as a COUNT function without a column.
    """

    column: Column | None = None
    function: FunctionType | None = None
    alias: str | None = None

    def __post_init__(self) -> None:
        if self.column is None and self.function is not FunctionType.COUNT:
            raise ValueError("Only COUNT may be selected without a column")

    @classmethod
    def count_all(cls) -> "SelectItem":
        return cls(function=FunctionType.COUNT)

    @property
    def is_aggregate(self) -> bool:
        return self.function is not None

    @property
    def label(self) -> str:
        if self.alias is not None:
            return self.alias
        if self.function is None:
            assert self.column is not None
            return self.column.name
        argument = "*" if self.column is None else self.column.name
        return f"{self.function.value}({argument})"

    @property
    def result_type(self) -> ColumnType:
        """The semantic type of the values produced for this item."""
        function = self.function
        if function is None:
            assert self.column is not None
            return self.column.column_type
        if function is FunctionType.COUNT:
            return ColumnType.BIGINT
        assert self.column is not None
        if function is FunctionType.AVG:
            return ColumnType.FLOAT
        if function is FunctionType.SUM:
            if self.column.column_type is ColumnType.FLOAT:
                return ColumnType.FLOAT
            return ColumnType.BIGINT
        return self.column.column_type

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class FilterItem:
    """A single ``column <operator> operand`` predicate of a conjunctive where clause."""

    column: Column
    operator: OperatorType
    operand: Any

    def __post_init__(self) -> None:
        if self.operator is OperatorType.IN:
            if isinstance(self.operand, (str, bytes)) or not isinstance(
                self.operand, Collection
            ):
                raise PlanError(
                    f"IN filter on {self.column} requires a collection operand, got {self.operand!r}"
                )
        elif self.operator is OperatorType.LIKE:
            if not isinstance(self.operand, str):
                raise PlanError(
                    f"LIKE filter on {self.column} requires a string pattern, got {self.operand!r}"
                )
        elif self.operator.is_ordering and self.operand is None:
            raise PlanError(f"Cannot compare {self.column} {self.operator.value} NULL")

    @cached_property
    def _like_pattern(self) -> re.Pattern:
        parts = []
        for char in self.operand:
            if char == "%":
                parts.append(".*")
            elif char == "_":
                parts.append(".")
            else:
                parts.append(re.escape(char))
        return re.compile("".join(parts), re.DOTALL)

    def evaluate(self, value: Any) -> bool:
        """Evaluate the predicate against a single column value, with SQL null semantics."""
        operator = self.operator
        if operator is OperatorType.EQUALS_TO:
            if self.operand is None:
                return value is None
            return value is not None and value == self.operand
        if operator is OperatorType.DIFFERENT_FROM:
            if self.operand is None:
                return value is not None
            return value is not None and value != self.operand
        if value is None:
            return False
        if operator is OperatorType.IN:
            return value in self.operand
        if operator is OperatorType.LIKE:
            return self._like_pattern.fullmatch(str(value)) is not None
        if operator is OperatorType.LESS_THAN:
            return value < self.operand
        if operator is OperatorType.LESS_THAN_OR_EQUAL:
            return value <= self.operand
        if operator is OperatorType.GREATER_THAN:
            return value > self.operand
        return value >= self.operand

    def __str__(self) -> str:
        return f"{self.column} {self.operator.value} {self.operand!r}"


@dataclass(frozen=True)
class OrderByItem:
    column: Column
    ascending: bool = True

    def __str__(self) -> str:
        return f"{self.column} {'ASC' if self.ascending else 'DESC'}"


class FilterBuilder:
    """
    Completes a ``where(column)`` clause with an operator and operand, then hands
    control back to the object that started the clause.
    """

    def __init__(self, owner: Any, column: ColumnRef):
        self._owner = owner
        self._column = column

    def _complete(self, operator: OperatorType, operand: Any):
        self._owner._add_filter(self._column, operator, operand)
        return self._owner

    def eq(self, operand: Any):
        return self._complete(OperatorType.EQUALS_TO, operand)

    def ne(self, operand: Any):
        return self._complete(OperatorType.DIFFERENT_FROM, operand)

    def lt(self, operand: Any):
        return self._complete(OperatorType.LESS_THAN, operand)

    def le(self, operand: Any):
        return self._complete(OperatorType.LESS_THAN_OR_EQUAL, operand)

    def gt(self, operand: Any):
        return self._complete(OperatorType.GREATER_THAN, operand)

    def ge(self, operand: Any):
        return self._complete(OperatorType.GREATER_THAN_OR_EQUAL, operand)

    def in_(self, *operands: Any):
        # accept both in_(a, b) and in_([a, b])
        if len(operands) == 1 and isinstance(operands[0], Iterable) and not isinstance(
            operands[0], (str, bytes)
        ):
            operands = tuple(operands[0])
        return self._complete(OperatorType.IN, tuple(operands))

    def like(self, pattern: str):
        return self._complete(OperatorType.LIKE, pattern)

    def is_null(self):
        return self._complete(OperatorType.EQUALS_TO, None)

    def is_not_null(self):
        return self._complete(OperatorType.DIFFERENT_FROM, None)


class Query:
    """
    An abstract, backend independent query over a single table.

    Columns and tables may be given by name; names are only resolved against the
    schema when the query is planned, so building a query never touches a backend.

    Example:
        query = (
            Query()
            .from_table("songs")
            .select("id", "title")
            .where("title").like("My%")
            .order_by("id")
            .set_max_rows(10)
        )
    """

    def __init__(self, context: "DataContext | None" = None):
        self._context = context
        self.table: str | Table | None = None
        self.select_items: list[ColumnRef | SelectItem | tuple[FunctionType, ColumnRef]] = []
        self.select_all_columns = False
        self.where_items: list[tuple[ColumnRef, OperatorType, Any] | FilterItem] = []
        self.order_by_items: list[tuple[ColumnRef, bool] | OrderByItem] = []
        self.offset = 0
        self.max_rows: int | None = None

    def from_table(self, table: str | Table) -> "Query":
        self.table = table
        return self

    def select(self, *items: ColumnRef | SelectItem) -> "Query":
        for item in items:
            if item == "*":
                self.select_all_columns = True
            else:
                self.select_items.append(item)
        return self

    def select_all(self) -> "Query":
        self.select_all_columns = True
        return self

    def select_count(self) -> "Query":
        self.select_items.append(SelectItem.count_all())
        return self

    def select_function(self, function: FunctionType, column: ColumnRef) -> "Query":
        # resolved by the planner into a SelectItem
        self.select_items.append((function, column))
        return self

    def where(self, column: ColumnRef | FilterItem) -> "FilterBuilder | Query":
        if isinstance(column, FilterItem):
            self.where_items.append(column)
            return self
        return FilterBuilder(self, column)

    def _add_filter(self, column: ColumnRef, operator: OperatorType, operand: Any) -> None:
        self.where_items.append((column, operator, operand))

    def order_by(self, column: ColumnRef | OrderByItem, ascending: bool = True) -> "Query":
        if isinstance(column, OrderByItem):
            self.order_by_items.append(column)
        else:
            self.order_by_items.append((column, ascending))
        return self

    def order_by_desc(self, column: ColumnRef) -> "Query":
        return self.order_by(column, ascending=False)

    def set_offset(self, offset: int) -> "Query":
        self.offset = offset
        return self

    def set_max_rows(self, max_rows: int | None) -> "Query":
        self.max_rows = max_rows
        return self

    def execute(self) -> "DataSetBase":
        if self._context is None:
            raise RuntimeError(
                "Query is not bound to a DataContext; use DataContext.execute_query instead"
            )
        return self._context.execute_query(self)

    def __repr__(self) -> str:
        table = self.table.name if isinstance(self.table, Table) else self.table
        return (
            f"Query(table={table!r}, select={[str(s) for s in self.select_items]}, "
            f"where={[str(w) for w in self.where_items]}, "
            f"order_by={[str(o) for o in self.order_by_items]}, "
            f"offset={self.offset}, max_rows={self.max_rows})"
        )
