import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any

from polyquery.data.datasets import (
    AggregateDataSet,
    DataSetBase,
    FilteredDataSet,
    MaxRowsDataSet,
    OffsetDataSet,
    OrderedDataSet,
    ProjectedDataSet,
)
from polyquery.data.header import DataSetHeader
from polyquery.data.value_decoding import decode_value
from polyquery.errors import PlanError, ValueConversionError
from polyquery.query.capabilities import Capabilities
from polyquery.query.query import (
    ColumnRef,
    FilterItem,
    FunctionType,
    OperatorType,
    OrderByItem,
    Query,
    SelectItem,
)
from polyquery.schema import Column, Schema, Table

logger = logging.getLogger(__name__)


class ResidualStep(Enum):
    """Post-processing steps applied locally, in the order they are applied."""

    FILTER = "filter"
    AGGREGATE = "aggregate"
    SORT = "sort"
    PROJECT = "project"
    OFFSET = "offset"
    MAX_ROWS = "max_rows"


class CountStrategy(Enum):
    NATIVE = "native"
    # the full native result is read and counted locally
    MATERIALIZE = "materialize"


@dataclass(frozen=True)
class NativeQuery:
    """The fragment of a query that a backend executes natively."""

    table: Table
    columns: tuple[Column, ...]
    filters: tuple[FilterItem, ...] = ()
    order_by: tuple[OrderByItem, ...] = ()
    offset: int = 0
    max_rows: int | None = None

    @cached_property
    def header(self) -> DataSetHeader:
        return DataSetHeader.from_columns(self.columns)

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)


@dataclass(frozen=True)
class QueryPlan:
    """
    The split of a query into a native fragment and a residual plan. The residual
    plan is applied by wrapping whatever the backend returns in post-processing
    DataSets, see ``apply_residual``.
    """

    native: NativeQuery
    header: DataSetHeader
    residual_filters: tuple[FilterItem, ...] = ()
    residual_order_by: tuple[OrderByItem, ...] = ()
    residual_offset: int = 0
    residual_max_rows: int | None = None
    aggregate: bool = False
    project: bool = False
    count_strategy: CountStrategy | None = None

    @property
    def residual_steps(self) -> tuple[ResidualStep, ...]:
        steps = []
        if self.residual_filters:
            steps.append(ResidualStep.FILTER)
        if self.aggregate:
            steps.append(ResidualStep.AGGREGATE)
        if self.residual_order_by:
            steps.append(ResidualStep.SORT)
        if self.project:
            steps.append(ResidualStep.PROJECT)
        if self.residual_offset:
            steps.append(ResidualStep.OFFSET)
        if self.residual_max_rows is not None:
            steps.append(ResidualStep.MAX_ROWS)
        return tuple(steps)

    @property
    def is_post_processed(self) -> bool:
        return len(self.residual_steps) > 0

    def apply_residual(self, dataset: DataSetBase, **kwargs) -> DataSetBase:
        """
        Wrap the DataSet produced for the native fragment with the residual steps:
        filter, then aggregate or sort and project, then offset and max rows.
        """
        try:
            if self.residual_filters:
                dataset = FilteredDataSet(dataset, self.residual_filters, **kwargs)
            if self.aggregate:
                dataset = AggregateDataSet(dataset, self.header, **kwargs)
            else:
                if self.residual_order_by:
                    dataset = OrderedDataSet(dataset, self.residual_order_by, **kwargs)
                if self.project:
                    dataset = ProjectedDataSet(dataset, self.header, **kwargs)
            return self.apply_paging(dataset, **kwargs)
        except Exception:
            dataset.close()
            raise

    def apply_paging(self, dataset: DataSetBase, **kwargs) -> DataSetBase:
        if self.residual_offset:
            dataset = OffsetDataSet(dataset, self.residual_offset, **kwargs)
        if self.residual_max_rows is not None:
            dataset = MaxRowsDataSet(dataset, self.residual_max_rows, **kwargs)
        return dataset

    def describe(self) -> str:
        native = self.native
        lines = [
            f"native: table={native.table.name} columns={list(native.column_names)}",
            f"  filters={[str(f) for f in native.filters]}",
            f"  order_by={[str(o) for o in native.order_by]} offset={native.offset} max_rows={native.max_rows}",
            f"residual: {[s.value for s in self.residual_steps] or 'none'}",
        ]
        if self.count_strategy is not None:
            lines.append(f"count: {self.count_strategy.value}")
        return "\n".join(lines)


class QueryPlanner:
    """
    Resolves an abstract query against a schema and decides, based on a backend's
    capabilities, which parts are pushed down and which are post-processed.

    Pushdown never changes results: paging (offset and max rows) is only pushed
    down when no filter and no ordering is post-processed, and a native count is
    only used when every filter is pushed down.
    """

    def __init__(self, schema: Schema, capabilities: Capabilities):
        self._schema = schema
        self._capabilities = capabilities

    # ==================== Resolution ====================

    def resolve_table(self, table: str | Table | None) -> Table:
        if table is None:
            raise PlanError("Query has no table to select from")
        if isinstance(table, Table):
            return self._schema.get_table_by_name(table.name)
        return self._schema.get_table_by_name(table)

    def resolve_column(self, table: Table, ref: ColumnRef) -> Column:
        if isinstance(ref, Column):
            if ref.table_name not in (None, table.name):
                raise PlanError(f"Column {ref} does not belong to table {table.name!r}")
            return table.get_column_by_name(ref.name)
        if not table.has_column(ref):
            prefix = f"{table.name}."
            if ref.startswith(prefix):
                ref = ref[len(prefix) :]
        return table.get_column_by_name(ref)

    def resolve_select_item(self, table: Table, item: Any) -> SelectItem:
        if isinstance(item, SelectItem):
            column = None if item.column is None else self.resolve_column(table, item.column)
            resolved = SelectItem(column=column, function=item.function, alias=item.alias)
        elif isinstance(item, tuple):
            function, ref = item
            resolved = SelectItem(column=self.resolve_column(table, ref), function=function)
        else:
            resolved = SelectItem(column=self.resolve_column(table, item))

        if resolved.function in (FunctionType.SUM, FunctionType.AVG):
            assert resolved.column is not None
            if not resolved.column.column_type.is_number:
                raise PlanError(
                    f"{resolved.function.value} requires a numeric column, "
                    f"{resolved.column} is {resolved.column.column_type}"
                )
        return resolved

    def resolve_filter(self, table: Table, spec: Any) -> FilterItem:
        if isinstance(spec, FilterItem):
            column, operator, operand = spec.column, spec.operator, spec.operand
        else:
            column, operator, operand = spec
        column = self.resolve_column(table, column)
        return FilterItem(column, operator, self._coerce_operand(column, operator, operand))

    def _coerce_operand(self, column: Column, operator: OperatorType, operand: Any) -> Any:
        if operator is OperatorType.LIKE or operand is None:
            return operand
        try:
            if operator is OperatorType.IN:
                if isinstance(operand, (str, bytes)) or not isinstance(operand, Iterable):
                    raise PlanError(
                        f"IN filter on {column} requires a collection operand, got {operand!r}"
                    )
                return tuple(decode_value(v, column.column_type) for v in operand)
            return decode_value(operand, column.column_type)
        except ValueConversionError as e:
            raise PlanError(f"Malformed filter on {column}: {e}") from e

    # ==================== Planning ====================

    def plan(self, query: Query) -> QueryPlan:
        """
        Plan a query.

        Raises:
            PlanError: for unknown tables or columns, malformed filters, and invalid
                select lists or paging values. No backend call is made before or
                during planning.
        """
        caps = self._capabilities
        table = self.resolve_table(query.table)

        select_items: list[SelectItem] = []
        if query.select_all_columns:
            select_items.extend(SelectItem(column=c) for c in table.columns)
        select_items.extend(self.resolve_select_item(table, s) for s in query.select_items)
        if not select_items:
            raise PlanError(f"Query on {table.name!r} selects nothing")

        filters = [self.resolve_filter(table, w) for w in query.where_items]
        order_by = [
            OrderByItem(self.resolve_column(table, o.column), o.ascending)
            if isinstance(o, OrderByItem)
            else OrderByItem(self.resolve_column(table, o[0]), o[1])
            for o in query.order_by_items
        ]

        if query.offset < 0:
            raise PlanError(f"Offset must be non-negative, got {query.offset}")
        if query.max_rows is not None and query.max_rows < 0:
            raise PlanError(f"Max rows must be non-negative, got {query.max_rows}")

        n_aggregates = sum(1 for s in select_items if s.is_aggregate)
        is_aggregate = n_aggregates > 0
        if is_aggregate and n_aggregates != len(select_items):
            raise PlanError("Cannot mix aggregate and non-aggregate select items without GROUP BY")
        if is_aggregate and order_by:
            raise PlanError("ORDER BY is not supported on aggregate queries")

        native_filters = []
        residual_filters = []
        for f in filters:
            if caps.supports_native_filter(f.operator):
                native_filters.append(f)
            else:
                logger.debug(f"Filter {f} is not supported natively, post-processing it")
                residual_filters.append(f)

        native_order_by: list[OrderByItem] = []
        residual_order_by: list[OrderByItem] = []
        if order_by:
            if caps.supports_native_order_by:
                native_order_by = order_by
            else:
                logger.debug("Ordering is not supported natively, rows will be sorted in memory")
                residual_order_by = order_by

        header = DataSetHeader(select_items)

        if is_aggregate:
            count_strategy = None
            if len(select_items) == 1 and select_items[0] == SelectItem.count_all():
                if caps.supports_native_count and not residual_filters:
                    count_strategy = CountStrategy.NATIVE
                else:
                    count_strategy = CountStrategy.MATERIALIZE
            needed = [s.column for s in select_items if s.column is not None]
            needed += [f.column for f in residual_filters]
            columns = _unique(needed) or table.columns[:1]
            return QueryPlan(
                native=NativeQuery(table, columns, tuple(native_filters)),
                header=header,
                residual_filters=tuple(residual_filters),
                residual_offset=query.offset,
                residual_max_rows=query.max_rows,
                aggregate=True,
                count_strategy=count_strategy,
            )

        push_paging = caps.supports_native_max_rows and not residual_filters and not residual_order_by
        if not push_paging and (query.offset or query.max_rows is not None):
            logger.debug("Offset/max rows will be applied while post-processing")

        select_columns = [s.column for s in select_items if s.column is not None]
        needed = select_columns + [f.column for f in residual_filters]
        needed += [o.column for o in residual_order_by]
        columns = _unique(needed)

        plan = QueryPlan(
            native=NativeQuery(
                table,
                columns,
                tuple(native_filters),
                tuple(native_order_by),
                offset=query.offset if push_paging else 0,
                max_rows=query.max_rows if push_paging else None,
            ),
            header=header,
            residual_filters=tuple(residual_filters),
            residual_order_by=tuple(residual_order_by),
            residual_offset=0 if push_paging else query.offset,
            residual_max_rows=None if push_paging else query.max_rows,
            project=tuple(select_items) != DataSetHeader.from_columns(columns).select_items,
        )
        logger.debug(f"Planned query on {table.name!r}:\n{plan.describe()}")
        return plan


def _unique(columns: Iterable[Column]) -> tuple[Column, ...]:
    return tuple(dict.fromkeys(columns))
