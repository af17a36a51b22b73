import logging
from typing import Any

from polyquery.data.datasets.base import DataSetBase, WrappingDataSetBase
from polyquery.data.header import DataSetHeader
from polyquery.data.row import Row
from polyquery.errors import PlanError
from polyquery.query.query import FunctionType, SelectItem
from polyquery.schema import ColumnType

logger = logging.getLogger(__name__)


class AggregateDataSet(WrappingDataSetBase):
    """
    Computes aggregate select items (without grouping) over every row of the
    inner DataSet and yields a single result row. Counting this way needs the
    complete result of the inner DataSet.
    """

    def __init__(self, inner: DataSetBase, header: DataSetHeader, **kwargs) -> None:
        super().__init__(inner, header=header, **kwargs)
        self._argument_indices: list[int | None] = []
        for item in header:
            if not item.is_aggregate:
                raise PlanError(f"Select item {item} is not an aggregate")
            if item.column is None:
                self._argument_indices.append(None)
                continue
            index = inner.header.index_of(item.column)
            if index is None:
                raise PlanError(f"Aggregate argument {item.column} is not available in {inner.header}")
            self._argument_indices.append(index)
        self._done = False

    def _advance(self) -> Row | None:
        if self._done:
            return None
        self._done = True

        n_rows = 0
        arguments: list[list[Any]] = [[] for _ in self._argument_indices]
        while self._inner.advance():
            row = self._inner.get_row()
            assert row is not None
            n_rows += 1
            for values, index in zip(arguments, self._argument_indices):
                if index is not None and row.values[index] is not None:
                    values.append(row.values[index])
        self._inner.close()
        logger.debug(f"Aggregated {n_rows} rows")

        return Row(
            self._header,
            [
                _aggregate(item, values, n_rows)
                for item, values in zip(self._header, arguments)
            ],
        )


def _aggregate(item: SelectItem, values: list[Any], n_rows: int) -> Any:
    function = item.function
    if function is FunctionType.COUNT:
        return n_rows if item.column is None else len(values)
    if not values:
        return None
    if function is FunctionType.MIN:
        return min(values)
    if function is FunctionType.MAX:
        return max(values)
    if function is FunctionType.AVG:
        return sum(values) / len(values)
    total = sum(values)
    if item.result_type is ColumnType.BIGINT:
        return int(total)
    return float(total)
