import logging
from collections.abc import Sequence

from polyquery.data.datasets.base import DataSetBase, WrappingDataSetBase
from polyquery.data.row import Row
from polyquery.errors import PlanError
from polyquery.query.query import OrderByItem

logger = logging.getLogger(__name__)


class OrderedDataSet(WrappingDataSetBase):
    """
    Sorts the rows of the inner DataSet. On the first advance the whole inner
    DataSet is drained into memory, the inner DataSet is closed, and the sorted
    buffer is replayed. Nulls sort first in ascending and last in descending order.
    """

    def __init__(self, inner: DataSetBase, order_by: Sequence[OrderByItem], **kwargs) -> None:
        super().__init__(inner, **kwargs)
        self._order_by = tuple(order_by)
        self._sort_indices = []
        for item in self._order_by:
            index = inner.header.index_of(item.column)
            if index is None:
                raise PlanError(f"Order by column {item.column} is not available in {inner.header}")
            self._sort_indices.append(index)
        self._buffer: list[Row] | None = None
        self._position = 0

    @property
    def order_by(self) -> tuple[OrderByItem, ...]:
        return self._order_by

    def _drain_and_sort(self) -> list[Row]:
        rows = []
        while self._inner.advance():
            row = self._inner.get_row()
            assert row is not None
            rows.append(row)
        self._inner.close()
        logger.debug(f"Sorting {len(rows)} buffered rows by {[str(o) for o in self._order_by]}")

        # stable sorts applied from the least to the most significant key
        for item, index in reversed(list(zip(self._order_by, self._sort_indices))):
            rows.sort(
                key=lambda row: (
                    row.values[index] is not None,
                    row.values[index] if row.values[index] is not None else 0,
                ),
                reverse=not item.ascending,
            )
        return rows

    def _advance(self) -> Row | None:
        if self._buffer is None:
            self._buffer = self._drain_and_sort()
        if self._position >= len(self._buffer):
            return None
        row = self._buffer[self._position]
        self._position += 1
        return row

    def _release(self) -> None:
        self._buffer = []
        super()._release()
