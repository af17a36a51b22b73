from collections.abc import Sequence

from polyquery.data.datasets.base import DataSetBase, WrappingDataSetBase
from polyquery.data.row import Row
from polyquery.errors import PlanError
from polyquery.query.query import FilterItem


class FilteredDataSet(WrappingDataSetBase):
    """Skips inner rows that fail any of the (conjunctive) filter items."""

    def __init__(self, inner: DataSetBase, filters: Sequence[FilterItem], **kwargs) -> None:
        super().__init__(inner, **kwargs)
        self._filters = tuple(filters)
        self._filter_indices = []
        for filter_item in self._filters:
            index = inner.header.index_of(filter_item.column)
            if index is None:
                raise PlanError(
                    f"Filter column {filter_item.column} is not available in {inner.header}"
                )
            self._filter_indices.append(index)

    @property
    def filters(self) -> tuple[FilterItem, ...]:
        return self._filters

    def _accepts(self, row: Row) -> bool:
        return all(
            f.evaluate(row.values[i]) for f, i in zip(self._filters, self._filter_indices)
        )

    def _advance(self) -> Row | None:
        while self._inner.advance():
            row = self._inner.get_row()
            assert row is not None
            if self._accepts(row):
                return row
        return None
