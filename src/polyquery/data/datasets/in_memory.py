from collections.abc import Iterable

from polyquery.data.datasets.base import DataSetBase
from polyquery.data.header import DataSetHeader
from polyquery.data.row import Row


class InMemoryDataSet(DataSetBase):
    """A DataSet over rows that are already materialized."""

    def __init__(self, header: DataSetHeader, rows: Iterable[Row], **kwargs) -> None:
        super().__init__(header, **kwargs)
        self._rows = list(rows)
        self._index = 0

    def _advance(self) -> Row | None:
        if self._index >= len(self._rows):
            return None
        row = self._rows[self._index]
        self._index += 1
        return row

    def _release(self) -> None:
        self._rows = []
