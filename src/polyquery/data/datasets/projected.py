from polyquery.data.datasets.base import DataSetBase, WrappingDataSetBase
from polyquery.data.header import DataSetHeader
from polyquery.data.row import Row
from polyquery.errors import PlanError


class ProjectedDataSet(WrappingDataSetBase):
    """Narrows the rows of the inner DataSet down to a sub-selection of its header."""

    def __init__(self, inner: DataSetBase, header: DataSetHeader, **kwargs) -> None:
        super().__init__(inner, header=header, **kwargs)
        self._indices = []
        for item in header:
            index = inner.header.index_of(item)
            if index is None and item.column is not None and not item.is_aggregate:
                # aliased plain items match the column they select
                index = inner.header.index_of(item.column)
            if index is None:
                raise PlanError(f"Select item {item} is not available in {inner.header}")
            self._indices.append(index)

    def _advance(self) -> Row | None:
        if not self._inner.advance():
            return None
        row = self._inner.get_row()
        assert row is not None
        return Row(self._header, [row.values[i] for i in self._indices])
