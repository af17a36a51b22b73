import logging

from polyquery.data.datasets.base import DataSetBase, WrappingDataSetBase
from polyquery.data.row import Row

logger = logging.getLogger(__name__)


class MaxRowsDataSet(WrappingDataSetBase):
    """
    Yields at most ``max_rows`` rows of the inner DataSet. Rows are pulled one at a
    time, so the inner DataSet keeps streaming; as soon as the limit is reached the
    inner DataSet is closed.
    """

    def __init__(self, inner: DataSetBase, max_rows: int, **kwargs) -> None:
        if max_rows < 0:
            raise ValueError(f"max_rows must be non-negative, got {max_rows}")
        super().__init__(inner, **kwargs)
        self._max_rows = max_rows
        self._rows_emitted = 0

    @property
    def max_rows(self) -> int:
        return self._max_rows

    def _stop_early(self) -> None:
        if not self._inner.is_closed:
            logger.debug(f"Reached max rows ({self._max_rows}), closing inner DataSet")
            self._inner.close()

    def _advance(self) -> Row | None:
        if self._rows_emitted >= self._max_rows:
            self._stop_early()
            return None
        if not self._inner.advance():
            return None
        row = self._inner.get_row()
        self._rows_emitted += 1
        if self._rows_emitted >= self._max_rows:
            self._stop_early()
        return row


class OffsetDataSet(WrappingDataSetBase):
    """Skips the first ``offset`` rows of the inner DataSet."""

    def __init__(self, inner: DataSetBase, offset: int, **kwargs) -> None:
        if offset < 0:
            raise ValueError(f"offset must be non-negative, got {offset}")
        super().__init__(inner, **kwargs)
        self._offset = offset
        self._skipped = False

    @property
    def offset(self) -> int:
        return self._offset

    def _advance(self) -> Row | None:
        if not self._skipped:
            self._skipped = True
            for _ in range(self._offset):
                if not self._inner.advance():
                    return None
        if not self._inner.advance():
            return None
        return self._inner.get_row()
