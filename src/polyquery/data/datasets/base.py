import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING, Any

from polyquery.data.header import DataSetHeader
from polyquery.data.row import Row
from polyquery.utils.lazy_module import LazyModule

if TYPE_CHECKING:
    import polars as pl
    import pyarrow as pa
else:
    pa = LazyModule("pyarrow")
    pl = LazyModule("polars")

logger = logging.getLogger(__name__)


class DataSetState(Enum):
    CREATED = "created"
    OPEN = "open"
    EXHAUSTED = "exhausted"
    CLOSED = "closed"


class DataSetBase(ABC):
    """
    A single-pass, stateful cursor over query result rows.

    The cursor moves through ``CREATED -> OPEN -> EXHAUSTED -> CLOSED``. ``advance``
    moves to the next row and returns whether there is one; once it has returned
    False it keeps doing so and ``get_row`` yields None. ``close`` releases the
    native resources behind the cursor exactly once and may be called any number
    of times, from any thread.

    DataSets should be consumed inside a ``with`` block so that they are closed on
    every exit path. A DataSet that is garbage collected while still open is
    closed by its finalizer, which logs a warning about the leak.
    """

    def __init__(self, header: DataSetHeader, warn_on_unclosed: bool = True) -> None:
        self._state = DataSetState.CREATED
        self._header = header
        self._row: Row | None = None
        self._close_lock = threading.Lock()
        self._closed = False
        self._warn_on_unclosed = warn_on_unclosed
        self._state = DataSetState.OPEN

    @property
    def header(self) -> DataSetHeader:
        return self._header

    @property
    def state(self) -> DataSetState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_query_post_processed(self) -> bool:
        """Whether rows are post-processed locally rather than coming straight from the backend."""
        return False

    @abstractmethod
    def _advance(self) -> Row | None:
        """Produce the next row, or None when there are no more rows."""
        ...

    def _release(self) -> None:
        """Release native resources owned by this DataSet. Called at most once."""

    def advance(self) -> bool:
        """
        Move to the next row.

        Returns:
            True if a row is now available through ``get_row``, False once the
            DataSet is exhausted or closed.

        If producing the row fails, the DataSet is closed before the error propagates.
        """
        if self._state is not DataSetState.OPEN:
            self._row = None
            return False
        try:
            row = self._advance()
        except Exception:
            self.close()
            raise
        if row is None:
            self._state = DataSetState.EXHAUSTED
            self._row = None
            return False
        self._row = row
        return True

    def get_row(self) -> Row | None:
        """The current row, or None before the first advance and after exhaustion."""
        return self._row

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._state = DataSetState.CLOSED
        self._row = None
        try:
            self._release()
        except Exception as e:
            logger.warning(f"Failed to release resources of {self!r}: {e}")

    def __enter__(self) -> "DataSetBase":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __iter__(self) -> Iterator[Row]:
        while self.advance():
            row = self._row
            assert row is not None
            yield row

    def __del__(self) -> None:
        # a partially constructed instance has nothing to release
        if getattr(self, "_closed", True):
            return
        if self._warn_on_unclosed:
            logger.warning(
                f"DataSet {self!r} was garbage collected without being closed, closing it now"
            )
        self.close()

    # ==================== Draining helpers ====================

    def to_rows(self) -> list[Row]:
        """Read all remaining rows and close the DataSet."""
        try:
            return list(self)
        finally:
            self.close()

    def to_object_arrays(self) -> list[list[Any]]:
        return [list(row.values) for row in self.to_rows()]

    def to_arrow(self) -> "pa.Table":
        """Read all remaining rows into a pyarrow Table and close the DataSet."""
        schema = self._header.to_arrow_schema()
        rows = self.to_rows()
        columns = [[row.values[i] for row in rows] for i in range(len(schema))]
        return pa.Table.from_arrays(
            [pa.array(values, type=field.type) for values, field in zip(columns, schema)],
            schema=schema,
        )

    def to_polars(self) -> "pl.DataFrame":
        return pl.from_arrow(self.to_arrow())  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(header={self._header}, state={self._state.value})"


class WrappingDataSetBase(DataSetBase):
    """
    Base for DataSets that post-process the rows of exactly one inner DataSet.
    Closing the wrapper closes the inner DataSet.
    """

    def __init__(
        self,
        inner: DataSetBase,
        header: DataSetHeader | None = None,
        **kwargs,
    ) -> None:
        super().__init__(header if header is not None else inner.header, **kwargs)
        self._inner = inner

    @property
    def inner(self) -> DataSetBase:
        return self._inner

    @property
    def is_query_post_processed(self) -> bool:
        return True

    def _release(self) -> None:
        self._inner.close()
