import logging
from collections.abc import Callable
from typing import Any

from polyquery.data.datasets.base import DataSetBase
from polyquery.data.header import DataSetHeader
from polyquery.data.row import Row
from polyquery.errors import BackendCallError
from polyquery.protocols.backend_protocols import RawCursor

logger = logging.getLogger(__name__)


class RawCursorDataSet(DataSetBase):
    """
    Adapts a backend's native cursor to the DataSet state machine. Raw records are
    translated into rows by the backend's row translation function; failures of
    either the cursor or the translation surface as BackendCallError.
    """

    def __init__(
        self,
        header: DataSetHeader,
        cursor: RawCursor,
        translate_row: Callable[[Any, DataSetHeader], Row],
        **kwargs,
    ) -> None:
        super().__init__(header, **kwargs)
        self._cursor = cursor
        self._translate_row = translate_row

    def _advance(self) -> Row | None:
        try:
            if not self._cursor.advance():
                return None
            return self._translate_row(self._cursor.current_raw_record(), self._header)
        except Exception as e:
            logger.error(f"Could not read next row from backend cursor: {e}")
            raise BackendCallError("Could not read next row from backend cursor") from e

    def _release(self) -> None:
        self._cursor.release_native()
