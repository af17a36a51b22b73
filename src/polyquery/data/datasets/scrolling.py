import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from polyquery.data.datasets.base import DataSetBase
from polyquery.data.header import DataSetHeader
from polyquery.data.row import Row
from polyquery.errors import BackendCallError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawPage:
    """One page of raw records, plus the token to continue with (if any)."""

    records: Sequence[Any]
    next_token: str | None = None


class ScrollingDataSet(DataSetBase):
    """
    Presents a paged (scrolling) backend result as a flat DataSet.

    Records of the buffered page are handed out one by one. When the page is used
    up and it carried a continuation token, exactly one continuation request
    fetches the next page, which replaces the buffer. The scroll ends when a page
    has no token, or when a continuation returns an empty page. An empty first
    page with a token still gets its one continuation, since some stores only
    return hits from the second page on.

    Closing releases the continuation lease on the backend. Release failures are
    logged only: the lease also expires on its own after the scroll timeout.
    """

    def __init__(
        self,
        header: DataSetHeader,
        first_page: RawPage,
        continue_paged: Callable[[str, str], RawPage],
        translate_row: Callable[[Any, DataSetHeader], Row],
        release_lease: Callable[[str], None] | None = None,
        scroll_timeout: str = "1m",
        **kwargs,
    ) -> None:
        super().__init__(header, **kwargs)
        self._page = first_page
        self._index = 0
        self._continue_paged = continue_paged
        self._translate_row = translate_row
        self._release_lease = release_lease
        self._scroll_timeout = scroll_timeout
        self._lease_token = first_page.next_token
        self._continuation_count = 0

    @property
    def scroll_timeout(self) -> str:
        return self._scroll_timeout

    @property
    def continuation_count(self) -> int:
        """Number of continuation requests issued so far."""
        return self._continuation_count

    def _fetch_next_page(self, token: str) -> RawPage:
        logger.debug(f"Fetching next page (continuation #{self._continuation_count + 1})")
        try:
            page = self._continue_paged(token, self._scroll_timeout)
        except Exception as e:
            logger.error(f"Could not fetch next page of scroll: {e}")
            raise BackendCallError("Could not fetch next page of scroll") from e
        self._continuation_count += 1
        # a page without a token ends the scroll and the backend retires its lease
        self._lease_token = page.next_token
        return page

    def _advance(self) -> Row | None:
        while self._index >= len(self._page.records):
            token = self._page.next_token
            if token is None:
                return None
            self._page = self._fetch_next_page(token)
            self._index = 0
            if len(self._page.records) == 0:
                return None

        record = self._page.records[self._index]
        self._index += 1
        try:
            return self._translate_row(record, self._header)
        except Exception as e:
            raise BackendCallError("Could not translate scrolled record") from e

    def _release(self) -> None:
        self._page = RawPage(records=())
        if self._lease_token is None or self._release_lease is None:
            return
        try:
            self._release_lease(self._lease_token)
        except Exception as e:
            logger.warning(f"Could not release scroll lease {self._lease_token!r}: {e}")
