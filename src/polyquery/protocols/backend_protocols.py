from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from polyquery.data.datasets.scrolling import RawPage
    from polyquery.data.header import DataSetHeader
    from polyquery.data.row import Row
    from polyquery.query.capabilities import Capabilities
    from polyquery.query.planner import NativeQuery
    from polyquery.schema import Schema
    from polyquery.update.intents import (
        RowDeletion,
        RowInsertion,
        TableCreation,
        TableDrop,
    )


@runtime_checkable
class RawCursor(Protocol):
    """A backend's native, forward-only cursor over raw records."""

    def advance(self) -> bool: ...

    def current_raw_record(self) -> Any: ...

    def release_native(self) -> None:
        """Release the socket, handle or server-side cursor behind this cursor."""
        ...


class Backend(Protocol):
    """
    The capability interface every store adapter provides. Wire protocols and
    client libraries stay behind this interface.
    """

    capabilities: "Capabilities"

    def discover_schema(self) -> "Schema":
        """Discover the schema of the store. Called once per data context."""
        ...

    def execute_native(self, query: "NativeQuery") -> "RawCursor | RawPage":
        """
        Execute the native fragment of a query. Streaming stores return a RawCursor,
        paging stores return the first RawPage of a scroll.
        """
        ...

    def translate_row(self, raw_record: Any, header: "DataSetHeader") -> "Row":
        """Decode a raw record into a typed Row of the given header."""
        ...

    def count_native(self, query: "NativeQuery") -> int | None:
        """Count matching records natively, or return None if not possible for this query."""
        ...


class PagingBackend(Backend, Protocol):
    """A backend that returns results as pages with continuation tokens."""

    def continue_paged(self, token: str, timeout: str) -> "RawPage": ...

    def release_paged(self, token: str) -> None: ...


class UpdateableBackend(Backend, Protocol):
    """
    A backend that accepts mutations. Each primitive performs one backend call and
    returns whether it succeeded.
    """

    def create_table(self, intent: "TableCreation") -> bool: ...

    def drop_table(self, intent: "TableDrop") -> bool: ...

    def insert(self, intent: "RowInsertion") -> bool: ...

    def delete(self, intent: "RowDeletion") -> bool: ...

    def on_update_finished(self) -> None:
        """Make the mutations of the finished batch visible to subsequent reads."""
        ...
