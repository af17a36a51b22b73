import logging
from collections.abc import Callable
from typing import Any, TypeVar

from polyquery.config import DEFAULT_CONFIG, Config
from polyquery.data.datasets import (
    DataSetBase,
    InMemoryDataSet,
    RawCursorDataSet,
    RawPage,
    ScrollingDataSet,
)
from polyquery.data.row import Row
from polyquery.errors import BackendCallError, UnsupportedOperationError
from polyquery.protocols.backend_protocols import Backend
from polyquery.query.capabilities import Capabilities
from polyquery.query.planner import CountStrategy, NativeQuery, QueryPlan, QueryPlanner
from polyquery.query.query import Query
from polyquery.schema import Schema, Table
from polyquery.update.callback import UpdateCallback

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DataContext:
    """
    Entry point for querying and updating one backend.

    The schema is discovered from the backend on first use and cached. Queries
    are planned against it, the native fragment is sent to the backend, and the
    residual steps are applied locally to the resulting DataSet.

    Example:
        context = DataContext(backend)
        with context.query().from_table("songs").select("id", "title").order_by("id").execute() as ds:
            for row in ds:
                print(row["title"])
    """

    def __init__(self, backend: Backend, config: Config | None = None):
        self._backend = backend
        self._config = config if config is not None else DEFAULT_CONFIG
        self._schema: Schema | None = None

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def config(self) -> Config:
        return self._config

    @property
    def capabilities(self) -> Capabilities:
        return self._backend.capabilities

    def _call_backend(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return func(*args)
        except Exception as e:
            logger.error(f"Backend call to {operation} failed: {e}")
            raise BackendCallError(
                f"Could not {operation} on {type(self._backend).__name__}"
            ) from e

    # ==================== Schema ====================

    @property
    def schema(self) -> Schema:
        if self._schema is None:
            self._schema = self._call_backend("discover schema", self._backend.discover_schema)
            logger.info(
                f"Discovered schema {self._schema.name!r} with tables {list(self._schema.table_names)}"
            )
        return self._schema

    def refresh_schema(self) -> Schema:
        """Discard the cached schema and discover it again."""
        self._schema = None
        return self.schema

    @property
    def table_names(self) -> tuple[str, ...]:
        return self.schema.table_names

    def get_table_by_name(self, name: str) -> Table:
        return self.schema.get_table_by_name(name)

    # ==================== Queries ====================

    def query(self) -> Query:
        return Query(context=self)

    def plan(self, query: Query) -> QueryPlan:
        return QueryPlanner(self.schema, self.capabilities).plan(query)

    def execute_query(self, query: Query) -> DataSetBase:
        """
        Plan and execute a query.

        Returns:
            an open DataSet, which the caller must close (or use in a ``with`` block).

        Raises:
            PlanError: if the query does not fit the schema. Nothing is sent to the
                backend in that case.
            BackendCallError: if the backend fails to execute the native fragment.
        """
        plan = self.plan(query)
        kwargs = {"warn_on_unclosed": self._config.warn_on_unclosed_dataset}

        if plan.count_strategy is CountStrategy.NATIVE:
            count = self._call_backend("count", self._backend.count_native, plan.native)
            if count is not None:
                logger.debug(f"Counted {count} rows of {plan.native.table.name!r} natively")
                dataset = InMemoryDataSet(plan.header, [Row(plan.header, [count])], **kwargs)
                return plan.apply_paging(dataset, **kwargs)
            logger.debug(f"Backend could not count {plan.native.table.name!r} natively")
        if plan.count_strategy is not None and self._config.warn_on_count_materialization:
            logger.warning(
                f"Counting rows of {plan.native.table.name!r} by reading the full result; "
                "this may be slow for large tables"
            )

        dataset = self._open_native(plan.native, **kwargs)
        return plan.apply_residual(dataset, **kwargs)

    def _open_native(self, native: NativeQuery, **kwargs) -> DataSetBase:
        result = self._call_backend("execute query", self._backend.execute_native, native)
        if isinstance(result, RawPage):
            continue_paged = getattr(self._backend, "continue_paged", None)
            release_paged = getattr(self._backend, "release_paged", None)
            if continue_paged is None:
                if result.next_token is not None and release_paged is not None:
                    try:
                        release_paged(result.next_token)
                    except Exception as e:
                        logger.warning(f"Could not release scroll lease {result.next_token!r}: {e}")
                raise UnsupportedOperationError(
                    f"{type(self._backend).__name__} returned a page but cannot continue scrolling"
                )
            return ScrollingDataSet(
                native.header,
                result,
                continue_paged=continue_paged,
                translate_row=self._backend.translate_row,
                release_lease=release_paged,
                scroll_timeout=self._config.scroll_timeout,
                **kwargs,
            )
        return RawCursorDataSet(native.header, result, self._backend.translate_row, **kwargs)

    # ==================== Updates ====================

    def execute_update(self, script: Callable[[UpdateCallback], T]) -> T:
        """
        Run an update script. The script receives an UpdateCallback to obtain
        mutation builders from. Once the script has finished, the backend is asked
        to make the mutations visible to subsequent reads.

        Example:
            def add_song(callback):
                callback.insert_into("songs").value("id", song_id).value("title", "Hey").execute()

            context.execute_update(add_song)
        """
        callback = UpdateCallback(self._backend, self.schema)  # type: ignore[arg-type]
        result = script(callback)
        on_update_finished = getattr(self._backend, "on_update_finished", None)
        if on_update_finished is not None:
            self._call_backend("finish update", on_update_finished)
        logger.info(f"Update finished after {callback.backend_calls} mutation(s)")
        return result
