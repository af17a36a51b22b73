import logging
import threading
import uuid
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from polyquery.backends._conversion import to_arrow_value
from polyquery.config import DEFAULT_CONFIG, Config
from polyquery.data.datasets import RawPage
from polyquery.data.header import DataSetHeader
from polyquery.data.row import Row
from polyquery.data.value_decoding import translate_record
from polyquery.query.capabilities import COMPARISON_OPERATORS, Capabilities
from polyquery.query.planner import NativeQuery
from polyquery.query.query import FilterItem, OperatorType
from polyquery.schema import Schema, Table, columns_from_arrow_schema
from polyquery.update.intents import RowDeletion, RowInsertion, TableCreation, TableDrop
from polyquery.utils.lazy_module import LazyModule

if TYPE_CHECKING:
    import polars as pl
    import pyarrow as pa
else:
    pa = LazyModule("pyarrow")
    pl = LazyModule("polars")

logger = logging.getLogger(__name__)


FULL_CAPABILITIES = Capabilities(
    filter_operators=COMPARISON_OPERATORS,
    order_by=True,
    max_rows=True,
    count=True,
    create_table=True,
    drop_table=True,
    insert=True,
    delete=True,
)


class RecordListCursor:
    """A raw cursor over a list of records held in memory."""

    def __init__(self, records: Sequence[Mapping[str, Any]]):
        self._records = records
        self._index = -1
        self.released = False

    def advance(self) -> bool:
        if self.released or self._index + 1 >= len(self._records):
            return False
        self._index += 1
        return True

    def current_raw_record(self) -> Mapping[str, Any]:
        return self._records[self._index]

    def release_native(self) -> None:
        self.released = True
        self._records = ()


def polars_predicate(filter_item: FilterItem) -> "pl.Expr":
    """Translate a filter into a polars expression with SQL null semantics."""
    column = pl.col(filter_item.column.name)
    operator = filter_item.operator
    operand = filter_item.operand
    if operator is OperatorType.IN:
        return column.is_in([to_arrow_value(v) for v in operand])
    if operator is OperatorType.EQUALS_TO and operand is None:
        return column.is_null()
    if operator is OperatorType.DIFFERENT_FROM and operand is None:
        return column.is_not_null()

    literal = pl.lit(to_arrow_value(operand))
    if operator is OperatorType.EQUALS_TO:
        return column == literal
    if operator is OperatorType.DIFFERENT_FROM:
        return column != literal
    if operator is OperatorType.LESS_THAN:
        return column < literal
    if operator is OperatorType.LESS_THAN_OR_EQUAL:
        return column <= literal
    if operator is OperatorType.GREATER_THAN:
        return column > literal
    if operator is OperatorType.GREATER_THAN_OR_EQUAL:
        return column >= literal
    raise ValueError(f"Operator {operator.value} has no native translation")


class ArrowTableBackend:
    """
    An in-memory store of pyarrow tables.

    The native capabilities are chosen at construction, which makes this backend
    useful to exercise every split between pushdown and post-processing. With
    ``paged=True`` results are served as pages of ``config.scroll_page_size``
    records that are continued with a scroll token, like a search index does.

    Args:
        tables: initial tables by name
        capabilities: what the backend does natively; everything by default
        primary_keys: primary key column names by table name
        schema_name: name of the discovered schema
        paged: serve results as continuation pages instead of a cursor
        config: configuration, for the page size of paged results
    """

    def __init__(
        self,
        tables: Mapping[str, "pa.Table"] | None = None,
        capabilities: Capabilities = FULL_CAPABILITIES,
        primary_keys: Mapping[str, Sequence[str]] | None = None,
        schema_name: str = "memory",
        paged: bool = False,
        config: Config | None = None,
    ):
        self.capabilities = capabilities
        self._tables: dict[str, pa.Table] = dict(tables or {})
        self._primary_keys = dict(primary_keys or {})
        self._schema_name = schema_name
        self._paged = paged
        self._config = config if config is not None else DEFAULT_CONFIG
        self._scrolls: dict[str, list[Mapping[str, Any]]] = {}
        self._lock = threading.Lock()

        # call counters, inspected by callers that verify what reached the backend
        self.discover_calls = 0
        self.native_calls = 0
        self.count_calls = 0
        self.continue_calls = 0
        self.released_tokens: list[str] = []
        self.mutation_calls = 0
        self.refresh_count = 0
        self.cursors: list[RecordListCursor] = []

    @property
    def tables(self) -> dict[str, "pa.Table"]:
        return dict(self._tables)

    @property
    def open_scrolls(self) -> int:
        return len(self._scrolls)

    # ==================== Schema ====================

    def discover_schema(self) -> Schema:
        self.discover_calls += 1
        return Schema.from_tables(
            self._schema_name,
            [
                Table(
                    name,
                    columns_from_arrow_schema(table.schema, self._primary_keys.get(name, ())),
                )
                for name, table in self._tables.items()
            ],
        )

    # ==================== Queries ====================

    def _select(self, query: NativeQuery) -> "pl.DataFrame":
        if query.table.name not in self._tables:
            raise KeyError(f"No table {query.table.name!r} in memory store")
        df = pl.from_arrow(self._tables[query.table.name])
        assert isinstance(df, pl.DataFrame)
        for filter_item in query.filters:
            df = df.filter(polars_predicate(filter_item))
        if query.order_by:
            df = df.sort(
                [o.column.name for o in query.order_by],
                descending=[not o.ascending for o in query.order_by],
                nulls_last=[not o.ascending for o in query.order_by],
                maintain_order=True,
            )
        if query.offset or query.max_rows is not None:
            df = df.slice(query.offset, query.max_rows)
        return df.select(list(query.column_names))

    def execute_native(self, query: NativeQuery) -> "RecordListCursor | RawPage":
        self.native_calls += 1
        records = self._select(query).to_dicts()
        logger.debug(f"Native query on {query.table.name!r} matched {len(records)} records")
        if not self._paged:
            cursor = RecordListCursor(records)
            self.cursors.append(cursor)
            return cursor
        return self._start_scroll(records)

    def count_native(self, query: NativeQuery) -> int | None:
        self.count_calls += 1
        return self._select(query).height

    def translate_row(self, raw_record: Mapping[str, Any], header: DataSetHeader) -> Row:
        return translate_record(raw_record, header)

    # ==================== Scrolling ====================

    def _next_page(self, token: str) -> RawPage:
        remaining = self._scrolls[token]
        page_size = self._config.scroll_page_size
        page, rest = remaining[:page_size], remaining[page_size:]
        if not rest:
            del self._scrolls[token]
            return RawPage(page)
        self._scrolls[token] = rest
        return RawPage(page, next_token=token)

    def _start_scroll(self, records: list[Mapping[str, Any]]) -> RawPage:
        token = uuid.uuid4().hex
        with self._lock:
            self._scrolls[token] = records
            return self._next_page(token)

    def continue_paged(self, token: str, timeout: str) -> RawPage:
        self.continue_calls += 1
        with self._lock:
            if token not in self._scrolls:
                raise KeyError(f"Unknown or expired scroll {token!r}")
            return self._next_page(token)

    def release_paged(self, token: str) -> None:
        with self._lock:
            self._scrolls.pop(token, None)
        self.released_tokens.append(token)

    # ==================== Mutations ====================

    def create_table(self, intent: TableCreation) -> bool:
        self.mutation_calls += 1
        table = intent.to_table()
        self._tables[intent.name] = table.to_arrow_schema().empty_table()
        self._primary_keys[intent.name] = [c.name for c in table.primary_key_columns]
        return True

    def drop_table(self, intent: TableDrop) -> bool:
        self.mutation_calls += 1
        return self._tables.pop(intent.table.name, None) is not None

    def insert(self, intent: RowInsertion) -> bool:
        self.mutation_calls += 1
        existing = self._tables[intent.table.name]
        row = {
            name: to_arrow_value(intent.values.get(name)) for name in existing.column_names
        }
        addition = pa.Table.from_pylist([row], schema=existing.schema)
        self._tables[intent.table.name] = pa.concat_tables([existing, addition])
        return True

    def delete(self, intent: RowDeletion) -> bool:
        self.mutation_calls += 1
        name = intent.table.name
        existing = self._tables[name]
        if not intent.filters:
            self._tables[name] = existing.schema.empty_table()
            return True
        matches = pl.lit(True)
        for filter_item in intent.filters:
            matches = matches & polars_predicate(filter_item)
        df = pl.from_arrow(existing)
        assert isinstance(df, pl.DataFrame)
        keep = df.select(~matches.fill_null(False)).to_series().to_list()
        logger.debug(f"Deleting {keep.count(False)} rows from {name!r}")
        self._tables[name] = existing.filter(pa.array(keep, type=pa.bool_()))
        return True

    def on_update_finished(self) -> None:
        self.refresh_count += 1
