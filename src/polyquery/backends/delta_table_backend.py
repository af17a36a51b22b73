import logging
from collections.abc import Iterator, Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from deltalake import DeltaTable, write_deltalake
from deltalake.exceptions import TableNotFoundError

from polyquery.backends._conversion import to_arrow_value
from polyquery.data.header import DataSetHeader
from polyquery.data.row import Row
from polyquery.data.value_decoding import translate_record
from polyquery.errors import UnsupportedOperationError
from polyquery.query.capabilities import COMPARISON_OPERATORS, Capabilities
from polyquery.query.planner import NativeQuery
from polyquery.query.query import FilterItem, OperatorType
from polyquery.schema import Schema, Table, columns_from_arrow_schema
from polyquery.types import PathLike
from polyquery.update.intents import RowDeletion, RowInsertion, TableCreation, TableDrop
from polyquery.utils.lazy_module import LazyModule

if TYPE_CHECKING:
    import pyarrow as pa
    import pyarrow.compute as pc
    import pyarrow.dataset as ds
else:
    pa = LazyModule("pyarrow")
    pc = LazyModule("pyarrow.compute")
    ds = LazyModule("pyarrow.dataset")

logger = logging.getLogger(__name__)


class RecordBatchCursor:
    """
    Streams the records of a pyarrow scanner batch by batch. Only the current
    batch is held in memory. The offset and row limit of the native query are
    applied while streaming.
    """

    def __init__(self, batches: Iterator["pa.RecordBatch"], offset: int = 0, max_rows: int | None = None):
        self._batches = batches
        self._to_skip = offset
        self._remaining = max_rows
        self._records: list[dict[str, Any]] = []
        self._index = 0
        self._current: dict[str, Any] | None = None

    def advance(self) -> bool:
        if self._remaining is not None and self._remaining <= 0:
            self._current = None
            return False
        while True:
            while self._index < len(self._records):
                record = self._records[self._index]
                self._index += 1
                if self._to_skip > 0:
                    self._to_skip -= 1
                    continue
                self._current = record
                if self._remaining is not None:
                    self._remaining -= 1
                return True
            batch = next(self._batches, None)
            if batch is None:
                self._current = None
                return False
            self._records = batch.to_pylist()
            self._index = 0

    def current_raw_record(self) -> dict[str, Any] | None:
        return self._current

    def release_native(self) -> None:
        self._batches = iter(())
        self._records = []
        self._current = None


def arrow_expression(filter_item: FilterItem) -> "pc.Expression":
    """Translate a filter into a pyarrow dataset expression."""
    field = pc.field(filter_item.column.name)
    operator = filter_item.operator
    operand = filter_item.operand
    if operator is OperatorType.IN:
        return field.isin([to_arrow_value(v) for v in operand])
    if operator is OperatorType.EQUALS_TO and operand is None:
        return field.is_null()
    if operator is OperatorType.DIFFERENT_FROM and operand is None:
        return field.is_valid()

    value = pa.scalar(to_arrow_value(operand))
    if operator is OperatorType.EQUALS_TO:
        return field == value
    if operator is OperatorType.DIFFERENT_FROM:
        return field != value
    if operator is OperatorType.LESS_THAN:
        return field < value
    if operator is OperatorType.LESS_THAN_OR_EQUAL:
        return field <= value
    if operator is OperatorType.GREATER_THAN:
        return field > value
    if operator is OperatorType.GREATER_THAN_OR_EQUAL:
        return field >= value
    raise ValueError(f"Operator {operator.value} has no native translation")


def _sql_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (bytes, datetime)):
        raise UnsupportedOperationError(
            f"Cannot delete by {type(value).__name__} values from a Delta table"
        )
    text = str(to_arrow_value(value)).replace("'", "''")
    return f"'{text}'"


def sql_predicate(filter_item: FilterItem) -> str:
    """Translate a filter into a Delta Lake SQL predicate."""
    name = filter_item.column.name
    operator = filter_item.operator
    operand = filter_item.operand
    if operator is OperatorType.IN:
        return f"{name} IN ({', '.join(_sql_literal(v) for v in operand)})"
    if operator is OperatorType.EQUALS_TO and operand is None:
        return f"{name} IS NULL"
    if operator is OperatorType.DIFFERENT_FROM and operand is None:
        return f"{name} IS NOT NULL"
    if operator is OperatorType.LIKE:
        return f"{name} LIKE {_sql_literal(operand)}"
    return f"{name} {operator.value} {_sql_literal(operand)}"


class DeltaTableBackend:
    """
    A directory of Delta Lake tables, one table per subdirectory.

    Comparison and IN filters are evaluated by the pyarrow dataset scanner, rows
    are streamed batch by batch, and counts come from the scanner without reading
    any rows. Tables can be created, appended to and deleted from; dropping a
    table is not supported.

    Args:
        base_path: directory holding the tables
        schema_name: name of the discovered schema; defaults to the directory name
        primary_keys: primary key column names by table name
        batch_size: maximum number of rows per scanned record batch
    """

    capabilities = Capabilities(
        filter_operators=COMPARISON_OPERATORS,
        max_rows=True,
        count=True,
        create_table=True,
        insert=True,
        delete=True,
    )

    def __init__(
        self,
        base_path: PathLike,
        schema_name: str | None = None,
        primary_keys: Mapping[str, Sequence[str]] | None = None,
        batch_size: int = 10_000,
    ):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._schema_name = schema_name if schema_name is not None else self.base_path.name
        self._primary_keys = dict(primary_keys or {})
        self._batch_size = batch_size
        logger.info(f"Initialized DeltaTableBackend at {self.base_path}")

    def _table_path(self, name: str) -> Path:
        return self.base_path / name

    def _load(self, name: str) -> DeltaTable:
        return DeltaTable(str(self._table_path(name)))

    def _dataset(self, name: str) -> "ds.Dataset":
        return self._load(name).to_pyarrow_dataset(as_large_types=True)

    # ==================== Schema ====================

    def list_tables(self) -> list[str]:
        names = []
        for item in sorted(self.base_path.iterdir()):
            if not item.is_dir():
                continue
            try:
                DeltaTable(str(item))
            except TableNotFoundError:
                logger.debug(f"Skipping {item}: not a Delta table")
                continue
            names.append(item.name)
        return names

    def discover_schema(self) -> Schema:
        tables = []
        for name in self.list_tables():
            arrow_schema = self._dataset(name).schema
            tables.append(
                Table(name, columns_from_arrow_schema(arrow_schema, self._primary_keys.get(name, ())))
            )
        return Schema.from_tables(self._schema_name, tables)

    # ==================== Queries ====================

    def _filter_expression(self, filters: Sequence[FilterItem]) -> "pc.Expression | None":
        expression = None
        for filter_item in filters:
            current = arrow_expression(filter_item)
            expression = current if expression is None else expression & current
        return expression

    def execute_native(self, query: NativeQuery) -> RecordBatchCursor:
        scanner = self._dataset(query.table.name).scanner(
            columns=list(query.column_names),
            filter=self._filter_expression(query.filters),
            batch_size=self._batch_size,
        )
        logger.debug(f"Scanning {query.table.name!r} for columns {list(query.column_names)}")
        return RecordBatchCursor(scanner.to_batches(), query.offset, query.max_rows)

    def count_native(self, query: NativeQuery) -> int | None:
        return self._dataset(query.table.name).count_rows(
            filter=self._filter_expression(query.filters)
        )

    def translate_row(self, raw_record: Mapping[str, Any], header: DataSetHeader) -> Row:
        return translate_record(raw_record, header)

    # ==================== Mutations ====================

    def create_table(self, intent: TableCreation) -> bool:
        table = intent.to_table()
        write_deltalake(
            str(self._table_path(intent.name)),
            table.to_arrow_schema().empty_table(),
            mode="error",
        )
        self._primary_keys[intent.name] = [c.name for c in table.primary_key_columns]
        logger.debug(f"Created Delta table {intent.name!r}")
        return True

    def drop_table(self, intent: TableDrop) -> bool:
        raise UnsupportedOperationError("Delta tables cannot be dropped through this backend")

    def insert(self, intent: RowInsertion) -> bool:
        name = intent.table.name
        arrow_schema = self._dataset(name).schema
        row = {field.name: to_arrow_value(intent.values.get(field.name)) for field in arrow_schema}
        write_deltalake(
            str(self._table_path(name)),
            pa.Table.from_pylist([row], schema=arrow_schema),
            mode="append",
        )
        return True

    def delete(self, intent: RowDeletion) -> bool:
        delta_table = self._load(intent.table.name)
        if not intent.filters:
            delta_table.delete()
            return True
        predicate = " AND ".join(sql_predicate(f) for f in intent.filters)
        logger.debug(f"Deleting from {intent.table.name!r} where {predicate}")
        delta_table.delete(predicate)
        return True

    def on_update_finished(self) -> None:
        # each write commits a new table version that later reads pick up
        logger.debug(f"Update finished on {self.base_path}")
