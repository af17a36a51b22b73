import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from polyquery.errors import PlanError
from polyquery.schema.column_types import ColumnType
from polyquery.utils.lazy_module import LazyModule

if TYPE_CHECKING:
    import pyarrow as pa
else:
    pa = LazyModule("pyarrow")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Column:
    """
    A typed column of a table. Columns are immutable: once discovery has assigned
    a semantic type it stays fixed for the lifetime of the owning schema.
    """

    name: str
    column_type: ColumnType
    table_name: str | None = None
    nullable: bool = True
    primary_key: bool = False

    @property
    def qualified_name(self) -> str:
        if self.table_name is None:
            return self.name
        return f"{self.table_name}.{self.name}"

    def to_arrow_field(self) -> "pa.Field":
        return self.column_type.to_arrow_field(self.name, nullable=self.nullable)

    def __str__(self) -> str:
        return self.qualified_name


class Table:
    """An ordered collection of columns owned by exactly one schema."""

    def __init__(
        self,
        name: str,
        columns: Iterable[Column] = (),
        schema_name: str | None = None,
    ) -> None:
        self._name = name
        self._schema_name = schema_name
        columns_by_name: dict[str, Column] = {}
        for column in columns:
            if column.name in columns_by_name:
                raise ValueError(f"Duplicate column {column.name!r} in table {name!r}")
            # bind every column to this table so that qualified names are stable
            if column.table_name != name:
                column = Column(
                    name=column.name,
                    column_type=column.column_type,
                    table_name=name,
                    nullable=column.nullable,
                    primary_key=column.primary_key,
                )
            columns_by_name[column.name] = column
        self._columns = tuple(columns_by_name.values())
        self._columns_by_name = columns_by_name

    @property
    def name(self) -> str:
        return self._name

    @property
    def schema_name(self) -> str | None:
        return self._schema_name

    @property
    def columns(self) -> tuple[Column, ...]:
        return self._columns

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self._columns)

    @property
    def primary_key_columns(self) -> tuple[Column, ...]:
        return tuple(c for c in self._columns if c.primary_key)

    def has_column(self, name: str) -> bool:
        return name in self._columns_by_name

    def get_column_by_name(self, name: str) -> Column:
        """
        Look up a column by name.

        Raises:
            PlanError: if the table has no such column.
        """
        try:
            return self._columns_by_name[name]
        except KeyError:
            raise PlanError(
                f"No such column {name!r} in table {self._name!r}. "
                f"Available columns: {list(self.column_names)}"
            ) from None

    def to_arrow_schema(self) -> "pa.Schema":
        return pa.schema([c.to_arrow_field() for c in self._columns])

    def __iter__(self) -> Iterator[Column]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        return f"Table(name={self._name!r}, columns={list(self.column_names)})"


@dataclass
class Schema:
    """
    A named, ordered set of tables. Table names are unique within a schema.

    A schema is built once per data context by discovery. Afterwards it only
    changes through the table creation and drop builders of an update callback.
    """

    name: str
    _tables: dict[str, Table] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def from_tables(cls, name: str, tables: Iterable[Table]) -> "Schema":
        schema = cls(name)
        for table in tables:
            schema.add_table(table)
        return schema

    @property
    def tables(self) -> tuple[Table, ...]:
        return tuple(self._tables.values())

    @property
    def table_names(self) -> tuple[str, ...]:
        return tuple(self._tables)

    def has_table(self, name: str) -> bool:
        return name in self._tables

    def get_table_by_name(self, name: str) -> Table:
        """
        Look up a table by name.

        Raises:
            PlanError: if the schema has no such table.
        """
        try:
            return self._tables[name]
        except KeyError:
            raise PlanError(
                f"No such table {name!r} in schema {self.name!r}. "
                f"Available tables: {list(self._tables)}"
            ) from None

    def add_table(self, table: Table) -> Table:
        if table.name in self._tables:
            raise ValueError(f"Table {table.name!r} already exists in schema {self.name!r}")
        if table.schema_name != self.name:
            table = Table(table.name, table.columns, schema_name=self.name)
        self._tables[table.name] = table
        logger.debug(f"Added table {table.name!r} to schema {self.name!r}")
        return table

    def remove_table(self, name: str) -> Table:
        table = self.get_table_by_name(name)
        del self._tables[name]
        logger.debug(f"Removed table {name!r} from schema {self.name!r}")
        return table

    def __iter__(self) -> Iterator[Table]:
        return iter(self._tables.values())

    def __len__(self) -> int:
        return len(self._tables)


def columns_from_arrow_schema(
    arrow_schema: "pa.Schema", primary_keys: Sequence[str] = ()
) -> list[Column]:
    """Translate an arrow schema into semantic columns."""
    return [
        Column(
            name=f.name,
            column_type=ColumnType.from_arrow_field(f),
            nullable=f.nullable,
            primary_key=f.name in primary_keys,
        )
        for f in arrow_schema
    ]
