"""
Backend neutral descriptions of single mutations. Builders validate and produce
these; backends translate them into one native call each.
"""

from dataclasses import dataclass, field

from polyquery.query.query import FilterItem
from polyquery.schema import Column, Table
from polyquery.types import Value


@dataclass(frozen=True)
class TableCreation:
    schema_name: str
    name: str
    columns: tuple[Column, ...]

    def to_table(self) -> Table:
        return Table(self.name, self.columns, schema_name=self.schema_name)


@dataclass(frozen=True)
class TableDrop:
    table: Table


@dataclass(frozen=True)
class RowInsertion:
    table: Table
    # column name -> decoded value; columns left out are inserted as null
    values: dict[str, Value] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class RowDeletion:
    """Deletes the rows matching every filter. No filters deletes all rows."""

    table: Table
    filters: tuple[FilterItem, ...] = ()
