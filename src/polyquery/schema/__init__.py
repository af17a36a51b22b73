from .column_types import ColumnType
from .schema import Column, Table, Schema, columns_from_arrow_schema
from .discovery import discover_table_from_records

__all__ = [
    "ColumnType",
    "Column",
    "Table",
    "Schema",
    "columns_from_arrow_schema",
    "discover_table_from_records",
]
