from .query import (
    ColumnRef,
    FilterBuilder,
    FilterItem,
    FunctionType,
    OperatorType,
    OrderByItem,
    Query,
    SelectItem,
)
from .capabilities import Capabilities, COMPARISON_OPERATORS, SCAN_ONLY

__all__ = [
    "ColumnRef",
    "FilterBuilder",
    "FilterItem",
    "FunctionType",
    "OperatorType",
    "OrderByItem",
    "Query",
    "SelectItem",
    "Capabilities",
    "COMPARISON_OPERATORS",
    "SCAN_ONLY",
]
