from .config import DEFAULT_CONFIG, Config
from .errors import (
    BackendCallError,
    PlanError,
    PolyQueryError,
    UnsupportedOperationError,
    ValueConversionError,
)
from .schema import Column, ColumnType, Schema, Table
from .query import Capabilities, FunctionType, OperatorType, Query, SelectItem
from .query.planner import QueryPlan, QueryPlanner, ResidualStep
from .data import DataSetBase, DataSetHeader, Row
from .context import DataContext
from .update import UpdateCallback
from . import backends
from . import resources
from .resources import HdfsResource

__all__ = [
    "DEFAULT_CONFIG",
    "Config",
    "BackendCallError",
    "PlanError",
    "PolyQueryError",
    "UnsupportedOperationError",
    "ValueConversionError",
    "Column",
    "ColumnType",
    "Schema",
    "Table",
    "Capabilities",
    "FunctionType",
    "OperatorType",
    "Query",
    "SelectItem",
    "QueryPlan",
    "QueryPlanner",
    "ResidualStep",
    "DataSetBase",
    "DataSetHeader",
    "Row",
    "DataContext",
    "UpdateCallback",
    "backends",
    "resources",
    "HdfsResource",
]
