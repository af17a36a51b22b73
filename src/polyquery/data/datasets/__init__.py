from .base import DataSetBase, DataSetState, WrappingDataSetBase
from .in_memory import InMemoryDataSet
from .raw_cursor import RawCursorDataSet
from .scrolling import RawPage, ScrollingDataSet
from .filtered import FilteredDataSet
from .max_rows import MaxRowsDataSet, OffsetDataSet
from .ordered import OrderedDataSet
from .projected import ProjectedDataSet
from .aggregate import AggregateDataSet

__all__ = [
    "DataSetBase",
    "DataSetState",
    "WrappingDataSetBase",
    "InMemoryDataSet",
    "RawCursorDataSet",
    "RawPage",
    "ScrollingDataSet",
    "FilteredDataSet",
    "MaxRowsDataSet",
    "OffsetDataSet",
    "OrderedDataSet",
    "ProjectedDataSet",
    "AggregateDataSet",
]
