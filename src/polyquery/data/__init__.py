from .header import DataSetHeader
from .row import Row
from .value_decoding import decode_value, translate_record
from .datasets import (
    AggregateDataSet,
    DataSetBase,
    DataSetState,
    FilteredDataSet,
    InMemoryDataSet,
    MaxRowsDataSet,
    OffsetDataSet,
    OrderedDataSet,
    ProjectedDataSet,
    RawCursorDataSet,
    RawPage,
    ScrollingDataSet,
    WrappingDataSetBase,
)

__all__ = [
    "DataSetHeader",
    "Row",
    "decode_value",
    "translate_record",
    "AggregateDataSet",
    "DataSetBase",
    "DataSetState",
    "FilteredDataSet",
    "InMemoryDataSet",
    "MaxRowsDataSet",
    "OffsetDataSet",
    "OrderedDataSet",
    "ProjectedDataSet",
    "RawCursorDataSet",
    "RawPage",
    "ScrollingDataSet",
    "WrappingDataSetBase",
]
