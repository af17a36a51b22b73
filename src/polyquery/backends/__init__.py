from .arrow_table_backend import (
    FULL_CAPABILITIES,
    ArrowTableBackend,
    RecordListCursor,
    polars_predicate,
)

__all__ = [
    "FULL_CAPABILITIES",
    "ArrowTableBackend",
    "RecordListCursor",
    "polars_predicate",
]
