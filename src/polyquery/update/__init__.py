from .intents import RowDeletion, RowInsertion, TableCreation, TableDrop
from .builders import (
    MutationBuilder,
    RowDeletionBuilder,
    RowInsertionBuilder,
    TableCreationBuilder,
    TableDropBuilder,
)
from .callback import UpdateCallback

__all__ = [
    "RowDeletion",
    "RowInsertion",
    "TableCreation",
    "TableDrop",
    "MutationBuilder",
    "RowDeletionBuilder",
    "RowInsertionBuilder",
    "TableCreationBuilder",
    "TableDropBuilder",
    "UpdateCallback",
]
