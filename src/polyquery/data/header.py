from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from polyquery.query.query import SelectItem
from polyquery.schema import Column
from polyquery.utils.lazy_module import LazyModule

if TYPE_CHECKING:
    import pyarrow as pa
else:
    pa = LazyModule("pyarrow")


class DataSetHeader:
    """
    The ordered, immutable select list shared by every row of a DataSet.
    Position in the header determines position in each row.
    """

    def __init__(self, select_items: Iterable[SelectItem]):
        self._items = tuple(select_items)
        self._index_by_item = {item: i for i, item in enumerate(self._items)}

    @classmethod
    def from_columns(cls, columns: Iterable[Column]) -> "DataSetHeader":
        return cls(SelectItem(column=c) for c in columns)

    @property
    def select_items(self) -> tuple[SelectItem, ...]:
        return self._items

    def size(self) -> int:
        return len(self._items)

    def get_select_item(self, index: int) -> SelectItem:
        return self._items[index]

    def index_of(self, key: SelectItem | Column | str) -> int | None:
        """
        Position of a select item in the header. A Column matches the plain
        (non-aggregate) item selecting it; a string matches an item label.
        """
        if isinstance(key, SelectItem):
            return self._index_by_item.get(key)
        if isinstance(key, Column):
            return self._index_by_item.get(SelectItem(column=key))
        for i, item in enumerate(self._items):
            if item.label == key:
                return i
        return None

    def to_arrow_schema(self) -> "pa.Schema":
        return pa.schema(
            [item.result_type.to_arrow_field(item.label) for item in self._items]
        )

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[SelectItem]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DataSetHeader):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"DataSetHeader({[item.label for item in self._items]})"
