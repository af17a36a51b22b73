from collections.abc import Iterator, Sequence
from typing import Any

from polyquery.data.header import DataSetHeader
from polyquery.query.query import SelectItem
from polyquery.schema import Column
from polyquery.types import Value


class Row:
    """
    A fixed-length sequence of values aligned one to one with a DataSet header.
    Every value is either None or conforms to the type of its select item.
    """

    __slots__ = ("_header", "_values")

    def __init__(self, header: DataSetHeader, values: Sequence[Value]):
        if len(values) != header.size():
            raise ValueError(
                f"Row has {len(values)} values but header has {header.size()} select items"
            )
        for item, value in zip(header, values):
            if not item.result_type.is_valid_value(value):
                raise TypeError(
                    f"Value {value!r} of type {type(value).__name__} does not conform "
                    f"to {item.result_type} for select item {item.label!r}"
                )
        self._header = header
        self._values = tuple(values)

    @property
    def header(self) -> DataSetHeader:
        return self._header

    @property
    def values(self) -> tuple[Value, ...]:
        return self._values

    def get_value(self, key: int | SelectItem | Column | str) -> Value:
        """
        Get a value by position, select item, column or select item label.

        Raises:
            KeyError: if the key does not identify a select item of this row.
        """
        if isinstance(key, int):
            return self._values[key]
        index = self._header.index_of(key)
        if index is None:
            raise KeyError(f"{key} is not part of this row's header {self._header}")
        return self._values[index]

    def as_dict(self) -> dict[str, Value]:
        return {item.label: value for item, value in zip(self._header, self._values)}

    def __getitem__(self, key: int | SelectItem | Column | str) -> Value:
        return self.get_value(key)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Value]:
        return iter(self._values)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self._values == other._values and self._header == other._header

    def __hash__(self) -> int:
        return hash(self._values)

    def __repr__(self) -> str:
        return f"Row[values=[{', '.join(str(v) for v in self._values)}]]"
