import logging
from collections.abc import Iterable
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from polyquery.utils.lazy_module import LazyModule

if TYPE_CHECKING:
    import pyarrow as pa
else:
    pa = LazyModule("pyarrow")

logger = logging.getLogger(__name__)

# field metadata key used to carry the semantic type through arrow schemas
ARROW_TYPE_METADATA_KEY = b"polyquery.column_type"

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1


class ColumnType(Enum):
    """The closed set of semantic column types."""

    STRING = "string"
    INTEGER = "integer"
    BIGINT = "bigint"
    FLOAT = "float"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    UUID = "uuid"
    BINARY = "binary"

    def __str__(self) -> str:
        return self.name

    @property
    def is_number(self) -> bool:
        return self in (ColumnType.INTEGER, ColumnType.BIGINT, ColumnType.FLOAT)

    @property
    def is_time_based(self) -> bool:
        return self is ColumnType.TIMESTAMP

    @property
    def python_types(self) -> tuple[type, ...]:
        return _PYTHON_TYPES[self]

    def is_valid_value(self, value: object) -> bool:
        """Check whether a decoded Python value conforms to this type. None always conforms."""
        if value is None:
            return True
        if isinstance(value, bool) and self is not ColumnType.BOOLEAN:
            return False
        return isinstance(value, self.python_types)

    def to_arrow(self) -> "pa.DataType":
        return _ARROW_FACTORIES[self]()

    def to_arrow_field(self, name: str, nullable: bool = True) -> "pa.Field":
        """Build a pyarrow field that records this semantic type in its metadata."""
        return pa.field(
            name,
            self.to_arrow(),
            nullable=nullable,
            metadata={ARROW_TYPE_METADATA_KEY: self.value.encode()},
        )

    @classmethod
    def from_arrow(cls, arrow_type: "pa.DataType") -> "ColumnType":
        """Map a pyarrow type onto the semantic type set."""
        if getattr(arrow_type, "extension_name", None) == "arrow.uuid":
            return cls.UUID
        if pa.types.is_boolean(arrow_type):
            return cls.BOOLEAN
        if pa.types.is_integer(arrow_type):
            if arrow_type.bit_width < 32 or arrow_type == pa.int32():
                return cls.INTEGER
            return cls.BIGINT
        if pa.types.is_floating(arrow_type) or pa.types.is_decimal(arrow_type):
            return cls.FLOAT
        if pa.types.is_timestamp(arrow_type) or pa.types.is_date(arrow_type):
            return cls.TIMESTAMP
        if (
            pa.types.is_binary(arrow_type)
            or pa.types.is_large_binary(arrow_type)
            or pa.types.is_fixed_size_binary(arrow_type)
        ):
            return cls.BINARY
        if pa.types.is_string(arrow_type) or pa.types.is_large_string(arrow_type):
            return cls.STRING
        logger.debug(f"No semantic type for arrow type {arrow_type}, using STRING")
        return cls.STRING

    @classmethod
    def from_arrow_field(cls, field: "pa.Field") -> "ColumnType":
        """Like from_arrow, but honours a semantic type recorded in the field metadata."""
        metadata = field.metadata or {}
        if ARROW_TYPE_METADATA_KEY in metadata:
            return cls(metadata[ARROW_TYPE_METADATA_KEY].decode())
        return cls.from_arrow(field.type)

    @classmethod
    def from_native_name(cls, native_name: str) -> "ColumnType":
        """
        Map a type name reported by a backend's metadata API (e.g. ``uuid``,
        ``text``, ``long``, ``date``) onto the semantic type set.

        Raises:
            ValueError: if the name is not known.
        """
        try:
            return _NATIVE_NAMES[native_name.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown native type name: {native_name!r}") from None

    @classmethod
    def infer(cls, values: Iterable[object]) -> tuple["ColumnType", bool]:
        """
        Infer the semantic type of a column from sampled values.

        Returns:
            tuple of the inferred type and whether the column is nullable. A column
            with no non-null samples is a nullable STRING; conflicting samples
            widen INTEGER -> BIGINT -> FLOAT and otherwise fall back to STRING.
        """
        observed: set[ColumnType] = set()
        nullable = False
        for value in values:
            if value is None:
                nullable = True
                continue
            observed.add(_type_of_value(value))

        if not observed:
            return cls.STRING, True
        if len(observed) == 1:
            return observed.pop(), nullable
        if observed <= {cls.INTEGER, cls.BIGINT}:
            return cls.BIGINT, nullable
        if observed <= {cls.INTEGER, cls.BIGINT, cls.FLOAT}:
            return cls.FLOAT, nullable
        return cls.STRING, nullable


def _type_of_value(value: object) -> ColumnType:
    if isinstance(value, bool):
        return ColumnType.BOOLEAN
    if isinstance(value, int):
        if _INT32_MIN <= value <= _INT32_MAX:
            return ColumnType.INTEGER
        return ColumnType.BIGINT
    if isinstance(value, float):
        return ColumnType.FLOAT
    if isinstance(value, (datetime, date)):
        return ColumnType.TIMESTAMP
    if isinstance(value, UUID):
        return ColumnType.UUID
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ColumnType.BINARY
    return ColumnType.STRING


_PYTHON_TYPES: dict[ColumnType, tuple[type, ...]] = {
    ColumnType.STRING: (str,),
    ColumnType.INTEGER: (int,),
    ColumnType.BIGINT: (int,),
    ColumnType.FLOAT: (float, int),
    ColumnType.BOOLEAN: (bool,),
    ColumnType.TIMESTAMP: (datetime,),
    ColumnType.UUID: (UUID,),
    ColumnType.BINARY: (bytes,),
}

_NATIVE_NAMES: dict[str, ColumnType] = {
    # strings
    "string": ColumnType.STRING,
    "text": ColumnType.STRING,
    "varchar": ColumnType.STRING,
    "ascii": ColumnType.STRING,
    "keyword": ColumnType.STRING,
    "inet": ColumnType.STRING,
    # integers
    "int": ColumnType.INTEGER,
    "integer": ColumnType.INTEGER,
    "short": ColumnType.INTEGER,
    "smallint": ColumnType.INTEGER,
    "tinyint": ColumnType.INTEGER,
    "byte": ColumnType.INTEGER,
    "long": ColumnType.BIGINT,
    "bigint": ColumnType.BIGINT,
    "counter": ColumnType.BIGINT,
    "varint": ColumnType.BIGINT,
    # floating point
    "float": ColumnType.FLOAT,
    "double": ColumnType.FLOAT,
    "half_float": ColumnType.FLOAT,
    "decimal": ColumnType.FLOAT,
    # others
    "boolean": ColumnType.BOOLEAN,
    "bool": ColumnType.BOOLEAN,
    "date": ColumnType.TIMESTAMP,
    "timestamp": ColumnType.TIMESTAMP,
    "datetime": ColumnType.TIMESTAMP,
    "uuid": ColumnType.UUID,
    "timeuuid": ColumnType.UUID,
    "blob": ColumnType.BINARY,
    "binary": ColumnType.BINARY,
}

_ARROW_FACTORIES = {
    ColumnType.STRING: lambda: pa.large_string(),
    ColumnType.INTEGER: lambda: pa.int32(),
    ColumnType.BIGINT: lambda: pa.int64(),
    ColumnType.FLOAT: lambda: pa.float64(),
    ColumnType.BOOLEAN: lambda: pa.bool_(),
    ColumnType.TIMESTAMP: lambda: pa.timestamp("us"),
    # UUIDs travel as their canonical string form, tagged via field metadata
    ColumnType.UUID: lambda: pa.large_string(),
    ColumnType.BINARY: lambda: pa.large_binary(),
}
