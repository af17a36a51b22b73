"""
Decoding of raw backend values into the Python value of a semantic column type.

Backends hand over values in whatever shape their client library produces:
strings from JSON payloads, epoch numbers, driver specific objects. The functions
below normalise those into the single Python type each ColumnType allows.
"""

import base64
import binascii
import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from polyquery.data.header import DataSetHeader
from polyquery.data.row import Row
from polyquery.errors import ValueConversionError
from polyquery.schema import ColumnType
from polyquery.types import Value

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"true", "t", "yes", "y", "1"})
_FALSE_STRINGS = frozenset({"false", "f", "no", "n", "0"})


def _fail(raw: Any, column_type: ColumnType, reason: str = "") -> ValueConversionError:
    message = f"Cannot convert {raw!r} to {column_type}"
    if reason:
        message = f"{message}: {reason}"
    return ValueConversionError(message)


def _decode_string(raw: Any) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8")
    return str(raw)


def _parse_number(raw: Any, column_type: ColumnType) -> Decimal | None:
    text = raw.strip() if isinstance(raw, str) else str(raw)
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        raise _fail(raw, column_type) from None


def _decode_integer(raw: Any, column_type: ColumnType) -> int | None:
    if isinstance(raw, bool):
        raise _fail(raw, column_type, "booleans are not integers")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if not raw.is_integer():
            raise _fail(raw, column_type, "value is not integral")
        return int(raw)
    number = _parse_number(raw, column_type)
    if number is None:
        return None
    if number != number.to_integral_value():
        raise _fail(raw, column_type, "value is not integral")
    return int(number)


def _decode_float(raw: Any) -> float | None:
    if isinstance(raw, bool):
        raise _fail(raw, ColumnType.FLOAT, "booleans are not numbers")
    if isinstance(raw, (int, float, Decimal)):
        return float(raw)
    number = _parse_number(raw, ColumnType.FLOAT)
    return None if number is None else float(number)


def _decode_boolean(raw: Any) -> bool | None:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        text = raw.strip().lower()
        if not text:
            return None
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise _fail(raw, ColumnType.BOOLEAN)


def _naive_utc(value: datetime) -> datetime:
    # TIMESTAMP values are naive UTC, matching pa.timestamp("us") columns
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _decode_timestamp(raw: Any) -> datetime | None:
    if isinstance(raw, datetime):
        return _naive_utc(raw)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    if isinstance(raw, bool):
        raise _fail(raw, ColumnType.TIMESTAMP)
    if isinstance(raw, (int, float)):
        # numeric timestamps are epoch milliseconds, as search indexes report them
        return _naive_utc(datetime.fromtimestamp(raw / 1000, tz=timezone.utc))
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _naive_utc(datetime.fromisoformat(text))
        except ValueError:
            pass
        if text.isdigit():
            return _naive_utc(datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc))
    raise _fail(raw, ColumnType.TIMESTAMP)


def _decode_uuid(raw: Any) -> UUID | None:
    if isinstance(raw, UUID):
        return raw
    try:
        if isinstance(raw, (bytes, bytearray)) and len(raw) == 16:
            return UUID(bytes=bytes(raw))
        text = _decode_string(raw).strip()
        return UUID(text) if text else None
    except ValueError:
        raise _fail(raw, ColumnType.UUID) from None


def _decode_binary(raw: Any) -> bytes | None:
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw)
    if isinstance(raw, str):
        # binary fields are base64 encoded in JSON payloads
        try:
            return base64.b64decode(raw, validate=True)
        except binascii.Error:
            raise _fail(raw, ColumnType.BINARY, "not valid base64") from None
    raise _fail(raw, ColumnType.BINARY)


_DECODERS: dict[ColumnType, Callable[[Any], Value]] = {
    ColumnType.STRING: _decode_string,
    ColumnType.INTEGER: lambda raw: _decode_integer(raw, ColumnType.INTEGER),
    ColumnType.BIGINT: lambda raw: _decode_integer(raw, ColumnType.BIGINT),
    ColumnType.FLOAT: _decode_float,
    ColumnType.BOOLEAN: _decode_boolean,
    ColumnType.TIMESTAMP: _decode_timestamp,
    ColumnType.UUID: _decode_uuid,
    ColumnType.BINARY: _decode_binary,
}

assert set(_DECODERS) == set(ColumnType), "every column type needs a decoder"


def decode_value(raw: Any, column_type: ColumnType) -> Value:
    """
    Decode a raw backend value into the Python type of ``column_type``.

    Raises:
        ValueConversionError: if the value cannot be represented in the column type.
    """
    if raw is None:
        return None
    return _DECODERS[column_type](raw)


def translate_record(
    record: Mapping[str, Any],
    header: DataSetHeader,
    document_id: Any = None,
) -> Row:
    """
    Translate a record keyed by field name into a Row of ``header``.

    When a document identifier is given, primary key columns take it as their
    value instead of looking it up in the record: document stores keep the
    identifier outside of the document body. Fields absent from the record
    decode to None.
    """
    values = []
    for item in header:
        column = item.column
        if column is None or item.is_aggregate:
            raise ValueError(f"Cannot translate aggregate select item {item} from a record")
        if document_id is not None and column.primary_key:
            raw = document_id
        else:
            raw = record.get(column.name)
        values.append(decode_value(raw, column.column_type))
    return Row(header, values)
