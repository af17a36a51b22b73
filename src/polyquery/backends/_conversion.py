from typing import Any
from uuid import UUID

from polyquery.types import Value


def to_arrow_value(value: Value) -> Any:
    """Python value of a Row as stored in an arrow column. UUIDs are kept as strings."""
    if isinstance(value, UUID):
        return str(value)
    return value
