import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from polyquery.schema.column_types import ColumnType
from polyquery.schema.schema import Column, Table

logger = logging.getLogger(__name__)


def discover_table_from_records(
    name: str,
    records: Iterable[Mapping[str, Any]],
    primary_keys: Sequence[str] = (),
) -> Table | None:
    """
    Build a table definition from sampled records of a schemaless store.

    The column set is the union of the property names seen across all records,
    in order of first appearance. Each column type is inferred from the values
    sampled for it; a property missing from some records makes the column nullable.

    Returns:
        the discovered table, or None if there were no records to sample.
    """
    samples: dict[str, list[Any]] = {}
    n_records = 0
    for record in records:
        n_records += 1
        for key in record:
            samples.setdefault(key, [])
        for key, values in samples.items():
            values.append(record.get(key))

    if n_records == 0:
        logger.info(f"No records sampled for {name!r}, skipping table")
        return None

    columns = []
    for key, values in samples.items():
        # properties that first appeared late were absent from earlier records
        missing = n_records - len(values)
        column_type, nullable = ColumnType.infer(values)
        columns.append(
            Column(
                name=key,
                column_type=column_type,
                nullable=nullable or missing > 0,
                primary_key=key in primary_keys,
            )
        )
    logger.info(
        f"Discovered table {name!r} with {len(columns)} columns from {n_records} records"
    )
    return Table(name, columns)
