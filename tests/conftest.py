"""
Shared fixtures for polyquery tests.
"""

import uuid
from datetime import datetime

import pyarrow as pa
import pytest

from polyquery import Column, ColumnType, Config, DataContext, Schema, Table
from polyquery.backends import ArrowTableBackend
from polyquery.data import DataSetHeader, InMemoryDataSet, Row
from polyquery.query import SCAN_ONLY

SONG_IDS = [
    uuid.UUID("7b7c3b57-0000-4000-8000-000000000003"),
    uuid.UUID("1f0a3a64-0000-4000-8000-000000000001"),
    uuid.UUID("4c2d9e11-0000-4000-8000-000000000002"),
]


def songs_arrow_table() -> pa.Table:
    """Three songs, deliberately stored out of id order."""
    schema = pa.schema(
        [
            ColumnType.UUID.to_arrow_field("id", nullable=False),
            ColumnType.STRING.to_arrow_field("title"),
            ColumnType.BOOLEAN.to_arrow_field("hit"),
            ColumnType.FLOAT.to_arrow_field("duration"),
            ColumnType.INTEGER.to_arrow_field("position"),
            ColumnType.TIMESTAMP.to_arrow_field("creationtime"),
        ]
    )
    return pa.Table.from_pylist(
        [
            {
                "id": str(SONG_IDS[0]),
                "title": "Yellow Submarine",
                "hit": True,
                "duration": 160.5,
                "position": 3,
                "creationtime": datetime(1966, 8, 5),
            },
            {
                "id": str(SONG_IDS[1]),
                "title": "Hey Jude",
                "hit": True,
                "duration": 431.0,
                "position": 1,
                "creationtime": datetime(1968, 8, 26),
            },
            {
                "id": str(SONG_IDS[2]),
                "title": "Julia",
                "hit": False,
                "duration": None,
                "position": None,
                "creationtime": datetime(1968, 11, 22),
            },
        ],
        schema=schema,
    )


@pytest.fixture
def song_ids() -> list[uuid.UUID]:
    return list(SONG_IDS)


@pytest.fixture
def songs_table() -> pa.Table:
    return songs_arrow_table()


@pytest.fixture
def scan_only_backend(songs_table) -> ArrowTableBackend:
    """A backend that can do nothing natively except scanning (and mutations)."""
    return ArrowTableBackend(
        {"songs": songs_table},
        capabilities=SCAN_ONLY,
        primary_keys={"songs": ["id"]},
    )


@pytest.fixture
def full_backend(songs_table) -> ArrowTableBackend:
    return ArrowTableBackend({"songs": songs_table}, primary_keys={"songs": ["id"]})


@pytest.fixture
def scan_only_context(scan_only_backend) -> DataContext:
    return DataContext(scan_only_backend)


@pytest.fixture
def full_context(full_backend) -> DataContext:
    return DataContext(full_backend)


@pytest.fixture
def paged_backend(songs_table) -> ArrowTableBackend:
    return ArrowTableBackend(
        {"songs": songs_table},
        primary_keys={"songs": ["id"]},
        paged=True,
        config=Config(scroll_page_size=2),
    )


@pytest.fixture
def numbers_table() -> Table:
    return Table(
        "numbers",
        [
            Column("n", ColumnType.INTEGER),
            Column("label", ColumnType.STRING),
        ],
    )


@pytest.fixture
def numbers_header(numbers_table) -> DataSetHeader:
    return DataSetHeader.from_columns(numbers_table.columns)


def make_rows(header: DataSetHeader, values: list[tuple]) -> list[Row]:
    return [Row(header, list(v)) for v in values]


@pytest.fixture
def numbers_dataset(numbers_header):
    """Five rows: n = 5, 3, None, 1, 4."""

    def _make(**kwargs) -> InMemoryDataSet:
        return InMemoryDataSet(
            numbers_header,
            make_rows(
                numbers_header,
                [(5, "five"), (3, "three"), (None, "null"), (1, "one"), (4, "four")],
            ),
            **kwargs,
        )

    return _make


@pytest.fixture
def songs_schema() -> Schema:
    return ArrowTableBackend(
        {"songs": songs_arrow_table()}, primary_keys={"songs": ["id"]}
    ).discover_schema()
