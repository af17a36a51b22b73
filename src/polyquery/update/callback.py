import logging
from typing import Any

from polyquery.errors import BackendCallError, UnsupportedOperationError
from polyquery.protocols.backend_protocols import UpdateableBackend
from polyquery.query.capabilities import Capabilities
from polyquery.query.planner import QueryPlanner
from polyquery.schema import Schema, Table
from polyquery.update.builders import (
    RowDeletionBuilder,
    RowInsertionBuilder,
    TableCreationBuilder,
    TableDropBuilder,
)

logger = logging.getLogger(__name__)


class UpdateCallback:
    """
    Hands out mutation builders during an update script.

    Every builder factory checks the backend's capabilities first: an unsupported
    mutation raises UnsupportedOperationError at once, before anything is sent to
    the backend.
    """

    def __init__(self, backend: UpdateableBackend, schema: Schema):
        self._backend = backend
        self._schema = schema
        self._planner = QueryPlanner(schema, backend.capabilities)
        self._backend_calls = 0

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def capabilities(self) -> Capabilities:
        return self._backend.capabilities

    @property
    def planner(self) -> QueryPlanner:
        return self._planner

    @property
    def backend_calls(self) -> int:
        """Number of mutation primitives issued to the backend through this callback."""
        return self._backend_calls

    def is_create_table_supported(self) -> bool:
        return self.capabilities.supports_create_table

    def is_drop_table_supported(self) -> bool:
        return self.capabilities.supports_drop_table

    def is_insert_supported(self) -> bool:
        return self.capabilities.supports_insert

    def is_delete_supported(self) -> bool:
        return self.capabilities.supports_delete

    def _require(self, supported: bool, operation: str) -> None:
        if not supported:
            raise UnsupportedOperationError(
                f"{type(self._backend).__name__} does not support {operation}"
            )

    def _resolve_table(self, table: str | Table) -> Table:
        name = table.name if isinstance(table, Table) else table
        return self._schema.get_table_by_name(name)

    def create_table(self, name: str) -> TableCreationBuilder:
        self._require(self.is_create_table_supported(), "creating tables")
        return TableCreationBuilder(self, name)

    def drop_table(self, table: str | Table) -> TableDropBuilder:
        self._require(self.is_drop_table_supported(), "dropping tables")
        return TableDropBuilder(self, self._resolve_table(table))

    def insert_into(self, table: str | Table) -> RowInsertionBuilder:
        self._require(self.is_insert_supported(), "inserting rows")
        return RowInsertionBuilder(self, self._resolve_table(table))

    def delete_from(self, table: str | Table) -> RowDeletionBuilder:
        self._require(self.is_delete_supported(), "deleting rows")
        return RowDeletionBuilder(self, self._resolve_table(table))

    def _call_backend(self, operation: str, primitive: str, intent: Any) -> None:
        """
        Issue one mutation primitive. Raised exceptions and unsuccessful results
        both surface as BackendCallError.
        """
        self._backend_calls += 1
        try:
            succeeded = getattr(self._backend, primitive)(intent)
        except UnsupportedOperationError:
            raise
        except Exception as e:
            logger.error(f"Backend call to {operation} failed: {e}")
            raise BackendCallError(f"Could not {operation} on {type(self._backend).__name__}") from e
        if succeeded is False:
            logger.error(f"Backend reported failure to {operation}")
            raise BackendCallError(f"Backend reported failure to {operation}")
        logger.debug(f"Performed {operation} on {type(self._backend).__name__}")
