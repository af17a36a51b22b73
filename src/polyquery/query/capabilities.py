from dataclasses import dataclass

from polyquery.query.query import OperatorType

COMPARISON_OPERATORS = frozenset(
    {
        OperatorType.EQUALS_TO,
        OperatorType.DIFFERENT_FROM,
        OperatorType.LESS_THAN,
        OperatorType.LESS_THAN_OR_EQUAL,
        OperatorType.GREATER_THAN,
        OperatorType.GREATER_THAN_OR_EQUAL,
        OperatorType.IN,
    }
)


@dataclass(frozen=True)
class Capabilities:
    """
    Static declaration of what a backend can do natively. Capabilities are pure
    metadata: a backend implementation declares one instance as a class attribute
    and querying it never causes I/O.
    """

    filter_operators: frozenset[OperatorType] = frozenset()
    order_by: bool = False
    max_rows: bool = False
    count: bool = False
    create_table: bool = False
    drop_table: bool = False
    insert: bool = False
    delete: bool = False

    def supports_native_filter(self, operator: OperatorType) -> bool:
        return operator in self.filter_operators

    @property
    def supports_native_order_by(self) -> bool:
        return self.order_by

    @property
    def supports_native_max_rows(self) -> bool:
        return self.max_rows

    @property
    def supports_native_count(self) -> bool:
        return self.count

    @property
    def supports_create_table(self) -> bool:
        return self.create_table

    @property
    def supports_drop_table(self) -> bool:
        return self.drop_table

    @property
    def supports_insert(self) -> bool:
        return self.insert

    @property
    def supports_delete(self) -> bool:
        return self.delete

    @property
    def is_updateable(self) -> bool:
        return self.create_table or self.drop_table or self.insert or self.delete


# a store that can only scan: every query feature is post-processed
SCAN_ONLY = Capabilities()
