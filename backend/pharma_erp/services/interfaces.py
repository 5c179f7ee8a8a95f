"""
Collaborator contracts for the allocation and settlement flows.

The workflows depend on these protocols, never on SQLAlchemy directly. The
SQL-backed stores in inventory_service, ledger_service and sales_order_service
implement them, and tests substitute in-memory fakes to inject failures.
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pharma_erp.schemas.lots import LotRecord
from pharma_erp.schemas.sale import InventoryDelta, InventorySnapshot


@runtime_checkable
class LotSource(Protocol):
    def get_lots_for_product(self, product_id: int, warehouse_id: int) -> List[LotRecord]:
        """All lots of a product in a warehouse, whatever their quantity."""
        ...


@runtime_checkable
class InventoryStore(Protocol):
    def get_inventory_row(self, product_id: int, warehouse_id: int) -> Optional[InventorySnapshot]:
        """Current inventory row, or None when the pair was never stocked."""
        ...

    def apply_inventory_deltas(self, deltas: List[InventoryDelta]) -> None:
        """Write every row as one batch. Raises on failure."""
        ...


@runtime_checkable
class LedgerStore(Protocol):
    def insert_transaction(self, record: Dict[str, Any]) -> int:
        """Persist one ledger entry and return its id. Raises on failure."""
        ...

    def delete_transaction(self, transaction_id: int) -> None:
        """Remove a ledger entry. Raises on failure."""
        ...


@runtime_checkable
class SalesOrderStore(Protocol):
    def create_order(self, order: Dict[str, Any], lines: List[Dict[str, Any]]) -> int:
        """Persist the order header with all its lines and return the order id. Raises on failure."""
        ...

    def delete_order(self, order_id: int) -> None:
        """Remove an order together with its lines. Raises on failure."""
        ...
