"""
POS sale settlement: a sales order with its lines, one ledger entry, and the
inventory deltas of every sold product.

Sequence (each step completes before the next starts):
1. Insert the sales order and its lines (when an order store is wired in).
2. Insert the ledger entry (income, status "collected"). On failure delete
   the order again.
3. Compute current - sold per (product, warehouse), carrying min/max stock.
4. Write all inventory rows as one batch.
5. If the batch fails, delete the ledger entry and the order again and fail.

NOT ATOMIC: the writes go to independent stores. A crash between the
ledger insert and the compensating delete leaves an orphaned ledger entry,
and two concurrent sales reading the same pre-sale quantity lose an update.
Closing that window needs one backend-side transactional call (stored
procedure) rather than sequenced calls.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pharma_erp.core.audit import AuditLog
from pharma_erp.core.config import settings
from pharma_erp.core.exceptions import (
    CompensationError,
    InventoryWriteError,
    LedgerWriteError,
    SalesOrderWriteError,
)
from pharma_erp.schemas.sale import CartItem, InventoryDelta, SaleRequest, SettlementResult
from pharma_erp.services.interfaces import InventoryStore, LedgerStore, SalesOrderStore

logger = logging.getLogger(__name__)

SALE_TRANSACTION_TYPE = "income"
SALE_ORDER_TYPE = "pos"


class SaleSettlementService:
    def __init__(
        self,
        ledger_store: LedgerStore,
        inventory_store: InventoryStore,
        order_store: Optional[SalesOrderStore] = None,
    ):
        self.ledger_store = ledger_store
        self.inventory_store = inventory_store
        self.order_store = order_store

    def build_order_record(self, request: SaleRequest):
        order = {
            "order_type": SALE_ORDER_TYPE,
            "warehouse_id": request.warehouse_id,
            "customer_id": request.customer_id,
            "total_value": Decimal(str(request.total)),
            "payment_method": request.payment_method,
            "payment_status": "paid",
            "operational_status": "completed",
            "created_by": request.created_by,
        }
        lines = [
            {
                "product_id": line.product_id,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "discount": line.discount,
            }
            for line in request.cart
        ]
        return order, lines

    def build_ledger_record(self, request: SaleRequest, order_id: Optional[int] = None) -> Dict[str, Any]:
        if order_id is not None:
            description = f"POS Sale - Order {order_id} - Warehouse ID {request.warehouse_id}"
        else:
            description = f"POS Sale - Warehouse ID {request.warehouse_id}"
        return {
            "type": SALE_TRANSACTION_TYPE,
            "amount": Decimal(str(request.total)),
            "description": description,
            "payment_method": request.payment_method,
            # POS sales skip the approval workflow
            "status": settings.LEDGER_SALE_STATUS,
            "transaction_date": datetime.now(timezone.utc),
            "created_by": request.created_by,
            "fund_id": request.fund_id if request.fund_id is not None else settings.DEFAULT_FUND_ID,
        }

    def compute_inventory_deltas(self, cart: List[CartItem], warehouse_id: int) -> List[InventoryDelta]:
        """
        Post-sale row per product. Lines repeating a product are summed first so
        the batch carries one row per (product, warehouse). The first line's
        inventory snapshot wins; otherwise the current row is read. A pair never
        stocked counts as 0/0/0.
        """
        sold: Dict[int, int] = {}
        first_line: Dict[int, CartItem] = {}
        for line in cart:
            sold[line.product_id] = sold.get(line.product_id, 0) + line.quantity
            first_line.setdefault(line.product_id, line)

        deltas = []
        for product_id, quantity in sold.items():
            row = first_line[product_id].snapshot_for(warehouse_id)
            if row is None:
                row = self.inventory_store.get_inventory_row(product_id, warehouse_id)

            current = row.quantity if row else 0
            deltas.append(
                InventoryDelta(
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    quantity=current - quantity,
                    min_stock=row.min_stock if row else 0,
                    max_stock=row.max_stock if row else 0,
                )
            )
        return deltas

    def settle(self, request: SaleRequest) -> SettlementResult:
        order_id = None
        if self.order_store is not None:
            order, lines = self.build_order_record(request)
            try:
                order_id = self.order_store.create_order(order, lines)
            except Exception as e:
                logger.error(f"Sales order creation error: {e}")
                raise SalesOrderWriteError(f"Failed to create sales order: {e}") from e
            logger.info(f"Sales order {order_id} created with {len(lines)} lines")

        record = self.build_ledger_record(request, order_id)
        try:
            transaction_id = self.ledger_store.insert_transaction(record)
        except Exception as e:
            logger.error(f"Transaction creation error: {e}")
            self._compensate(None, order_id, request.warehouse_id, e)
            raise LedgerWriteError(f"Failed to create transaction: {e}", order_id=order_id) from e

        logger.info(
            f"Ledger entry {transaction_id} created: amount={record['amount']} "
            f"method={request.payment_method} warehouse={request.warehouse_id}"
        )

        try:
            deltas = self.compute_inventory_deltas(request.cart, request.warehouse_id)
            if deltas:
                self.inventory_store.apply_inventory_deltas(deltas)
        except Exception as e:
            logger.error(f"Inventory update error for transaction {transaction_id}: {e}")
            self._compensate(transaction_id, order_id, request.warehouse_id, e)
            raise InventoryWriteError(
                f"Failed to update inventory: {e}", transaction_id=transaction_id, order_id=order_id
            ) from e

        AuditLog.log_sale_settled(
            transaction_id,
            float(record["amount"]),
            request.payment_method,
            request.warehouse_id,
            request.created_by,
            len(request.cart),
            order_id=order_id,
        )
        return SettlementResult(
            transaction_id=transaction_id,
            order_id=order_id,
            amount=record["amount"],
            status=record["status"],
            inventory_updates=deltas,
        )

    def _compensate(
        self,
        transaction_id: Optional[int],
        order_id: Optional[int],
        warehouse_id: int,
        cause: Exception,
    ) -> None:
        """
        One best-effort delete per record written so far, ledger entry first.
        No retry, no queue. Whatever could not be deleted is reported as orphaned.
        """
        orphan_transaction = None
        orphan_order = None
        failures = []

        if transaction_id is not None:
            try:
                self.ledger_store.delete_transaction(transaction_id)
            except Exception as e:
                orphan_transaction = transaction_id
                failures.append(e)

        if order_id is not None:
            try:
                self.order_store.delete_order(order_id)
            except Exception as e:
                orphan_order = order_id
                failures.append(e)

        if failures:
            rollback_error = failures[0]
            AuditLog.log_orphaned_transaction(
                orphan_transaction, warehouse_id, str(rollback_error), order_id=orphan_order
            )
            raise CompensationError(
                f"Settlement failed ({cause}) and rollback failed ({rollback_error}); "
                f"transaction {orphan_transaction}, order {orphan_order} need manual reconciliation",
                transaction_id=orphan_transaction,
                cause=cause,
                rollback_error=rollback_error,
                order_id=orphan_order,
            ) from cause

        AuditLog.log_sale_compensated(transaction_id, warehouse_id, str(cause), order_id=order_id)
        logger.warning(
            f"Sale rolled back after failure: transaction={transaction_id} order={order_id}"
        )
