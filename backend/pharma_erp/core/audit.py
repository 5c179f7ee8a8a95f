"""
Audit logging for money and stock movements.

Every settlement, compensation and allocation confirmation is written as one
JSON line on the "audit" logger so it can be shipped to centralized logging
and used for manual reconciliation.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Separate logger for audit events
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for ledger and inventory events."""

    @staticmethod
    def log_sale_settled(
        transaction_id: int,
        amount: float,
        payment_method: str,
        warehouse_id: int,
        created_by: Optional[str],
        line_count: int,
        order_id: Optional[int] = None,
    ):
        """
        Usage:
            AuditLog.log_sale_settled(42, 150000, "cash", 1, "emp-7", 3, order_id=17)
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": "sale.settled",
            "transaction_id": transaction_id,
            "order_id": order_id,
            "amount": amount,
            "payment_method": payment_method,
            "warehouse_id": warehouse_id,
            "created_by": created_by,
            "line_count": line_count,
        }
        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_sale_compensated(
        transaction_id: Optional[int], warehouse_id: int, reason: str, order_id: Optional[int] = None
    ):
        """Earlier settlement writes deleted because a later step failed."""
        log_entry = {
            "timestamp": _now(),
            "event_severity": "WARNING",
            "event_type": "sale.compensated",
            "transaction_id": transaction_id,
            "order_id": order_id,
            "warehouse_id": warehouse_id,
            "reason": reason,
        }
        audit_logger.warning(json.dumps(log_entry))

    @staticmethod
    def log_orphaned_transaction(
        transaction_id: Optional[int], warehouse_id: int, reason: str, order_id: Optional[int] = None
    ):
        """
        Compensation failed: the ledger entry and/or sales order stay without
        inventory effect.

        These lines are the input for manual reconciliation.
        """
        log_entry = {
            "timestamp": _now(),
            "event_severity": "CRITICAL",
            "event_type": "sale.orphaned_transaction",
            "transaction_id": transaction_id,
            "order_id": order_id,
            "warehouse_id": warehouse_id,
            "reason": reason,
        }
        audit_logger.critical(json.dumps(log_entry))

    @staticmethod
    def log_allocation_confirmed(
        combo_id: int,
        set_count: int,
        warehouse_id: int,
        selections: List[Dict[str, Any]],
    ):
        log_entry = {
            "timestamp": _now(),
            "event_type": "allocation.confirmed",
            "combo_id": combo_id,
            "set_count": set_count,
            "warehouse_id": warehouse_id,
            "selections": selections,
        }
        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_lots_consumed(warehouse_id: int, consumed: Dict[int, int]):
        """consumed maps lot_id -> units taken."""
        log_entry = {
            "timestamp": _now(),
            "event_type": "lots.consumed",
            "warehouse_id": warehouse_id,
            "consumed": {str(k): v for k, v in consumed.items()},
        }
        audit_logger.info(json.dumps(log_entry))
