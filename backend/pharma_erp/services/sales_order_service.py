"""Sales orders written by POS settlement, and their read-back."""
import logging
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.orm import Session, selectinload

from pharma_erp.core.exceptions import NotFoundError
from pharma_erp.models.sales_order import SalesOrder, SalesOrderItem

logger = logging.getLogger(__name__)


def create_sales_order(db: Session, order: Dict[str, Any], lines: List[Dict[str, Any]]) -> SalesOrder:
    """Order header and every line in one commit."""
    entry = SalesOrder(
        order_type=order.get("order_type", "pos"),
        warehouse_id=order.get("warehouse_id"),
        customer_id=order.get("customer_id"),
        total_value=Decimal(str(order["total_value"])),
        payment_method=order.get("payment_method"),
        payment_status=order.get("payment_status", "paid"),
        operational_status=order.get("operational_status", "completed"),
        created_by=order.get("created_by"),
        items=[
            SalesOrderItem(
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_price=Decimal(str(line.get("unit_price", 0))),
                discount=Decimal(str(line.get("discount", 0))),
            )
            for line in lines
        ],
    )
    try:
        db.add(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(entry)
    return entry


def get_sales_order(db: Session, order_id: int) -> SalesOrder:
    order = (
        db.query(SalesOrder)
        .options(selectinload(SalesOrder.items))
        .filter(SalesOrder.id == order_id)
        .first()
    )
    if order is None:
        raise NotFoundError(f"Sales order {order_id}")
    return order


def delete_sales_order(db: Session, order_id: int) -> None:
    order = get_sales_order(db, order_id)
    try:
        db.delete(order)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Sales order {order_id} deleted")


class SqlSalesOrderStore:
    """SalesOrderStore over a SQLAlchemy session. Every call commits on its own."""

    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: Dict[str, Any], lines: List[Dict[str, Any]]) -> int:
        return create_sales_order(self.db, order, lines).id

    def delete_order(self, order_id: int) -> None:
        delete_sales_order(self.db, order_id)
