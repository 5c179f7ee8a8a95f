"""
Lot receipt, lot quantity maintenance and lot consumption.

The inventory row of a lot-managed product mirrors the sum of its lots in that
warehouse; every lot write here re-syncs it, leaving min/max thresholds alone.
"""
import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from pharma_erp.core.audit import AuditLog
from pharma_erp.core.exceptions import InsufficientLotQuantityError, NotFoundError
from pharma_erp.models.inventory import Inventory
from pharma_erp.models.product import Product
from pharma_erp.models.product_lot import ProductLot
from pharma_erp.schemas.lots import LotCreate, LotSelection
from pharma_erp.services.expiry import expiry_status
from pharma_erp.services.inventory_service import get_inventory_item

logger = logging.getLogger(__name__)


def _sync_without_commit(db: Session, product_id: int, warehouse_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(ProductLot.quantity), 0))
        .filter(ProductLot.product_id == product_id, ProductLot.warehouse_id == warehouse_id)
        .scalar()
    ) or 0
    row = get_inventory_item(db, product_id, warehouse_id)
    if row is None:
        row = Inventory(product_id=product_id, warehouse_id=warehouse_id, min_stock=0, max_stock=0)
        db.add(row)
    row.quantity = int(total)
    return int(total)


def sync_lot_quantity_to_inventory(db: Session, product_id: int, warehouse_id: int) -> int:
    """Set inventory quantity to the sum of the product's lots. Returns that total."""
    try:
        total = _sync_without_commit(db, product_id, warehouse_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return total


def create_product_lot(db: Session, data: LotCreate) -> ProductLot:
    """Receive a new lot and mirror it into inventory."""
    if db.query(Product).filter(Product.id == data.product_id).first() is None:
        raise NotFoundError(f"Product {data.product_id}")

    lot = ProductLot(
        product_id=data.product_id,
        warehouse_id=data.warehouse_id,
        lot_number=data.lot_number.strip(),
        batch_code=data.batch_code,
        expiry_date=data.expiry_date,
        received_date=data.received_date or date.today(),
        quantity=data.quantity,
    )
    try:
        db.add(lot)
        db.flush()
        _sync_without_commit(db, data.product_id, data.warehouse_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(lot)
    logger.info(f"Lot {lot.lot_number} received: product={lot.product_id} qty={lot.quantity}")
    return lot


def update_lot_quantity(db: Session, lot_id: int, quantity: int) -> ProductLot:
    if quantity < 0:
        raise ValueError("Lot quantity cannot be negative")
    lot = db.query(ProductLot).filter(ProductLot.id == lot_id).first()
    if lot is None:
        raise NotFoundError(f"Lot {lot_id}")
    try:
        lot.quantity = quantity
        _sync_without_commit(db, lot.product_id, lot.warehouse_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(lot)
    return lot


def consume_lot_selections(db: Session, selections: List[LotSelection], warehouse_id: int) -> Dict[int, int]:
    """
    Decrement each selected lot and re-sync inventory, all in one commit.

    Selections for the same lot are summed first. Raises
    InsufficientLotQuantityError (nothing written) when a lot no longer holds
    enough stock.
    """
    wanted: Dict[int, int] = defaultdict(int)
    for s in selections:
        wanted[s.lot_id] += s.quantity

    touched = set()
    try:
        for lot_id, quantity in wanted.items():
            lot = (
                db.query(ProductLot)
                .filter(ProductLot.id == lot_id, ProductLot.warehouse_id == warehouse_id)
                .first()
            )
            if lot is None:
                raise NotFoundError(f"Lot {lot_id} in warehouse {warehouse_id}")
            if (lot.quantity or 0) < quantity:
                raise InsufficientLotQuantityError(
                    f"Lot {lot.lot_number} holds {lot.quantity}, {quantity} requested"
                )
            lot.quantity = lot.quantity - quantity
            touched.add(lot.product_id)

        for product_id in touched:
            _sync_without_commit(db, product_id, warehouse_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    consumed = dict(wanted)
    AuditLog.log_lots_consumed(warehouse_id, consumed)
    return consumed


def get_expiring_lots(
    db: Session,
    days: int,
    warehouse_id: Optional[int] = None,
    today: Optional[date] = None,
) -> List[dict]:
    """Lots with stock that expire within `days` (already expired included), soonest first."""
    today = today or date.today()
    q = (
        db.query(ProductLot, Product)
        .join(Product, ProductLot.product_id == Product.id)
        .filter(
            ProductLot.expiry_date.isnot(None),
            ProductLot.expiry_date <= today + timedelta(days=days),
            ProductLot.quantity > 0,
        )
    )
    if warehouse_id is not None:
        q = q.filter(ProductLot.warehouse_id == warehouse_id)

    return [
        {
            "lot_id": lot.id,
            "product_id": product.id,
            "product_name": product.name,
            "warehouse_id": lot.warehouse_id,
            "lot_number": lot.lot_number,
            "expiry_date": lot.expiry_date,
            "quantity": lot.quantity,
            "expiry": expiry_status(lot.expiry_date, today).as_dict(),
        }
        for lot, product in q.order_by(ProductLot.expiry_date.asc(), ProductLot.id).all()
    ]
