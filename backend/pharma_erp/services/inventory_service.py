"""Inventory and lot reads/writes against the database. Used by allocation and settlement."""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from pharma_erp.models.inventory import Inventory
from pharma_erp.models.product_lot import ProductLot
from pharma_erp.schemas.lots import LotRecord
from pharma_erp.schemas.sale import InventoryDelta, InventorySnapshot

logger = logging.getLogger(__name__)


def get_product_lots(db: Session, product_id: int, warehouse_id: int) -> List[ProductLot]:
    return (
        db.query(ProductLot)
        .filter(ProductLot.product_id == product_id, ProductLot.warehouse_id == warehouse_id)
        .order_by(ProductLot.id)
        .all()
    )


def get_inventory_item(db: Session, product_id: int, warehouse_id: int) -> Optional[Inventory]:
    return (
        db.query(Inventory)
        .filter(Inventory.product_id == product_id, Inventory.warehouse_id == warehouse_id)
        .first()
    )


def upsert_inventory(db: Session, deltas: List[InventoryDelta]) -> None:
    """
    Write every row in one commit, keyed on (product_id, warehouse_id).

    min_stock / max_stock are always written from the delta, never defaulted.
    Any failure rolls back the whole batch and is re-raised.
    """
    try:
        for delta in deltas:
            row = get_inventory_item(db, delta.product_id, delta.warehouse_id)
            if row is None:
                row = Inventory(product_id=delta.product_id, warehouse_id=delta.warehouse_id)
                db.add(row)
            row.quantity = delta.quantity
            row.min_stock = delta.min_stock
            row.max_stock = delta.max_stock
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.debug(f"Upserted {len(deltas)} inventory rows")


class SqlInventoryStore:
    """LotSource + InventoryStore over a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def get_lots_for_product(self, product_id: int, warehouse_id: int) -> List[LotRecord]:
        return [
            LotRecord(
                lot_id=lot.id,
                lot_number=lot.lot_number,
                batch_code=lot.batch_code,
                expiry_date=lot.expiry_date,
                quantity=lot.quantity or 0,
            )
            for lot in get_product_lots(self.db, product_id, warehouse_id)
        ]

    def get_inventory_row(self, product_id: int, warehouse_id: int) -> Optional[InventorySnapshot]:
        row = get_inventory_item(self.db, product_id, warehouse_id)
        if row is None:
            return None
        return InventorySnapshot(
            warehouse_id=row.warehouse_id,
            quantity=row.quantity or 0,
            min_stock=row.min_stock,
            max_stock=row.max_stock,
        )

    def apply_inventory_deltas(self, deltas: List[InventoryDelta]) -> None:
        upsert_inventory(self.db, deltas)
