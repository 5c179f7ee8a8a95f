"""Combo catalog and in-cart combo detection."""
import logging
from decimal import Decimal
from typing import Dict, List

from sqlalchemy.orm import Session, selectinload

from pharma_erp.core.exceptions import DuplicateComboItemError, NotFoundError
from pharma_erp.models.combo import Combo, ComboItem
from pharma_erp.models.product import Product
from pharma_erp.schemas.combo import (
    CartLine,
    ComboCreate,
    ComboDefinition,
    ComboItemCreate,
    ComboItemDefinition,
    ComboUpdate,
)

logger = logging.getLogger(__name__)


def _combo_query(db: Session):
    return db.query(Combo).options(selectinload(Combo.items).selectinload(ComboItem.product))


def get_active_combos(db: Session) -> List[Combo]:
    return (
        _combo_query(db)
        .filter(Combo.is_active.is_(True))
        .order_by(Combo.created_at.desc(), Combo.id.desc())
        .all()
    )


def get_combo(db: Session, combo_id: int) -> Combo:
    combo = _combo_query(db).filter(Combo.id == combo_id).first()
    if combo is None:
        raise NotFoundError(f"Combo {combo_id}")
    return combo


def _check_products(db: Session, items: List[ComboItemCreate]) -> None:
    ids = {item.product_id for item in items}
    if not ids:
        return
    found = {pid for (pid,) in db.query(Product.id).filter(Product.id.in_(ids)).all()}
    missing = sorted(ids - found)
    if missing:
        raise NotFoundError(f"Products {missing}")


def create_combo(db: Session, data: ComboCreate) -> Combo:
    _check_products(db, data.items)
    combo = Combo(
        name=data.name.strip(),
        description=data.description,
        combo_price=data.combo_price,
        is_active=data.is_active,
        items=[ComboItem(product_id=i.product_id, quantity=i.quantity) for i in data.items],
    )
    try:
        db.add(combo)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(combo)
    logger.info(f"Combo {combo.id} '{combo.name}' created with {len(data.items)} items")
    return combo


def update_combo(db: Session, combo_id: int, data: ComboUpdate) -> Combo:
    combo = get_combo(db, combo_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(combo, field, value)
    db.commit()
    db.refresh(combo)
    return combo


def add_combo_items(db: Session, combo_id: int, items: List[ComboItemCreate]) -> Combo:
    """Append new constituents. A product already in the combo is rejected, not merged."""
    combo = get_combo(db, combo_id)
    listed = {item.product_id for item in combo.items}
    for item in items:
        if item.product_id in listed:
            raise DuplicateComboItemError(f"Product {item.product_id} is already part of combo {combo.name}")
        listed.add(item.product_id)
    _check_products(db, items)
    for item in items:
        combo.items.append(ComboItem(product_id=item.product_id, quantity=item.quantity))
    db.commit()
    db.refresh(combo)
    return combo


def remove_combo_items(db: Session, combo_id: int, product_ids: List[int]) -> Combo:
    combo = get_combo(db, combo_id)
    drop = set(product_ids)
    combo.items = [item for item in combo.items if item.product_id not in drop]
    db.commit()
    db.refresh(combo)
    return combo


def deactivate_combo(db: Session, combo_id: int) -> Combo:
    """Soft delete."""
    combo = get_combo(db, combo_id)
    combo.is_active = False
    db.commit()
    db.refresh(combo)
    logger.info(f"Combo {combo_id} deactivated")
    return combo


def to_combo_definition(combo: Combo) -> ComboDefinition:
    """Allocation input: lot tracking comes from the product's lot-management flag."""
    return ComboDefinition(
        id=combo.id,
        name=combo.name,
        is_active=bool(combo.is_active),
        items=[
            ComboItemDefinition(
                product_id=item.product_id,
                product_name=item.product.name if item.product else "",
                quantity=item.quantity,
                lot_tracked=bool(item.product and item.product.enable_lot_management),
            )
            for item in combo.items
        ],
    )


def detect_combos_in_cart(db: Session, cart_items: List[CartLine]) -> List[Dict]:
    """
    Active combos whose every item is in the cart with at least its per-set quantity.
    Reports the undiscounted price and the discount the combo price gives.
    """
    in_cart: Dict[int, int] = {}
    for line in cart_items:
        in_cart[line.product_id] = in_cart.get(line.product_id, 0) + line.quantity

    matches = []
    for combo in get_active_combos(db):
        if not combo.items:
            continue
        if any(in_cart.get(item.product_id, 0) < item.quantity for item in combo.items):
            continue

        original = sum(
            (Decimal(str(item.product.retail_price or 0)) * item.quantity for item in combo.items if item.product),
            Decimal("0"),
        )
        combo_price = Decimal(str(combo.combo_price or 0))
        discount = original - combo_price
        percentage = float(discount / original * 100) if original > 0 else 0.0
        matches.append({
            "combo_id": combo.id,
            "name": combo.name,
            "combo_price": combo_price,
            "original_price": original,
            "discount_amount": discount,
            "discount_percentage": round(percentage, 2),
        })
    return matches

