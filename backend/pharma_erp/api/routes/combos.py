"""Combo catalog CRUD and in-cart combo detection."""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pharma_erp.api.deps import get_db
from pharma_erp.core.exceptions import BusinessError, ErpError
from pharma_erp.schemas.combo import CartLine, ComboCreate, ComboMatch, ComboResponse, ComboUpdate
from pharma_erp.services import combo_service

router = APIRouter()


@router.get("", response_model=List[ComboResponse])
def list_combos(db: Session = Depends(get_db)):
    """Active combos, newest first."""
    return combo_service.get_active_combos(db)


@router.post("", response_model=ComboResponse, status_code=status.HTTP_201_CREATED)
def create_combo(body: ComboCreate, db: Session = Depends(get_db)):
    try:
        return combo_service.create_combo(db, body)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.post("/detect", response_model=List[ComboMatch])
def detect_combos(cart: List[CartLine], db: Session = Depends(get_db)):
    return combo_service.detect_combos_in_cart(db, cart)


@router.get("/{combo_id}", response_model=ComboResponse)
def get_combo(combo_id: int, db: Session = Depends(get_db)):
    try:
        return combo_service.get_combo(db, combo_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.patch("/{combo_id}", response_model=ComboResponse)
def update_combo(combo_id: int, body: ComboUpdate, db: Session = Depends(get_db)):
    try:
        return combo_service.update_combo(db, combo_id, body)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.delete("/{combo_id}", response_model=ComboResponse)
def delete_combo(combo_id: int, db: Session = Depends(get_db)):
    """Soft delete: the combo stays for history but is no longer offered."""
    try:
        return combo_service.deactivate_combo(db, combo_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)
