"""Lot receipt and expiry alerts."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pharma_erp.api.deps import get_db
from pharma_erp.core.config import settings
from pharma_erp.core.exceptions import BusinessError, ErpError
from pharma_erp.schemas.lots import ExpiringLot, ExpiryBadge, LotCreate, LotResponse, LotView
from pharma_erp.services.expiry import expiry_status, sort_lots_by_expiry
from pharma_erp.services.inventory_service import get_product_lots
from pharma_erp.services.lot_service import create_product_lot, get_expiring_lots

router = APIRouter()


@router.get("/expiring", response_model=List[ExpiringLot])
def expiring_lots(
    days: int = Query(settings.EXPIRY_ALERT_DAYS, ge=0, le=3650),
    warehouse_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    """Lots with stock expiring within `days`, already expired ones included."""
    return get_expiring_lots(db, days, warehouse_id=warehouse_id)


@router.post("", response_model=LotResponse, status_code=status.HTTP_201_CREATED)
def receive_lot(body: LotCreate, db: Session = Depends(get_db)):
    try:
        return create_product_lot(db, body)
    except ErpError as e:
        raise BusinessError.from_domain(e)
    except Exception as e:
        raise BusinessError.server_error(e)


@router.get("/product/{product_id}", response_model=List[LotView])
def product_lots(
    product_id: int,
    warehouse_id: int = Query(...),
    include_empty: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Lots of one product in one warehouse, most urgent expiry first."""
    lots = get_product_lots(db, product_id, warehouse_id)
    if not include_empty:
        lots = [lot for lot in lots if (lot.quantity or 0) > 0]
    return [
        LotView(
            lot_id=lot.id,
            lot_number=lot.lot_number,
            batch_code=lot.batch_code,
            expiry_date=lot.expiry_date,
            quantity=lot.quantity or 0,
            expiry=ExpiryBadge(**expiry_status(lot.expiry_date).as_dict()),
        )
        for lot in sort_lots_by_expiry(lots)
    ]
