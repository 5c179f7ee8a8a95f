"""POS sale settlement and the sales orders it records."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pharma_erp.api.deps import get_db, get_settlement_service
from pharma_erp.core.exceptions import BusinessError, ErpError
from pharma_erp.schemas.sale import SaleRequest, SalesOrderRecord, SettlementResult
from pharma_erp.services.sale_settlement import SaleSettlementService
from pharma_erp.services.sales_order_service import get_sales_order

router = APIRouter()


@router.post("/settle", response_model=SettlementResult, status_code=status.HTTP_201_CREATED)
def settle_sale(
    body: SaleRequest,
    service: SaleSettlementService = Depends(get_settlement_service),
):
    """
    Sales order, one ledger entry and the inventory deltas of the cart.

    Failures come back as 500 with detail {"code", "message"}:
    - sale_not_recorded: order or ledger write failed, nothing left behind
    - sale_rolled_back: stock update failed, earlier writes deleted again
    - manual_reconciliation_required: rollback failed too; the detail names the
      orphaned transaction_id / order_id
    """
    try:
        return service.settle(body)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.get("/orders/{order_id}", response_model=SalesOrderRecord)
def read_sales_order(order_id: int, db: Session = Depends(get_db)):
    try:
        return get_sales_order(db, order_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)
