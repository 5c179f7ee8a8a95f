"""Ledger listing and fund balances."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharma_erp.api.deps import get_db
from pharma_erp.schemas.transaction import FundBalance, TransactionPage
from pharma_erp.services.ledger_service import fund_balances, list_transactions

router = APIRouter()


@router.get("", response_model=TransactionPage)
def get_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    fund_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    rows, count = list_transactions(db, page=page, page_size=page_size, search=search, fund_id=fund_id)
    return {"data": rows, "count": count, "page": page, "page_size": page_size}


@router.get("/funds", response_model=List[FundBalance])
def get_fund_balances(db: Session = Depends(get_db)):
    return fund_balances(db)
