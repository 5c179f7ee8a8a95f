"""Ledger entries and fund balances. Used by sale settlement and the transactions API."""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from pharma_erp.core.exceptions import NotFoundError
from pharma_erp.models.fund import Fund
from pharma_erp.models.transaction import FinancialTransaction

logger = logging.getLogger(__name__)

# Statuses that represent money that actually moved
SETTLED_STATUSES = ("collected", "paid")


def add_transaction(db: Session, record: Dict[str, Any]) -> FinancialTransaction:
    entry = FinancialTransaction(
        type=record["type"],
        amount=Decimal(str(record["amount"])),
        payment_method=record.get("payment_method"),
        status=record.get("status", "pending"),
        description=record.get("description"),
        transaction_date=record["transaction_date"],
        created_by=record.get("created_by"),
        fund_id=record.get("fund_id"),
    )
    try:
        db.add(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(entry)
    return entry


def delete_transaction(db: Session, transaction_id: int) -> None:
    entry = db.query(FinancialTransaction).filter(FinancialTransaction.id == transaction_id).first()
    if entry is None:
        raise NotFoundError(f"Transaction {transaction_id}")
    try:
        db.delete(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise


class SqlLedgerStore:
    """LedgerStore over a SQLAlchemy session. Every call commits on its own."""

    def __init__(self, db: Session):
        self.db = db

    def insert_transaction(self, record: Dict[str, Any]) -> int:
        return add_transaction(self.db, record).id

    def delete_transaction(self, transaction_id: int) -> None:
        delete_transaction(self.db, transaction_id)


def list_transactions(
    db: Session,
    page: int = 1,
    page_size: int = 20,
    search: Optional[str] = None,
    fund_id: Optional[int] = None,
) -> Tuple[List[FinancialTransaction], int]:
    """Newest first, with the total row count for pagination."""
    q = db.query(FinancialTransaction)
    if fund_id is not None:
        q = q.filter(FinancialTransaction.fund_id == fund_id)
    if search:
        pattern = f"%{search}%"
        q = q.filter(
            or_(
                FinancialTransaction.description.ilike(pattern),
                FinancialTransaction.payment_method.ilike(pattern),
                FinancialTransaction.created_by.ilike(pattern),
            )
        )
    count = q.count()
    rows = (
        q.order_by(FinancialTransaction.created_at.desc(), FinancialTransaction.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, count


def fund_balances(db: Session) -> List[Dict[str, Any]]:
    """Initial balance + settled income - settled expense, per fund."""
    income = func.coalesce(
        func.sum(case((FinancialTransaction.type == "income", FinancialTransaction.amount), else_=0)), 0
    )
    expense = func.coalesce(
        func.sum(case((FinancialTransaction.type == "expense", FinancialTransaction.amount), else_=0)), 0
    )
    totals = dict(
        (fund_id, (Decimal(str(inc)), Decimal(str(exp))))
        for fund_id, inc, exp in (
            db.query(FinancialTransaction.fund_id, income, expense)
            .filter(FinancialTransaction.status.in_(SETTLED_STATUSES))
            .group_by(FinancialTransaction.fund_id)
            .all()
        )
    )

    result = []
    for fund in db.query(Fund).order_by(Fund.id).all():
        inc, exp = totals.get(fund.id, (Decimal("0"), Decimal("0")))
        initial = Decimal(str(fund.initial_balance or 0))
        result.append({
            "fund_id": fund.id,
            "name": fund.name,
            "fund_type": fund.fund_type,
            "initial_balance": initial,
            "income": inc,
            "expense": exp,
            "balance": initial + inc - exp,
        })
    return result
