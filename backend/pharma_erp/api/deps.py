"""FastAPI dependencies: DB session and the stores built on top of it."""
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from pharma_erp.db.session import SessionLocal
from pharma_erp.services.allocation_sessions import AllocationSessionRegistry, allocation_sessions
from pharma_erp.services.inventory_service import SqlInventoryStore
from pharma_erp.services.ledger_service import SqlLedgerStore
from pharma_erp.services.sale_settlement import SaleSettlementService
from pharma_erp.services.sales_order_service import SqlSalesOrderStore


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_inventory_store(db: Session = Depends(get_db)) -> SqlInventoryStore:
    return SqlInventoryStore(db)


def get_settlement_service(db: Session = Depends(get_db)) -> SaleSettlementService:
    return SaleSettlementService(SqlLedgerStore(db), SqlInventoryStore(db), SqlSalesOrderStore(db))


def get_allocation_sessions() -> AllocationSessionRegistry:
    return allocation_sessions
