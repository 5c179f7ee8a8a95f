"""Create all tables and the default cash fund. Run on app startup."""
import logging

from pharma_erp.db.base import Base
from pharma_erp.db.session import engine, SessionLocal
from pharma_erp.models import combo, fund, inventory, product, product_lot, sales_order, transaction, warehouse  # noqa: F401 - register models
from pharma_erp.models.fund import Fund
from pharma_erp.models.warehouse import Warehouse

logger = logging.getLogger(__name__)


def init_db():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        # POS settlement needs a fund to credit and a warehouse to deduct from
        if db.query(Fund).count() == 0:
            db.add(Fund(name="Cash drawer", fund_type="cash", initial_balance=0))
            logger.info("Created default cash fund")
        if db.query(Warehouse).count() == 0:
            db.add(Warehouse(name="Main pharmacy"))
            logger.info("Created default warehouse")
        db.commit()
    finally:
        db.close()
