from sqlalchemy import Column, Integer, String, Numeric
from pharma_erp.db.base import Base


class Fund(Base):
    """Cash drawer or bank account that ledger entries are booked against."""
    __tablename__ = "funds"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    fund_type = Column(String(32), nullable=False, default="cash")  # cash | bank
    initial_balance = Column(Numeric(16, 2), nullable=False, default=0)
