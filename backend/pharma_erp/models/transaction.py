"""
FinancialTransaction: one ledger entry against a fund.

POS settlement creates one per completed sale and deletes it again when the
paired inventory update fails.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharma_erp.db.base import Base


class FinancialTransaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(16), nullable=False)  # income | expense
    amount = Column(Numeric(16, 2), nullable=False)
    payment_method = Column(String(64), nullable=True)
    status = Column(String(32), nullable=False, default="pending")  # pending | approved | collected | paid
    description = Column(String(512), nullable=True)
    transaction_date = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=True)
    fund_id = Column(Integer, ForeignKey("funds.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    fund = relationship("Fund", backref="transactions")
