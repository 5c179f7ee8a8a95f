from sqlalchemy import Column, Integer, String, ForeignKey, Date, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharma_erp.db.base import Base


class ProductLot(Base):
    """
    A batch of one product held in one warehouse.

    Lifecycle: created by inventory receipt, decremented by lot consumption.
    The allocation and settlement flows never create lots.
    """
    __tablename__ = "product_lots"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_product_lots_quantity_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True)
    lot_number = Column(String(64), nullable=False)
    batch_code = Column(String(64), nullable=True)
    expiry_date = Column(Date, nullable=True)
    received_date = Column(Date, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", backref="lots")
