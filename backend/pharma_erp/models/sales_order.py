"""
SalesOrder: what a POS sale sold, line by line.

Settlement writes the order with its lines first and deletes it again (lines
cascade) when the ledger entry or the inventory batch fails.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharma_erp.db.base import Base


class SalesOrder(Base):
    __tablename__ = "sales_orders"

    id = Column(Integer, primary_key=True, index=True)
    order_type = Column(String(16), nullable=False, default="pos")
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_id = Column(String(64), nullable=True)  # NULL for walk-in customers
    total_value = Column(Numeric(16, 2), nullable=False)
    payment_method = Column(String(64), nullable=True)
    payment_status = Column(String(16), nullable=False, default="paid")
    operational_status = Column(String(16), nullable=False, default="completed")
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    items = relationship(
        "SalesOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="SalesOrderItem.id",
    )


class SalesOrderItem(Base):
    __tablename__ = "sales_order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)
    discount = Column(Numeric(14, 2), nullable=False, default=0)

    order = relationship("SalesOrder", back_populates="items")
