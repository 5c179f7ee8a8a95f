from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from pharma_erp.db.base import Base


class Inventory(Base):
    """
    Stock of one product in one warehouse.

    min_stock / max_stock are reorder thresholds. Every writer must carry them
    forward explicitly: an upsert that omits them would reset them.
    """
    __tablename__ = "inventory"
    __table_args__ = (UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=True, default=0)
    max_stock = Column(Integer, nullable=True, default=0)

    product = relationship("Product", backref="inventory_rows")
    warehouse = relationship("Warehouse", backref="inventory_rows")
