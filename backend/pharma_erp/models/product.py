from sqlalchemy import Column, Integer, String, Numeric, Boolean
from pharma_erp.db.base import Base


class Product(Base):
    """
    Catalog product.

    enable_lot_management: stock must be consumed from specific lots
    (product_lots) rather than from the undifferentiated inventory pool.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(64), nullable=True, index=True)
    retail_price = Column(Numeric(14, 2), default=0)
    cost_price = Column(Numeric(14, 2), default=0)
    enable_lot_management = Column(Boolean, default=False, nullable=False)
