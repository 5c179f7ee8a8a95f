from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal


class InventorySnapshot(BaseModel):
    """Inventory row of a product as the cart saw it when the line was added."""
    warehouse_id: int
    quantity: int = 0
    min_stock: Optional[int] = 0
    max_stock: Optional[int] = 0


class CartItem(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)
    unit_price: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    inventory_data: List[InventorySnapshot] = Field(default_factory=list)

    def snapshot_for(self, warehouse_id: int) -> Optional[InventorySnapshot]:
        for row in self.inventory_data:
            if row.warehouse_id == warehouse_id:
                return row
        return None


class SaleRequest(BaseModel):
    cart: List[CartItem] = Field(min_length=1)
    total: Decimal = Field(ge=0)
    payment_method: str = Field(min_length=1, max_length=64)
    warehouse_id: int
    created_by: Optional[str] = None
    fund_id: Optional[int] = None
    customer_id: Optional[str] = None


class InventoryDelta(BaseModel):
    """Post-sale inventory row; min/max carried forward so the upsert keeps them."""
    product_id: int
    warehouse_id: int
    quantity: int
    min_stock: Optional[int] = 0
    max_stock: Optional[int] = 0


class SettlementResult(BaseModel):
    transaction_id: int
    order_id: Optional[int] = None
    amount: Decimal
    status: str
    inventory_updates: List[InventoryDelta] = Field(default_factory=list)


class SalesOrderLine(BaseModel):
    product_id: Optional[int] = None
    quantity: int
    unit_price: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")

    class Config:
        from_attributes = True


class SalesOrderRecord(BaseModel):
    id: int
    order_type: str
    warehouse_id: Optional[int] = None
    customer_id: Optional[str] = None
    total_value: Decimal
    payment_method: Optional[str] = None
    payment_status: str
    operational_status: str
    created_by: Optional[str] = None
    items: List[SalesOrderLine] = Field(default_factory=list)

    class Config:
        from_attributes = True
