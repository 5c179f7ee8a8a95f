from pydantic import BaseModel, Field
from typing import Optional
from datetime import date


class LotRecord(BaseModel):
    """One lot as returned by the inventory lookup."""
    lot_id: int
    lot_number: str
    batch_code: Optional[str] = None
    expiry_date: Optional[date] = None
    quantity: int = 0


class LotSelection(BaseModel):
    """quantity units of one lot assigned to one constituent product of a run."""
    product_id: int
    lot_id: int
    lot_number: str
    batch_code: Optional[str] = None
    expiry_date: Optional[date] = None
    quantity: int
    max_quantity: int  # lot on-hand at selection time


class ExpiryBadge(BaseModel):
    bucket: str
    label: str
    color: str
    priority: int
    days_until_expiry: Optional[int] = None


class LotView(LotRecord):
    """Lot enriched with its expiry badge, for operator review."""
    expiry: ExpiryBadge


class LotCreate(BaseModel):
    product_id: int
    warehouse_id: int
    lot_number: str = Field(min_length=1, max_length=64)
    batch_code: Optional[str] = None
    expiry_date: Optional[date] = None
    received_date: Optional[date] = None
    quantity: int = Field(ge=0)


class LotResponse(BaseModel):
    id: int
    product_id: int
    warehouse_id: int
    lot_number: str
    batch_code: Optional[str] = None
    expiry_date: Optional[date] = None
    received_date: Optional[date] = None
    quantity: int

    class Config:
        from_attributes = True


class ExpiringLot(BaseModel):
    lot_id: int
    product_id: int
    product_name: str
    warehouse_id: int
    lot_number: str
    expiry_date: date
    quantity: int
    expiry: ExpiryBadge
