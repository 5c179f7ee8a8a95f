from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from decimal import Decimal


class ComboItemDefinition(BaseModel):
    """Constituent of a combo as seen by the allocation workflow."""
    product_id: int
    product_name: str = ""
    quantity: int = Field(ge=1)  # units per combo set
    lot_tracked: bool = False


class ComboDefinition(BaseModel):
    id: int
    name: str
    is_active: bool = True
    items: List[ComboItemDefinition] = Field(default_factory=list)


class ComboItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)


class ComboCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    combo_price: Decimal = Field(ge=0)
    is_active: bool = True
    items: List[ComboItemCreate] = Field(default_factory=list)

    @field_validator("items")
    @classmethod
    def one_line_per_product(cls, v: List[ComboItemCreate]) -> List[ComboItemCreate]:
        seen = set()
        for item in v:
            if item.product_id in seen:
                raise ValueError(f"Product {item.product_id} is listed twice; raise its quantity instead")
            seen.add(item.product_id)
        return v


class ComboUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    combo_price: Optional[Decimal] = None
    is_active: Optional[bool] = None


class ComboItemResponse(BaseModel):
    id: int
    product_id: int
    quantity: int

    class Config:
        from_attributes = True


class ComboResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    combo_price: Decimal
    is_active: bool
    items: List[ComboItemResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class CartLine(BaseModel):
    """Minimal cart line for combo detection."""
    product_id: int
    quantity: int


class ComboMatch(BaseModel):
    combo_id: int
    name: str
    combo_price: Decimal
    original_price: Decimal
    discount_amount: Decimal
    discount_percentage: float
