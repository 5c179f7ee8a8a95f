"""Invoice extraction schema - strict structure for LLM output validation.

The model is told to return ONLY the ExtractedInvoice shape. Anything that
does not validate fails the extraction instead of reaching the operator.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class ExtractedInvoiceItem(BaseModel):
    """One line the model read off the supplier invoice."""
    product_name_on_invoice: str = Field(min_length=1)
    matched_product_id: Optional[int] = None
    quantity: float = 0
    unit_price: Optional[Decimal] = None
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None

    @field_validator("product_name_on_invoice")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: float) -> float:
        """Invoice quantities are whole, non-negative units."""
        if v < 0:
            raise ValueError("quantity cannot be negative")
        if v != int(v):
            raise ValueError("quantity must be a whole number of units")
        return v

    @field_validator("unit_price")
    @classmethod
    def validate_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v < 0:
            raise ValueError("unit_price cannot be negative")
        return v

    @field_validator("lot_number")
    @classmethod
    def blank_lot_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("expiry_date", mode="before")
    @classmethod
    def unreadable_expiry_is_none(cls, v):
        # The model sometimes answers "" or "N/A" for a missing date
        if v in ("", None) or (isinstance(v, str) and not v[:1].isdigit()):
            return None
        return v


class ExtractedInvoice(BaseModel):
    items: List[ExtractedInvoiceItem] = Field(default_factory=list)


class ExpectedItem(BaseModel):
    """A purchase order line the invoice is checked against."""
    product_id: int
    name: str
    sku: Optional[str] = None
    ordered_quantity: int = Field(ge=0)
    cost_price: Optional[Decimal] = None


class ReconciledLine(BaseModel):
    """Invoice line after reconciliation, ready for the receiving form."""
    product_id: Optional[int] = None
    name: str
    sku: str = "N/A"
    ordered_quantity: int = 0
    invoice_quantity: int = 0
    received_quantity: int = 0
    invoice_price: Optional[Decimal] = None
    actual_price: Optional[Decimal] = None
    lot_number: str = ""
    expiry_date: Optional[date] = None
    is_extra_item: bool = False
    is_missing_item: bool = False


class InvoiceExtractionRequest(BaseModel):
    text: Optional[str] = None
    image_b64: Optional[str] = None
    mime_type: Optional[str] = None
    expected_items: List[ExpectedItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def require_source(self):
        if not (self.text and self.text.strip()) and not self.image_b64:
            raise ValueError("Provide invoice text or an image")
        if self.image_b64 and not self.mime_type:
            raise ValueError("mime_type is required with an image")
        return self


class InvoiceExtractionResult(BaseModel):
    items: List[ReconciledLine]
    matched_count: int
    extra_count: int
    missing_count: int
