from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal


class TransactionRecord(BaseModel):
    id: int
    type: str
    amount: Decimal
    payment_method: Optional[str] = None
    status: str
    description: Optional[str] = None
    transaction_date: datetime
    created_by: Optional[str] = None
    fund_id: Optional[int] = None

    class Config:
        from_attributes = True


class TransactionPage(BaseModel):
    data: List[TransactionRecord]
    count: int
    page: int
    page_size: int


class FundBalance(BaseModel):
    fund_id: int
    name: str
    fund_type: str
    initial_balance: Decimal
    income: Decimal
    expense: Decimal
    balance: Decimal
