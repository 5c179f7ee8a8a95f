from pydantic import BaseModel, Field
from typing import List, Optional

from pharma_erp.schemas.combo import ComboItemDefinition
from pharma_erp.schemas.lots import LotSelection, LotView


class AllocationStart(BaseModel):
    combo_id: int
    set_count: int = Field(ge=1)
    warehouse_id: int


class LotChoice(BaseModel):
    lot_id: int
    quantity: int


class AllocationConfirm(BaseModel):
    # Decrement product_lots right away instead of handing the selections back only
    consume: bool = False


class AllocationSnapshot(BaseModel):
    session_id: Optional[str] = None
    combo_id: int
    combo_name: str
    set_count: int
    warehouse_id: int
    state: str
    step: int
    step_count: int
    current_item: Optional[ComboItemDefinition] = None
    required_quantity: int
    selected_quantity: int
    available_lots: List[LotView] = Field(default_factory=list)
    selections: List[LotSelection] = Field(default_factory=list)
    lot_error: Optional[str] = None


class AllocationResult(BaseModel):
    session_id: str
    selections: List[LotSelection]
    consumed: bool = False
