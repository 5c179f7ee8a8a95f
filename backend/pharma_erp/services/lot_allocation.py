"""
Combo lot allocation: walk the operator through one lot decision per
lot-tracked constituent of a combo.

One LotAllocationWorkflow instance is one run. It only mutates in-memory state
until confirm() hands the selections back, so cancelling at any point has no
external side effect.

    run = LotAllocationWorkflow.start(combo, set_count=3, warehouse_id=1, lot_source=store)
    run.select_lot(lot_id=11, quantity=6)      # guided path: one lot per item
    run.add_lot(lot_id=12, quantity=2)         # explicit split across lots
    selections = run.advance()                 # list on the last item, else None
"""
import logging
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pharma_erp.core.audit import AuditLog
from pharma_erp.core.exceptions import (
    AllocationClosedError,
    AllocationError,
    InvalidLotQuantityError,
    LotFetchError,
    QuantityMismatchError,
    SelectionIncompleteError,
    UnknownLotError,
)
from pharma_erp.schemas.allocation import AllocationSnapshot
from pharma_erp.schemas.combo import ComboDefinition, ComboItemDefinition
from pharma_erp.schemas.lots import ExpiryBadge, LotRecord, LotSelection, LotView
from pharma_erp.services.expiry import expiry_status, sort_lots_by_expiry
from pharma_erp.services.interfaces import LotSource

logger = logging.getLogger(__name__)


def _merge_repeated_items(items: List[ComboItemDefinition]) -> List[ComboItemDefinition]:
    """
    One step per product: a product listed more than once (legacy combo rows)
    becomes a single item whose per-set quantity is the sum of its rows.
    """
    merged: Dict[int, ComboItemDefinition] = {}
    for item in items:
        if item.product_id in merged:
            first = merged[item.product_id]
            merged[item.product_id] = first.model_copy(update={"quantity": first.quantity + item.quantity})
        else:
            merged[item.product_id] = item
    return list(merged.values())


class AllocationState(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LotAllocationWorkflow:
    """Finite-state run over the lot-tracked items of one combo."""

    def __init__(
        self,
        combo: ComboDefinition,
        set_count: int,
        warehouse_id: int,
        lot_source: LotSource,
        today: Optional[date] = None,
    ):
        if isinstance(set_count, bool) or not isinstance(set_count, int) or set_count < 1:
            raise AllocationError("Combo set count must be a positive integer")

        self.combo = combo
        self.set_count = set_count
        self.warehouse_id = warehouse_id
        self.lot_source = lot_source
        self.today = today

        self.items: List[ComboItemDefinition] = _merge_repeated_items(
            [item for item in combo.items if item.lot_tracked]
        )
        self.step = 0
        self.state = AllocationState.ACTIVE
        self.selections: List[LotSelection] = []
        # Handed-back result once the run completes
        self.confirmed: List[LotSelection] = []
        self.available_lots: List[LotRecord] = []
        self.lot_error: Optional[str] = None

    @classmethod
    def start(
        cls,
        combo: ComboDefinition,
        set_count: int,
        warehouse_id: int,
        lot_source: LotSource,
        today: Optional[date] = None,
    ) -> "LotAllocationWorkflow":
        run = cls(combo, set_count, warehouse_id, lot_source, today=today)
        logger.info(
            f"Allocation started: combo={combo.id} sets={set_count} "
            f"warehouse={warehouse_id} lot_items={len(run.items)}"
        )
        run._refresh_lots()
        return run

    # =========================================================================
    # DERIVED STATE
    # =========================================================================

    @property
    def current_item(self) -> Optional[ComboItemDefinition]:
        if self.step < len(self.items):
            return self.items[self.step]
        return None

    @property
    def is_last_step(self) -> bool:
        return self.step >= len(self.items) - 1

    def required_quantity_for(self, item: ComboItemDefinition) -> int:
        return item.quantity * self.set_count

    @property
    def required_quantity(self) -> int:
        item = self.current_item
        return self.required_quantity_for(item) if item else 0

    def selections_for(self, product_id: int) -> List[LotSelection]:
        return [s for s in self.selections if s.product_id == product_id]

    def selected_quantity_for(self, product_id: int) -> int:
        return sum(s.quantity for s in self.selections_for(product_id))

    # =========================================================================
    # LOT LOOKUP
    # =========================================================================

    def fetch_lots(self) -> List[LotRecord]:
        """
        Load eligible lots (quantity > 0) of the current item, most urgent expiry first.

        Auto-selects when exactly one eligible lot exists and the item has no
        selection yet. Raises LotFetchError on lookup failure; calling again retries.
        """
        self._ensure_active()
        item = self.current_item
        if item is None:
            self.available_lots = []
            return []

        try:
            lots = self.lot_source.get_lots_for_product(item.product_id, self.warehouse_id)
        except Exception as e:
            self.available_lots = []
            self.lot_error = f"Could not load lots for product {item.product_id}: {e}"
            logger.warning(self.lot_error)
            raise LotFetchError(self.lot_error) from e

        self.lot_error = None
        eligible = [lot for lot in (lots or []) if (lot.quantity or 0) > 0]
        self.available_lots = sort_lots_by_expiry(eligible, self.today)
        logger.debug(
            f"Fetched {len(self.available_lots)} eligible lots for product {item.product_id} "
            f"(warehouse {self.warehouse_id})"
        )

        if len(self.available_lots) == 1 and not self.selections_for(item.product_id):
            lot = self.available_lots[0]
            quantity = min(lot.quantity, self.required_quantity)
            self._replace_selections(item, [self._make_selection(item, lot, quantity)])
            logger.info(f"Auto-selected lot {lot.lot_number} x{quantity} for product {item.product_id}")

        return list(self.available_lots)

    def _refresh_lots(self) -> None:
        """Lookup triggered by a step change. Failure stays visible through lot_error."""
        if self.current_item is None:
            self.available_lots = []
            return
        try:
            self.fetch_lots()
        except LotFetchError:
            # Step change already happened; the operator retries with fetch_lots()
            pass

    # =========================================================================
    # SELECTION
    # =========================================================================

    def select_lot(self, lot_id: int, quantity: int) -> LotSelection:
        """Guided path: the chosen lot replaces every selection of the current item."""
        item, lot = self._resolve_lot(lot_id)
        self._check_quantity(lot, quantity)
        selection = self._make_selection(item, lot, quantity)
        self._replace_selections(item, [selection])
        return selection

    def add_lot(self, lot_id: int, quantity: int) -> LotSelection:
        """Split path: add (or re-quantify) one lot next to the item's other lots."""
        item, lot = self._resolve_lot(lot_id)
        self._check_quantity(lot, quantity)
        selection = self._make_selection(item, lot, quantity)
        kept = [s for s in self.selections_for(item.product_id) if s.lot_id != lot_id]
        self._replace_selections(item, kept + [selection])
        return selection

    def remove_lot(self, lot_id: int) -> None:
        self._ensure_active()
        item = self._require_item()
        kept = [s for s in self.selections_for(item.product_id) if s.lot_id != lot_id]
        self._replace_selections(item, kept)

    def _resolve_lot(self, lot_id: int):
        self._ensure_active()
        item = self._require_item()
        for lot in self.available_lots:
            if lot.lot_id == lot_id:
                return item, lot
        raise UnknownLotError(f"Lot {lot_id} is not available for product {item.product_id}")

    def _check_quantity(self, lot: LotRecord, quantity: int) -> None:
        upper = min(lot.quantity, self.required_quantity)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or not 1 <= quantity <= upper:
            raise InvalidLotQuantityError(
                f"Quantity for lot {lot.lot_number} must be between 1 and {upper}, got {quantity}"
            )

    def _make_selection(self, item: ComboItemDefinition, lot: LotRecord, quantity: int) -> LotSelection:
        return LotSelection(
            product_id=item.product_id,
            lot_id=lot.lot_id,
            lot_number=lot.lot_number,
            batch_code=lot.batch_code,
            expiry_date=lot.expiry_date,
            quantity=quantity,
            max_quantity=lot.quantity,
        )

    def _replace_selections(self, item: ComboItemDefinition, new: List[LotSelection]) -> None:
        others = [s for s in self.selections if s.product_id != item.product_id]
        self.selections = others + new

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    def advance(self) -> Optional[List[LotSelection]]:
        """
        Move past the current item once its selections add up exactly.

        Returns the full selection list when the last item is done, else None.
        Raises SelectionIncompleteError / QuantityMismatchError without changing state.
        """
        self._ensure_active()
        item = self.current_item
        if item is None:
            return self.confirm()

        self._validate_item(item)
        if self.is_last_step:
            return self.confirm()

        self.step += 1
        self._refresh_lots()
        return None

    def back(self) -> None:
        """Previous item, selections kept for revision."""
        self._ensure_active()
        if self.step > 0:
            self.step -= 1
            self._refresh_lots()

    def confirm(self) -> List[LotSelection]:
        self._ensure_active()
        for item in self.items:
            self._validate_item(item)

        self.state = AllocationState.COMPLETED
        ordered = [s for item in self.items for s in self.selections_for(item.product_id)]
        self.confirmed = ordered
        AuditLog.log_allocation_confirmed(
            self.combo.id,
            self.set_count,
            self.warehouse_id,
            [s.model_dump() for s in ordered],
        )
        logger.info(f"Allocation confirmed: combo={self.combo.id} selections={len(ordered)}")
        return ordered

    def cancel(self) -> None:
        if self.state == AllocationState.CANCELLED:
            return
        self._ensure_active()
        self.state = AllocationState.CANCELLED
        self.selections = []
        self.available_lots = []
        self.step = 0
        logger.info(f"Allocation cancelled: combo={self.combo.id}")

    def _validate_item(self, item: ComboItemDefinition) -> None:
        required = self.required_quantity_for(item)
        chosen = self.selections_for(item.product_id)
        if not chosen:
            raise SelectionIncompleteError(
                f"Select a lot for {item.product_name or f'product {item.product_id}'}"
            )
        selected = sum(s.quantity for s in chosen)
        if selected != required:
            raise QuantityMismatchError(
                f"Exactly {required} units required for "
                f"{item.product_name or f'product {item.product_id}'}, {selected} selected",
                required=required,
                selected=selected,
            )

    def _require_item(self) -> ComboItemDefinition:
        item = self.current_item
        if item is None:
            raise SelectionIncompleteError("This combo has no lot-tracked products")
        return item

    def _ensure_active(self) -> None:
        if self.state != AllocationState.ACTIVE:
            raise AllocationClosedError(f"Allocation is already {self.state.value}")

    # =========================================================================
    # VIEW
    # =========================================================================

    def snapshot(self, session_id: Optional[str] = None) -> AllocationSnapshot:
        item = self.current_item
        lots = [
            LotView(
                **lot.model_dump(),
                expiry=ExpiryBadge(**expiry_status(lot.expiry_date, self.today).as_dict()),
            )
            for lot in self.available_lots
        ]
        return AllocationSnapshot(
            session_id=session_id,
            combo_id=self.combo.id,
            combo_name=self.combo.name,
            set_count=self.set_count,
            warehouse_id=self.warehouse_id,
            state=self.state.value,
            step=self.step,
            step_count=len(self.items),
            current_item=item,
            required_quantity=self.required_quantity,
            selected_quantity=self.selected_quantity_for(item.product_id) if item else 0,
            available_lots=lots,
            selections=list(self.selections),
            lot_error=self.lot_error,
        )
