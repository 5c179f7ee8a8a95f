"""Combo lot allocation: one run per POST, driven step by step by the operator."""
import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pharma_erp.api.deps import get_allocation_sessions, get_db
from pharma_erp.core.exceptions import BusinessError, ErpError
from pharma_erp.schemas.allocation import (
    AllocationConfirm,
    AllocationResult,
    AllocationSnapshot,
    AllocationStart,
    LotChoice,
)
from pharma_erp.services.allocation_sessions import AllocationSessionRegistry
from pharma_erp.services.combo_service import get_combo, to_combo_definition
from pharma_erp.services.inventory_service import SqlInventoryStore
from pharma_erp.services.lot_allocation import AllocationState, LotAllocationWorkflow
from pharma_erp.services.lot_service import consume_lot_selections

logger = logging.getLogger(__name__)

router = APIRouter()


@contextmanager
def _checkout(session_id: str, db: Session, registry: AllocationSessionRegistry) -> Iterator[LotAllocationWorkflow]:
    with registry.checkout(session_id) as workflow:
        # Runs outlive the request that created them; lookups use this request's session
        workflow.lot_source = SqlInventoryStore(db)
        yield workflow


@router.post("", response_model=AllocationSnapshot, status_code=status.HTTP_201_CREATED)
def start_allocation(
    body: AllocationStart,
    db: Session = Depends(get_db),
    registry: AllocationSessionRegistry = Depends(get_allocation_sessions),
):
    try:
        combo = get_combo(db, body.combo_id)
        if not combo.is_active:
            raise BusinessError.bad_request(f"Combo {combo.name} is not active")
        workflow = LotAllocationWorkflow.start(
            to_combo_definition(combo),
            body.set_count,
            body.warehouse_id,
            SqlInventoryStore(db),
        )
    except ErpError as e:
        raise BusinessError.from_domain(e)

    session_id = registry.add(workflow)
    return workflow.snapshot(session_id)


@router.get("/{session_id}", response_model=AllocationSnapshot)
def get_allocation(
    session_id: str,
    db: Session = Depends(get_db),
    registry: AllocationSessionRegistry = Depends(get_allocation_sessions),
):
    try:
        with _checkout(session_id, db, registry) as workflow:
            return workflow.snapshot(session_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.post("/{session_id}/lots", response_model=AllocationSnapshot)
def fetch_lots(
    session_id: str,
    db: Session = Depends(get_db),
    registry: AllocationSessionRegistry = Depends(get_allocation_sessions),
):
    """(Re)load the current item's lots. Also the retry after a failed lookup."""
    try:
        with _checkout(session_id, db, registry) as workflow:
            workflow.fetch_lots()
            return workflow.snapshot(session_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.post("/{session_id}/select", response_model=AllocationSnapshot)
def select_lot(
    session_id: str,
    body: LotChoice,
    db: Session = Depends(get_db),
    registry: AllocationSessionRegistry = Depends(get_allocation_sessions),
):
    try:
        with _checkout(session_id, db, registry) as workflow:
            workflow.select_lot(body.lot_id, body.quantity)
            return workflow.snapshot(session_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.post("/{session_id}/add", response_model=AllocationSnapshot)
def add_lot(
    session_id: str,
    body: LotChoice,
    db: Session = Depends(get_db),
    registry: AllocationSessionRegistry = Depends(get_allocation_sessions),
):
    try:
        with _checkout(session_id, db, registry) as workflow:
            workflow.add_lot(body.lot_id, body.quantity)
            return workflow.snapshot(session_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.delete("/{session_id}/lots/{lot_id}", response_model=AllocationSnapshot)
def remove_lot(
    session_id: str,
    lot_id: int,
    db: Session = Depends(get_db),
    registry: AllocationSessionRegistry = Depends(get_allocation_sessions),
):
    try:
        with _checkout(session_id, db, registry) as workflow:
            workflow.remove_lot(lot_id)
            return workflow.snapshot(session_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.post("/{session_id}/advance", response_model=AllocationSnapshot)
def advance(
    session_id: str,
    db: Session = Depends(get_db),
    registry: AllocationSessionRegistry = Depends(get_allocation_sessions),
):
    """
    Next item; on the last item this completes the run (state "completed").

    A completed run stays registered so the operator can still call confirm,
    with consume=true to decrement the chosen lots.
    """
    try:
        with _checkout(session_id, db, registry) as workflow:
            workflow.advance()
            return workflow.snapshot(session_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.post("/{session_id}/back", response_model=AllocationSnapshot)
def back(
    session_id: str,
    db: Session = Depends(get_db),
    registry: AllocationSessionRegistry = Depends(get_allocation_sessions),
):
    try:
        with _checkout(session_id, db, registry) as workflow:
            workflow.back()
            return workflow.snapshot(session_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)


@router.post("/{session_id}/confirm", response_model=AllocationResult)
def confirm(
    session_id: str,
    body: AllocationConfirm = AllocationConfirm(),
    db: Session = Depends(get_db),
    registry: AllocationSessionRegistry = Depends(get_allocation_sessions),
):
    """
    Validate every item and hand the selections back. A run already completed
    by advance hands back the selections it completed with.

    With consume=true the chosen lots are decremented in the same request. If a
    lot no longer holds enough stock nothing is written, the run is closed and
    the operator starts a new one against the current lots.
    """
    try:
        with _checkout(session_id, db, registry) as workflow:
            if workflow.state == AllocationState.COMPLETED:
                selections = workflow.confirmed
            else:
                selections = workflow.confirm()

            registry.discard(session_id)
            if body.consume and selections:
                consume_lot_selections(db, selections, workflow.warehouse_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)
    except Exception as e:
        raise BusinessError.server_error(e)

    return AllocationResult(session_id=session_id, selections=selections, consumed=body.consume)


@router.delete("/{session_id}", response_model=AllocationSnapshot)
def cancel(
    session_id: str,
    db: Session = Depends(get_db),
    registry: AllocationSessionRegistry = Depends(get_allocation_sessions),
):
    """Drop the run. A run completed but never confirmed is dropped as it is."""
    try:
        with _checkout(session_id, db, registry) as workflow:
            if workflow.state == AllocationState.ACTIVE:
                workflow.cancel()
            registry.discard(session_id)
    except ErpError as e:
        raise BusinessError.from_domain(e)

    logger.info(f"Allocation session {session_id} cancelled")
    return workflow.snapshot(session_id)
