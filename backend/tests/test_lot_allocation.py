"""Lot allocation workflow against an in-memory lot source."""
from datetime import date, timedelta

import pytest

from pharma_erp.core.exceptions import (
    AllocationClosedError,
    AllocationError,
    InvalidLotQuantityError,
    LotFetchError,
    QuantityMismatchError,
    SelectionIncompleteError,
    UnknownLotError,
)
from pharma_erp.schemas.combo import ComboDefinition, ComboItemDefinition
from pharma_erp.schemas.lots import LotRecord
from pharma_erp.services.lot_allocation import AllocationState, LotAllocationWorkflow
from tests.fakes import FakeLotSource

TODAY = date(2026, 3, 10)


@pytest.fixture
def combo():
    return ComboDefinition(
        id=1,
        name="Cold care pack",
        items=[
            ComboItemDefinition(product_id=9, product_name="Amoxicillin 250mg", quantity=2, lot_tracked=True),
            ComboItemDefinition(product_id=8, product_name="Vitamin C", quantity=1, lot_tracked=False),
            ComboItemDefinition(product_id=10, product_name="ORS sachet", quantity=1, lot_tracked=True),
        ],
    )


@pytest.fixture
def source():
    return FakeLotSource({
        9: [
            LotRecord(lot_id=13, lot_number="C-003", expiry_date=TODAY + timedelta(days=1), quantity=0),
            LotRecord(lot_id=12, lot_number="B-002", expiry_date=None, quantity=10),
            LotRecord(lot_id=11, lot_number="A-001", expiry_date=TODAY + timedelta(days=2), quantity=4),
        ],
        10: [
            LotRecord(lot_id=21, lot_number="ORS-1", expiry_date=TODAY + timedelta(days=40), quantity=3),
        ],
    })


def _start(combo, source, set_count=3):
    return LotAllocationWorkflow.start(combo, set_count, warehouse_id=1, lot_source=source, today=TODAY)


def test_only_lot_tracked_items_get_a_step(combo, source):
    run = _start(combo, source)
    assert [item.product_id for item in run.items] == [9, 10]
    assert run.current_item.product_id == 9
    assert run.required_quantity == 6
    assert source.calls == [(9, 1)]


@pytest.mark.parametrize("set_count", [0, -1, 1.5, True, "3"])
def test_set_count_must_be_positive_integer(combo, source, set_count):
    with pytest.raises(AllocationError):
        LotAllocationWorkflow(combo, set_count, warehouse_id=1, lot_source=source)


def test_empty_lots_hidden_and_most_urgent_first(combo, source):
    run = _start(combo, source)
    assert [lot.lot_number for lot in run.available_lots] == ["A-001", "B-002"]


def test_split_across_two_lots_advances(combo, source):
    """4 from the lot expiring in 2 days plus 2 from the undated lot make 6."""
    run = _start(combo, source)
    run.select_lot(11, 4)
    run.add_lot(12, 2)

    assert run.advance() is None
    assert run.step == 1
    assert run.current_item.product_id == 10
    assert [(s.lot_id, s.quantity) for s in run.selections_for(9)] == [(11, 4), (12, 2)]


def test_short_selection_blocks_advance(combo, source):
    run = _start(combo, source)
    run.select_lot(11, 4)

    with pytest.raises(QuantityMismatchError) as exc:
        run.advance()
    assert exc.value.required == 6
    assert exc.value.selected == 4
    assert run.step == 0


def test_advance_without_selection(combo, source):
    run = _start(combo, source)
    with pytest.raises(SelectionIncompleteError):
        run.advance()


def test_select_lot_replaces_add_lot_accumulates(combo, source):
    run = _start(combo, source)
    run.select_lot(11, 4)
    run.select_lot(12, 6)
    assert [(s.lot_id, s.quantity) for s in run.selections_for(9)] == [(12, 6)]

    run.add_lot(11, 3)
    run.add_lot(11, 2)  # same lot again re-quantifies it
    assert sorted((s.lot_id, s.quantity) for s in run.selections_for(9)) == [(11, 2), (12, 6)]

    run.remove_lot(12)
    assert [(s.lot_id, s.quantity) for s in run.selections_for(9)] == [(11, 2)]


@pytest.mark.parametrize(
    "lot_id, quantity",
    [
        (11, 0),      # below 1
        (11, 5),      # above lot on-hand (4)
        (12, 7),      # above required (6)
        (12, -2),
        (12, "3"),
        (12, 2.5),
    ],
)
def test_quantity_out_of_range_rejected(combo, source, lot_id, quantity):
    run = _start(combo, source)
    with pytest.raises(InvalidLotQuantityError):
        run.select_lot(lot_id, quantity)
    assert run.selections == []


def test_unknown_or_empty_lot_rejected(combo, source):
    run = _start(combo, source)
    with pytest.raises(UnknownLotError):
        run.select_lot(999, 1)
    with pytest.raises(UnknownLotError):
        run.select_lot(13, 1)  # quantity 0, never offered


def test_single_lot_is_auto_selected(combo, source):
    run = _start(combo, source)
    run.select_lot(12, 6)
    run.advance()

    chosen = run.selections_for(10)
    assert [(s.lot_id, s.quantity, s.max_quantity) for s in chosen] == [(21, 3, 3)]


def test_auto_select_caps_at_lot_quantity(combo, source):
    source.lots[10] = [LotRecord(lot_id=21, lot_number="ORS-1", quantity=2)]
    run = _start(combo, source, set_count=3)
    run.select_lot(12, 6)
    run.advance()
    assert [s.quantity for s in run.selections_for(10)] == [2]


def test_no_auto_select_with_two_lots(combo, source):
    run = _start(combo, source)
    assert run.selections_for(9) == []


def test_auto_select_keeps_existing_choice(combo, source):
    run = _start(combo, source)
    run.select_lot(12, 6)
    run.advance()
    run.select_lot(21, 2)

    run.back()
    assert run.step == 0
    run.advance()
    assert [s.quantity for s in run.selections_for(10)] == [2]


def test_back_keeps_selections(combo, source):
    run = _start(combo, source)
    run.select_lot(11, 4)
    run.add_lot(12, 2)
    run.advance()
    run.back()

    assert run.current_item.product_id == 9
    assert run.selected_quantity_for(9) == 6
    run.back()  # already on the first item
    assert run.step == 0


def test_last_advance_completes_in_item_order(combo, source):
    run = _start(combo, source)
    run.select_lot(11, 4)
    run.add_lot(12, 2)
    run.advance()

    selections = run.advance()
    assert run.state == AllocationState.COMPLETED
    assert [(s.product_id, s.lot_id, s.quantity) for s in selections] == [
        (9, 11, 4),
        (9, 12, 2),
        (10, 21, 3),
    ]
    assert sum(s.quantity for s in selections if s.product_id == 9) == 6


def test_completed_run_is_closed(combo, source):
    run = _start(combo, source)
    run.select_lot(12, 6)
    run.advance()
    run.advance()

    with pytest.raises(AllocationClosedError):
        run.select_lot(12, 1)
    with pytest.raises(AllocationClosedError):
        run.cancel()


def test_cancel_discards_everything(combo, source):
    run = _start(combo, source)
    run.select_lot(11, 4)
    calls_before = len(source.calls)

    run.cancel()
    assert run.state == AllocationState.CANCELLED
    assert run.selections == []
    assert len(source.calls) == calls_before

    run.cancel()  # idempotent
    with pytest.raises(AllocationClosedError):
        run.advance()


def test_lookup_failure_is_retryable(combo, source):
    source.fail = True
    run = _start(combo, source)
    assert run.available_lots == []
    assert run.lot_error is not None
    assert run.snapshot().lot_error == run.lot_error

    with pytest.raises(LotFetchError):
        run.fetch_lots()

    source.fail = False
    lots = run.fetch_lots()
    assert [lot.lot_id for lot in lots] == [11, 12]
    assert run.lot_error is None


def test_combo_without_lot_tracked_items_confirms_empty(source):
    plain = ComboDefinition(
        id=2,
        name="Vitamin pack",
        items=[ComboItemDefinition(product_id=8, quantity=2, lot_tracked=False)],
    )
    run = _start(plain, source)
    assert run.current_item is None
    assert source.calls == []
    assert run.advance() == []
    assert run.state == AllocationState.COMPLETED


def test_snapshot_carries_badges_and_progress(combo, source):
    run = _start(combo, source)
    run.select_lot(11, 4)

    snap = run.snapshot("abc")
    assert snap.session_id == "abc"
    assert snap.state == "active"
    assert (snap.step, snap.step_count) == (0, 2)
    assert snap.required_quantity == 6
    assert snap.selected_quantity == 4
    assert [(lot.lot_number, lot.expiry.bucket) for lot in snap.available_lots] == [
        ("A-001", "critical"),
        ("B-002", "none"),
    ]


def test_repeated_product_rows_become_one_step(source):
    """Legacy combo listing product 9 twice (2 + 1 per set) needs 3 units in one step."""
    combo = ComboDefinition(
        id=2,
        name="Legacy pack",
        items=[
            ComboItemDefinition(product_id=9, product_name="Amoxicillin 250mg", quantity=2, lot_tracked=True),
            ComboItemDefinition(product_id=9, product_name="Amoxicillin 250mg", quantity=1, lot_tracked=True),
        ],
    )
    run = _start(combo, source, set_count=1)
    assert [(item.product_id, item.quantity) for item in run.items] == [(9, 3)]
    assert run.required_quantity == 3

    run.select_lot(12, 3)
    selections = run.advance()
    assert run.state == AllocationState.COMPLETED
    assert [(s.lot_id, s.quantity) for s in selections] == [(12, 3)]
    assert run.confirmed == selections
