"""POS settlement: order, ledger entry, inventory batch, compensation on failure."""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from pharma_erp.core.exceptions import (
    CompensationError,
    InventoryWriteError,
    LedgerWriteError,
    SalesOrderWriteError,
)
from pharma_erp.models import FinancialTransaction, Inventory, SalesOrder, SalesOrderItem
from pharma_erp.schemas.sale import CartItem, InventorySnapshot, SaleRequest
from pharma_erp.services.inventory_service import SqlInventoryStore
from pharma_erp.services.ledger_service import SqlLedgerStore
from pharma_erp.services.sale_settlement import SaleSettlementService
from pharma_erp.services.sales_order_service import SqlSalesOrderStore
from tests.fakes import FakeInventoryStore, FakeLedgerStore, FakeSalesOrderStore


def _sale(**overrides):
    data = {
        "cart": [{"product_id": 7, "quantity": 3, "unit_price": 50000}],
        "total": 150000,
        "payment_method": "cash",
        "warehouse_id": 1,
        "created_by": "emp-1",
    }
    data.update(overrides)
    return SaleRequest(**data)


@pytest.fixture
def ledger():
    return FakeLedgerStore()


@pytest.fixture
def orders():
    return FakeSalesOrderStore()


@pytest.fixture
def inventory():
    return FakeInventoryStore({
        (7, 1): InventorySnapshot(warehouse_id=1, quantity=10, min_stock=2, max_stock=50),
    })


def test_cash_sale_writes_ledger_and_deducts_stock(ledger, inventory):
    result = SaleSettlementService(ledger, inventory).settle(_sale())

    entry = ledger.entries[result.transaction_id]
    assert entry["type"] == "income"
    assert entry["amount"] == Decimal("150000")
    assert entry["status"] == "collected"
    assert entry["payment_method"] == "cash"
    assert entry["description"] == "POS Sale - Warehouse ID 1"
    assert entry["created_by"] == "emp-1"
    assert entry["fund_id"] == 1

    row = inventory.rows[(7, 1)]
    assert (row.quantity, row.min_stock, row.max_stock) == (7, 2, 50)
    assert [(d.product_id, d.quantity) for d in result.inventory_updates] == [(7, 7)]


def test_cart_snapshot_wins_over_store(ledger, inventory):
    cart = [
        CartItem(
            product_id=7,
            quantity=2,
            inventory_data=[
                InventorySnapshot(warehouse_id=2, quantity=99, min_stock=0, max_stock=0),
                InventorySnapshot(warehouse_id=1, quantity=20, min_stock=4, max_stock=80),
            ],
        )
    ]
    result = SaleSettlementService(ledger, inventory).settle(_sale(cart=cart, total=100000))
    delta = result.inventory_updates[0]
    assert (delta.quantity, delta.min_stock, delta.max_stock) == (18, 4, 80)


def test_never_stocked_pair_counts_as_zero(ledger):
    inventory = FakeInventoryStore()
    result = SaleSettlementService(ledger, inventory).settle(_sale())
    delta = result.inventory_updates[0]
    assert (delta.quantity, delta.min_stock, delta.max_stock) == (-3, 0, 0)


def test_one_delta_per_product(ledger, inventory):
    inventory.rows[(8, 1)] = InventorySnapshot(warehouse_id=1, quantity=5, min_stock=1, max_stock=9)
    cart = [{"product_id": 7, "quantity": 1}, {"product_id": 8, "quantity": 2}]
    SaleSettlementService(ledger, inventory).settle(_sale(cart=cart))

    assert len(inventory.applied) == 1
    assert [(d.product_id, d.quantity) for d in inventory.applied[0]] == [(7, 9), (8, 3)]


def test_inventory_failure_deletes_ledger_entry(ledger, inventory):
    inventory.fail_apply = True

    with pytest.raises(InventoryWriteError) as exc:
        SaleSettlementService(ledger, inventory).settle(_sale())

    assert exc.value.transaction_id == 1
    assert ledger.entries == {}
    assert inventory.rows[(7, 1)].quantity == 10


def test_inventory_read_failure_also_compensates(ledger):
    inventory = FakeInventoryStore()
    inventory.fail_read = True

    with pytest.raises(InventoryWriteError):
        SaleSettlementService(ledger, inventory).settle(_sale())
    assert ledger.entries == {}


def test_failed_compensation_reports_orphan(ledger, inventory):
    inventory.fail_apply = True
    ledger.fail_delete = True

    with pytest.raises(CompensationError) as exc:
        SaleSettlementService(ledger, inventory).settle(_sale())

    err = exc.value
    assert err.transaction_id == 1
    assert "inventory batch rejected" in str(err.cause)
    assert "ledger delete refused" in str(err.rollback_error)
    assert list(ledger.entries) == [1]


def test_ledger_failure_touches_nothing(ledger, inventory):
    ledger.fail_insert = True

    with pytest.raises(LedgerWriteError):
        SaleSettlementService(ledger, inventory).settle(_sale())
    assert inventory.applied == []


def test_explicit_fund_is_used(ledger, inventory):
    result = SaleSettlementService(ledger, inventory).settle(_sale(fund_id=3))
    assert ledger.entries[result.transaction_id]["fund_id"] == 3


def test_empty_cart_rejected():
    with pytest.raises(ValidationError):
        _sale(cart=[])


def test_sql_settlement_persists_both_writes(seeded):
    db = seeded
    service = SaleSettlementService(SqlLedgerStore(db), SqlInventoryStore(db))
    result = service.settle(_sale())

    entry = db.query(FinancialTransaction).filter(FinancialTransaction.id == result.transaction_id).one()
    assert entry.status == "collected"
    assert Decimal(entry.amount) == Decimal("150000")

    row = db.query(Inventory).filter(Inventory.product_id == 7, Inventory.warehouse_id == 1).one()
    assert (row.quantity, row.min_stock, row.max_stock) == (7, 2, 50)


class _RejectingInventoryStore(SqlInventoryStore):
    def apply_inventory_deltas(self, deltas):
        raise RuntimeError("constraint violated")


def test_sql_inventory_failure_leaves_no_ledger_entry(seeded):
    db = seeded
    service = SaleSettlementService(SqlLedgerStore(db), _RejectingInventoryStore(db))

    with pytest.raises(InventoryWriteError):
        service.settle(_sale())

    assert db.query(FinancialTransaction).count() == 0
    row = db.query(Inventory).filter(Inventory.product_id == 7, Inventory.warehouse_id == 1).one()
    assert row.quantity == 10


def test_repeated_product_lines_are_summed(ledger, inventory):
    cart = [{"product_id": 7, "quantity": 1}, {"product_id": 7, "quantity": 2}]
    result = SaleSettlementService(ledger, inventory).settle(_sale(cart=cart))

    assert [(d.product_id, d.quantity) for d in inventory.applied[0]] == [(7, 7)]
    assert inventory.rows[(7, 1)].quantity == 7
    assert len(result.inventory_updates) == 1


def test_sql_repeated_product_lines_deduct_every_unit(seeded):
    db = seeded
    cart = [{"product_id": 7, "quantity": 1}, {"product_id": 7, "quantity": 2}]
    SaleSettlementService(SqlLedgerStore(db), SqlInventoryStore(db)).settle(_sale(cart=cart))

    db.expire_all()
    row = db.query(Inventory).filter(Inventory.product_id == 7, Inventory.warehouse_id == 1).one()
    assert row.quantity == 7


# ==============================================================================
# SALES ORDER
# ==============================================================================

def test_order_written_before_ledger_entry(ledger, inventory, orders):
    cart = [{"product_id": 7, "quantity": 3, "unit_price": 50000, "discount": 500}]
    result = SaleSettlementService(ledger, inventory, orders).settle(_sale(cart=cart, customer_id="walk-in"))

    assert result.order_id == 100
    order = orders.orders[100]
    assert order["order_type"] == "pos"
    assert order["payment_status"] == "paid"
    assert order["total_value"] == Decimal("150000")
    assert order["customer_id"] == "walk-in"
    assert order["lines"] == [
        {"product_id": 7, "quantity": 3, "unit_price": Decimal("50000"), "discount": Decimal("500")}
    ]
    assert ledger.entries[result.transaction_id]["description"] == "POS Sale - Order 100 - Warehouse ID 1"


def test_order_failure_writes_nothing_else(ledger, inventory, orders):
    orders.fail_create = True

    with pytest.raises(SalesOrderWriteError):
        SaleSettlementService(ledger, inventory, orders).settle(_sale())
    assert ledger.entries == {}
    assert inventory.applied == []


def test_ledger_failure_deletes_order(ledger, inventory, orders):
    ledger.fail_insert = True

    with pytest.raises(LedgerWriteError) as exc:
        SaleSettlementService(ledger, inventory, orders).settle(_sale())
    assert exc.value.order_id == 100
    assert orders.orders == {}
    assert inventory.applied == []


def test_inventory_failure_deletes_ledger_entry_and_order(ledger, inventory, orders):
    inventory.fail_apply = True

    with pytest.raises(InventoryWriteError) as exc:
        SaleSettlementService(ledger, inventory, orders).settle(_sale())
    assert (exc.value.transaction_id, exc.value.order_id) == (1, 100)
    assert ledger.entries == {}
    assert orders.orders == {}


def test_failed_order_delete_reports_only_the_order(ledger, inventory, orders):
    inventory.fail_apply = True
    orders.fail_delete = True

    with pytest.raises(CompensationError) as exc:
        SaleSettlementService(ledger, inventory, orders).settle(_sale())

    err = exc.value
    assert (err.transaction_id, err.order_id) == (None, 100)
    assert ledger.entries == {}
    assert "order delete refused" in str(err.rollback_error)


def test_sql_settlement_records_order_lines(seeded):
    db = seeded
    service = SaleSettlementService(SqlLedgerStore(db), SqlInventoryStore(db), SqlSalesOrderStore(db))
    cart = [{"product_id": 7, "quantity": 2, "unit_price": 5000}, {"product_id": 8, "quantity": 1, "unit_price": 5000}]
    result = service.settle(_sale(cart=cart, total=15000))

    order = db.query(SalesOrder).filter(SalesOrder.id == result.order_id).one()
    assert [(item.product_id, item.quantity) for item in order.items] == [(7, 2), (8, 1)]
    assert Decimal(order.total_value) == Decimal("15000")


def test_sql_inventory_failure_removes_order_and_lines(seeded):
    db = seeded
    service = SaleSettlementService(SqlLedgerStore(db), _RejectingInventoryStore(db), SqlSalesOrderStore(db))

    with pytest.raises(InventoryWriteError):
        service.settle(_sale())

    assert db.query(FinancialTransaction).count() == 0
    assert db.query(SalesOrder).count() == 0
    assert db.query(SalesOrderItem).count() == 0
