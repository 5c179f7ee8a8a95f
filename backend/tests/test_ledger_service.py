"""Ledger listing and fund balances."""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from pharma_erp.core.exceptions import NotFoundError
from pharma_erp.services import ledger_service


def _record(amount, type_="income", status="collected", **extra):
    record = {
        "type": type_,
        "amount": amount,
        "status": status,
        "payment_method": "cash",
        "description": "POS Sale - Warehouse ID 1",
        "transaction_date": datetime.now(timezone.utc),
        "fund_id": 1,
    }
    record.update(extra)
    return record


def test_fund_balance_counts_settled_entries_only(seeded):
    ledger_service.add_transaction(seeded, _record(150000))
    ledger_service.add_transaction(seeded, _record(20000, type_="expense", status="paid"))
    ledger_service.add_transaction(seeded, _record(99999, status="pending"))

    (cash,) = ledger_service.fund_balances(seeded)
    assert cash["name"] == "Cash drawer"
    assert cash["income"] == Decimal("150000")
    assert cash["expense"] == Decimal("20000")
    assert cash["balance"] == Decimal("130000")


def test_list_is_paginated_and_searchable(seeded):
    for i in range(3):
        ledger_service.add_transaction(seeded, _record(1000 + i))
    ledger_service.add_transaction(seeded, _record(5, payment_method="card", description="Refund"))

    rows, count = ledger_service.list_transactions(seeded, page=1, page_size=2)
    assert count == 4
    assert len(rows) == 2
    # Newest first
    assert rows[0].description == "Refund"

    rows, count = ledger_service.list_transactions(seeded, search="card")
    assert count == 1


def test_delete_missing_entry(seeded):
    with pytest.raises(NotFoundError):
        ledger_service.delete_transaction(seeded, 42)
