"""Expiry buckets and lot ordering."""
from datetime import date, datetime, timedelta

from pharma_erp.schemas.lots import LotRecord
from pharma_erp.services.expiry import (
    days_until_expiry,
    expiry_sort_key,
    expiry_status,
    sort_lots_by_expiry,
)

TODAY = date(2026, 3, 10)


def _in(days):
    return TODAY + timedelta(days=days)


def test_days_until_expiry_accepts_dates_datetimes_and_iso_strings():
    assert days_until_expiry(_in(5), TODAY) == 5
    assert days_until_expiry(datetime(2026, 3, 12, 18, 30), TODAY) == 2
    assert days_until_expiry("2026-03-09", TODAY) == -1
    assert days_until_expiry("2026-03-09T00:00:00Z", TODAY) == -1


def test_days_until_expiry_unknown_is_none():
    assert days_until_expiry(None, TODAY) is None
    assert days_until_expiry("", TODAY) is None
    assert days_until_expiry("not a date", TODAY) is None


def test_bucket_boundaries():
    cases = [
        (-30, "expired", 0),
        (-1, "expired", 0),
        (0, "today", 1),
        (1, "tomorrow", 2),
        (2, "critical", 3),
        (3, "critical", 3),
        (4, "week", 4),
        (7, "week", 4),
        (8, "two_weeks", 5),
        (14, "two_weeks", 5),
        (15, "month", 6),
        (30, "month", 6),
        (31, "quarter", 7),
        (90, "quarter", 7),
        (91, "beyond", 8),
        (400, "beyond", 8),
    ]
    for days, bucket, priority in cases:
        status = expiry_status(_in(days), TODAY)
        assert status.bucket == bucket, days
        assert status.priority == priority, days
        assert status.days_until_expiry == days


def test_no_expiry_date_sorts_last():
    status = expiry_status(None, TODAY)
    assert status.bucket == "none"
    assert status.priority == 9
    assert status.days_until_expiry is None
    assert expiry_sort_key(None, TODAY) > expiry_sort_key(_in(1000), TODAY)


def test_expired_lots_come_first():
    lots = [
        LotRecord(lot_id=1, lot_number="FAR", expiry_date=_in(200), quantity=5),
        LotRecord(lot_id=2, lot_number="NONE", expiry_date=None, quantity=5),
        LotRecord(lot_id=3, lot_number="OLD", expiry_date=_in(-3), quantity=5),
        LotRecord(lot_id=4, lot_number="SOON", expiry_date=_in(2), quantity=5),
        LotRecord(lot_id=5, lot_number="TODAY", expiry_date=TODAY, quantity=5),
    ]
    ordered = [lot.lot_number for lot in sort_lots_by_expiry(lots, TODAY)]
    assert ordered == ["OLD", "TODAY", "SOON", "FAR", "NONE"]


def test_same_bucket_sooner_expiry_then_lot_number():
    lots = [
        {"lot_number": "B", "expiry_date": _in(6)},
        {"lot_number": "C", "expiry_date": _in(5)},
        {"lot_number": "A", "expiry_date": _in(6)},
    ]
    assert [lot["lot_number"] for lot in sort_lots_by_expiry(lots, TODAY)] == ["C", "A", "B"]


def test_as_dict_shape():
    badge = expiry_status(_in(10), TODAY).as_dict()
    assert badge == {
        "bucket": "two_weeks",
        "label": "10 days left",
        "color": "warning",
        "priority": 5,
        "days_until_expiry": 10,
    }
