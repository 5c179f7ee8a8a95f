"""
Expiry prioritization for lot review.

Buckets, most urgent first:
    expired -> today -> tomorrow -> <=3 -> <=7 -> <=14 -> <=30 -> <=90 -> beyond -> none

The priority is a sort key and a badge for the operator. It never picks a lot
on its own and never overrides an explicit choice.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional, TypeVar, Union

DateLike = Union[date, datetime, str, None]

# (bucket, upper bound in days, color, priority)
_WINDOWS = [
    ("critical", 3, "error", 3),
    ("week", 7, "warning", 4),
    ("two_weeks", 14, "warning", 5),
    ("month", 30, "warning", 6),
    ("quarter", 90, "processing", 7),
]

PRIORITY_EXPIRED = 0
PRIORITY_TODAY = 1
PRIORITY_TOMORROW = 2
PRIORITY_BEYOND = 8
PRIORITY_NO_EXPIRY = 9


@dataclass(frozen=True)
class ExpiryStatus:
    bucket: str
    label: str
    color: str
    priority: int
    days_until_expiry: Optional[int] = None

    def as_dict(self) -> dict:
        return {
            "bucket": self.bucket,
            "label": self.label,
            "color": self.color,
            "priority": self.priority,
            "days_until_expiry": self.days_until_expiry,
        }


def _to_date(value: DateLike) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def days_until_expiry(expiry_date: DateLike, today: Optional[date] = None) -> Optional[int]:
    """Whole days from today to expiry. Negative when overdue, None when unknown."""
    expiry = _to_date(expiry_date)
    if expiry is None:
        return None
    today = today or date.today()
    return (expiry - today).days


def expiry_status(expiry_date: DateLike, today: Optional[date] = None) -> ExpiryStatus:
    days = days_until_expiry(expiry_date, today)

    if days is None:
        return ExpiryStatus("none", "No expiry date", "default", PRIORITY_NO_EXPIRY)
    if days < 0:
        return ExpiryStatus("expired", "Expired", "error", PRIORITY_EXPIRED, days)
    if days == 0:
        return ExpiryStatus("today", "Expires today", "error", PRIORITY_TODAY, days)
    if days == 1:
        return ExpiryStatus("tomorrow", "Expires tomorrow", "error", PRIORITY_TOMORROW, days)
    for bucket, limit, color, priority in _WINDOWS:
        if days <= limit:
            return ExpiryStatus(bucket, f"{days} days left", color, priority, days)
    return ExpiryStatus("beyond", f"{days} days left", "success", PRIORITY_BEYOND, days)


def expiry_sort_key(expiry_date: DateLike, today: Optional[date] = None) -> tuple:
    status = expiry_status(expiry_date, today)
    # Within a bucket the sooner expiry wins; lots without expiry tie at the end
    days = status.days_until_expiry if status.days_until_expiry is not None else float("inf")
    return (status.priority, days)


T = TypeVar("T")


def sort_lots_by_expiry(lots: Iterable[T], today: Optional[date] = None) -> List[T]:
    """
    Stable sort of lot-like objects (attribute or key `expiry_date`, `lot_number`)
    by urgency, then lot number.
    """
    def _field(lot, name):
        if isinstance(lot, dict):
            return lot.get(name)
        return getattr(lot, name, None)

    return sorted(
        lots,
        key=lambda lot: expiry_sort_key(_field(lot, "expiry_date"), today) + (str(_field(lot, "lot_number") or ""),),
    )
