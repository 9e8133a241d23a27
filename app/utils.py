from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Tuple, TypeVar

from .errors import ValidationFailedError

T = TypeVar("T")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (columns are stored without tz)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    return utcnow().date()


def ensure_due_date_not_past(due_date: Optional[date], today: Optional[date] = None) -> None:
    """Raise if the due date falls before today. Today itself is accepted."""
    if due_date is None:
        return
    today = today or utc_today()
    if due_date < today:
        raise ValidationFailedError("Due date cannot be in the past", field="due_date")


def ordered_non_blank(items: Iterable[T]) -> List[Tuple[int, T]]:
    """Drop items with a blank title and pair the rest with their new sort order.

    Positions are assigned after filtering, so the result is always 0..n-1.
    """
    kept = [item for item in items if item.title and item.title.strip()]
    return list(enumerate(kept))
