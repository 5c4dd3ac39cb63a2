from datetime import date
from typing import Iterable, Union

from errors import InvalidRangeError


def parse_date(value: Union[str, date]) -> date:
    """ISO YYYY-MM-DD string (or date) -> date."""
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidRangeError(f"Invalid date: {value!r}")


def days_inclusive(start: date, end: date) -> int:
    """Day count with both endpoints included: a same-day rental is 1 day."""
    if end < start:
        raise InvalidRangeError(f"End date {end.isoformat()} is before start date {start.isoformat()}")
    return (end - start).days + 1


def resolve_anchor(anchor_days: Iterable[int], days: int) -> int:
    """
    Largest anchor <= days; below the smallest anchor, the smallest one.

    Non-decreasing in `days` for a fixed anchor set.
    """
    ordered = sorted(anchor_days)
    if not ordered:
        raise ValueError("anchor set is empty")
    anchor = ordered[0]
    for candidate in ordered:
        if candidate > days:
            break
        anchor = candidate
    return anchor
