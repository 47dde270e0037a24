# gigshift_api/services/shift_validator.py
"""
Advisory checks run before a shift is written.

The unique constraint on shifts is what actually guards against concurrent
duplicates; these checks exist to produce readable messages.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from gigshift_api.common.errors import BusinessRuleError, ConflictError, ValidationError
from gigshift_api.services.time_codec import MINUTES_PER_DAY, format_minute

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def validate_day_of_week(day) -> int:
    if isinstance(day, bool):
        raise ValidationError("day_of_week must be an integer between 0 and 6")
    try:
        d = int(day)
    except (TypeError, ValueError):
        raise ValidationError("day_of_week must be an integer between 0 and 6") from None
    if d != day or not 0 <= d <= 6:
        raise ValidationError("day_of_week must be an integer between 0 and 6")
    return d


def shift_date(week_start: date, day_of_week: int) -> date:
    return week_start + timedelta(days=day_of_week)


def reject_if_past(week_start: date, day_of_week: int, today: date) -> None:
    d = shift_date(week_start, day_of_week)
    if d < today:
        raise BusinessRuleError(
            f"Cannot schedule shifts for past days. {DAY_NAMES[day_of_week]} ({d.isoformat()}) has already passed."
        )


def _span(start_min: int, end_min: int):
    # overnight shifts end on the next day
    return start_min, end_min + MINUTES_PER_DAY if end_min < start_min else end_min


def _range_label(start_min: int, end_min: int) -> str:
    return f"{format_minute(start_min)} - {format_minute(end_min)}"


def reject_if_duplicate(existing: Iterable, start_min: int, end_min: int) -> None:
    for s in existing:
        if s.start_min == start_min and s.end_min == end_min:
            raise ConflictError(
                f"Duplicate shift: employee already has a shift from {_range_label(start_min, end_min)} on this day"
            )


def reject_if_overlapping(existing: Iterable, start_min: int, end_min: int, day_of_week: int) -> None:
    """Half-open intervals: a shift ending at 5:00 PM does not collide with one starting at 5:00 PM."""
    s1, e1 = _span(start_min, end_min)
    for s in existing:
        s2, e2 = _span(s.start_min, s.end_min)
        if s1 < e2 and s2 < e1:
            tpl = getattr(s, "template", None)
            kind = tpl.name if tpl is not None else "Custom"
            raise ConflictError(
                f"Shift overlap detected: Employee already has a {kind} shift "
                f"({_range_label(s.start_min, s.end_min)}) on {DAY_NAMES[day_of_week]} "
                f"that overlaps with the new shift ({_range_label(start_min, end_min)})",
                payload={"conflicting_shift_id": getattr(s, "id", None)},
            )
