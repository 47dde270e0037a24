# gigshift_api/services/time_codec.py
"""
Time-of-day codec.

Every shift time is stored as minute-of-day (0..1439). The human label
("9:00 AM") and the legacy "HH:MM:SS" string are projections derived from the
minute at write time; nothing reads them back for arithmetic.
"""
from __future__ import annotations

import re
from decimal import Decimal, ROUND_HALF_UP

from gigshift_api.common.errors import ValidationError

MINUTES_PER_DAY = 1440

_LABEL_RE = re.compile(r"^([1-9]|1[0-2])(?::([0-5][0-9]))?\s?(AM|PM)$")
_LEGACY_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])(?::([0-5][0-9]))?$")
_CENT = Decimal("0.01")


def round2(value) -> float:
    """Round half away from zero to 2 decimals; 0.1 + 0.2 style drift is absorbed here."""
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def _check_minute(minute) -> int:
    if isinstance(minute, bool) or not isinstance(minute, int) or not 0 <= minute < MINUTES_PER_DAY:
        raise ValidationError(f"Minute of day out of range: {minute!r}")
    return minute


def parse_label(text) -> int:
    if not isinstance(text, str):
        raise ValidationError(f"Invalid time format: {text!r}. Expected format like '9:00 AM'")
    s = " ".join(text.split()).upper()
    m = _LABEL_RE.match(s)
    if not m:
        raise ValidationError(f"Invalid time format: {text!r}. Expected format like '9:00 AM'")
    hour = int(m.group(1)) % 12
    minute = int(m.group(2) or 0)
    if m.group(3) == "PM":
        hour += 12
    return hour * 60 + minute


def format_minute(minute) -> str:
    minute = _check_minute(minute)
    h24, mm = divmod(minute, 60)
    meridiem = "AM" if h24 < 12 else "PM"
    h12 = h24 % 12 or 12
    return f"{h12}:{mm:02d} {meridiem}"


def canonicalize(text) -> str:
    return format_minute(parse_label(text))


def to_legacy(minute) -> str:
    minute = _check_minute(minute)
    return f"{minute // 60:02d}:{minute % 60:02d}:00"


def parse_legacy(text) -> int:
    if not isinstance(text, str):
        raise ValidationError(f"Invalid time value: {text!r}")
    m = _LEGACY_RE.match(text.strip())
    if not m:
        raise ValidationError(f"Invalid time value: {text!r}")
    return int(m.group(1)) * 60 + int(m.group(2))


def parse_time(text) -> int:
    """Label first, then legacy numeric; anything else is a ValidationError."""
    try:
        return parse_label(text)
    except ValidationError:
        pass
    try:
        return parse_legacy(text)
    except ValidationError:
        raise ValidationError(
            f"Invalid time format: {text!r}. Expected '9:00 AM' or '09:00:00'"
        ) from None


def duration_minutes(start_min: int, end_min: int) -> int:
    _check_minute(start_min)
    _check_minute(end_min)
    if end_min >= start_min:
        return end_min - start_min
    return MINUTES_PER_DAY - start_min + end_min


def duration_hours_from_minutes(start_min: int, end_min: int) -> float:
    return round2(Decimal(duration_minutes(start_min, end_min)) / Decimal(60))


def duration(start_label, end_label) -> float:
    """Hours between two labels; an end before the start crosses midnight."""
    return duration_hours_from_minutes(parse_label(start_label), parse_label(end_label))


def project(minute: int) -> dict:
    return {"label": format_minute(minute), "legacy": to_legacy(minute)}
