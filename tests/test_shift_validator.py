from datetime import date
from types import SimpleNamespace

import pytest

from gigshift_api.common.errors import BusinessRuleError, ConflictError, ValidationError
from gigshift_api.services import shift_validator as sv
from gigshift_api.services.time_codec import parse_label


def _shift(start, end, template=None, id=1):
    tpl = SimpleNamespace(name=template) if template else None
    return SimpleNamespace(id=id, start_min=parse_label(start), end_min=parse_label(end), template=tpl)


def test_validate_day_of_week():
    assert sv.validate_day_of_week(0) == 0
    assert sv.validate_day_of_week(6) == 6
    for bad in (-1, 7, "3", None, True, 2.5):
        with pytest.raises(ValidationError):
            sv.validate_day_of_week(bad)


def test_reject_if_past_names_day_and_date():
    week = date(2025, 9, 21)
    sv.reject_if_past(week, 3, today=date(2025, 9, 24))  # same day is fine
    with pytest.raises(BusinessRuleError) as ei:
        sv.reject_if_past(week, 1, today=date(2025, 9, 24))
    assert "Monday (2025-09-22)" in ei.value.message


def test_touching_shifts_do_not_overlap():
    existing = [_shift("9:00 AM", "5:00 PM")]
    sv.reject_if_overlapping(existing, parse_label("5:00 PM"), parse_label("9:00 PM"), 1)
    sv.reject_if_overlapping(existing, parse_label("6:00 AM"), parse_label("9:00 AM"), 1)


def test_overlap_message_names_template_and_day():
    existing = [_shift("9:00 AM", "5:00 PM", template="Morning")]
    with pytest.raises(ConflictError) as ei:
        sv.reject_if_overlapping(existing, parse_label("4:00 PM"), parse_label("8:00 PM"), 1)
    msg = ei.value.message
    assert "Morning shift (9:00 AM - 5:00 PM) on Monday" in msg
    assert "(4:00 PM - 8:00 PM)" in msg


def test_overnight_overlap():
    existing = [_shift("10:00 PM", "6:00 AM")]
    with pytest.raises(ConflictError) as ei:
        sv.reject_if_overlapping(existing, parse_label("11:00 PM"), parse_label("1:00 AM"), 3)
    assert "Custom shift" in ei.value.message
    # the morning of the same day precedes the overnight shift
    sv.reject_if_overlapping(existing, parse_label("6:00 AM"), parse_label("2:00 PM"), 3)


def test_duplicate():
    existing = [_shift("9:00 AM", "5:00 PM")]
    with pytest.raises(ConflictError):
        sv.reject_if_duplicate(existing, 540, 1020)
    sv.reject_if_duplicate(existing, 540, 1080)
