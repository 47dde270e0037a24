import os
from datetime import date

import pytest

from gigshift_api import create_app
from gigshift_api.extensions import db
from gigshift_api.common.errors import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from gigshift_api.models.confirmed_hours import ConfirmedHours
from gigshift_api.models.directory import Business, BusinessEmployee, Employee
from gigshift_api.services import confirmed_hours_service as ch
from gigshift_api.services import schedule_service

WEEK = date(2025, 9, 21)


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    with app.app_context():
        db.create_all()
        yield app


@pytest.fixture(scope="function")
def seed(app):
    b = Business(name="Bakery", employer_user_id=1)
    other = Business(name="Other", employer_user_id=2)
    e = Employee(user_id=5, full_name="Pat Worker")
    db.session.add_all([b, other, e]); db.session.commit()
    db.session.add(BusinessEmployee(business_id=b.id, employee_id=e.id)); db.session.commit()
    return b, other, e


def _draft(b, e, **hours):
    return ch.create(e.id, b.id, WEEK, hours or {"monday_hours": 8, "tuesday_hours": 7.5})


def test_create_validates(seed):
    b, _, e = seed
    with pytest.raises(BusinessRuleError):
        ch.create(e.id, b.id, date(2025, 9, 22), {})
    with pytest.raises(ValidationError):
        ch.create(e.id, b.id, WEEK, {"monday_hours": 25})
    with pytest.raises(ValidationError):
        ch.create(e.id, b.id, WEEK, {"monday_hours": "lots"})
    row = _draft(b, e)
    assert row.status == "draft"
    assert float(row.total_hours) == 15.5
    with pytest.raises(ConflictError):
        _draft(b, e)


def test_submit_approve(seed):
    b, _, e = seed
    row = _draft(b, e)
    sub = ch.submit(row.id, e.id)
    assert sub.status == "submitted" and sub.submitted_at is not None

    with pytest.raises(NotFoundError):
        ch.submit(row.id, e.id)  # already submitted

    ok = ch.approve(row.id, approver_id=1, business_ids=[b.id])
    assert ok.status == "approved"
    assert ok.approved_by == 1 and ok.approved_at is not None

    with pytest.raises(NotFoundError):
        ch.update(row.id, e.id, {"monday_hours": 4})
    with pytest.raises(NotFoundError):
        ch.reject(row.id, 1, "late", business_ids=[b.id])


def test_approve_outside_own_business_is_not_found(seed):
    b, other, e = seed
    row = _draft(b, e)
    ch.submit(row.id, e.id)
    with pytest.raises(NotFoundError):
        ch.approve(row.id, approver_id=2, business_ids=[other.id])
    with pytest.raises(NotFoundError):
        ch.approve(row.id, approver_id=2, business_ids=[])
    assert ch.get(row.id).status == "submitted"


def test_reject_requires_reason_then_edit_and_resubmit(seed):
    b, _, e = seed
    row = _draft(b, e)
    ch.submit(row.id, e.id)
    with pytest.raises(ValidationError):
        ch.reject(row.id, 1, "   ", business_ids=[b.id])
    with pytest.raises(ValidationError):
        ch.reject(row.id, 1, None, business_ids=[b.id])

    rej = ch.reject(row.id, 1, "Tuesday was a holiday", business_ids=[b.id])
    assert rej.status == "rejected"
    assert rej.rejection_reason == "Tuesday was a holiday" and rej.rejected_by == 1

    edited = ch.update(row.id, e.id, {"tuesday_hours": 0})
    assert edited.status == "draft"
    assert edited.rejection_reason is None and edited.rejected_at is None and edited.rejected_by is None
    assert float(edited.total_hours) == 8.0

    again = ch.submit(row.id, e.id)
    assert again.status == "submitted"


def test_resubmit_directly_from_rejected(seed):
    b, _, e = seed
    row = _draft(b, e)
    ch.submit(row.id, e.id)
    ch.reject(row.id, 1, "wrong week", business_ids=None)
    sub = ch.submit(row.id, e.id, notes="fixed")
    assert sub.status == "submitted" and sub.rejection_reason is None and sub.notes == "fixed"


def test_update_partial_recomputes_total(seed):
    b, _, e = seed
    row = _draft(b, e, sunday_hours=1.1, monday_hours=2.2, saturday_hours=3.3)
    upd = ch.update(row.id, e.id, {"monday_hours": 4.45})
    assert float(upd.monday_hours) == 4.45
    assert float(upd.sunday_hours) == 1.1
    assert float(upd.total_hours) == 8.85

    with pytest.raises(NotFoundError):
        ch.update(row.id, e.id + 100, {"monday_hours": 1})


def test_ensure_exists_prefills_from_posted_schedule(seed):
    b, _, e = seed
    assert ch.ensure_exists(e.id, b.id, WEEK) is None

    s = schedule_service.create_schedule(b.id, WEEK)
    schedule_service.create_shift(s.id, {"employee_id": e.id, "day_of_week": 1,
                                         "start_time": "9:00 AM", "end_time": "5:00 PM"}, today=WEEK)
    schedule_service.create_shift(s.id, {"employee_id": e.id, "day_of_week": 5,
                                         "start_time": "10:00 PM", "end_time": "2:00 AM"}, today=WEEK)
    assert ch.ensure_exists(e.id, b.id, WEEK) is None  # draft schedule does not count

    schedule_service.post_schedule(s.id)
    row = ch.ensure_exists(e.id, b.id, WEEK)
    assert row.status == "draft"
    assert row.notes == ch.AUTO_NOTE
    assert row.daily() == [0.0, 8.0, 0.0, 0.0, 0.0, 4.0, 0.0]
    assert float(row.total_hours) == 12.0

    again = ch.ensure_exists(e.id, b.id, WEEK)
    assert again.id == row.id
    assert ConfirmedHours.query.count() == 1


def test_ensure_exists_returns_row_inserted_concurrently(seed, monkeypatch):
    b, _, e = seed
    s = schedule_service.create_schedule(b.id, WEEK)
    schedule_service.create_shift(s.id, {"employee_id": e.id, "day_of_week": 2,
                                         "start_time": "9:00 AM", "end_time": "3:00 PM"}, today=WEEK)
    schedule_service.post_schedule(s.id)
    theirs = _draft(b, e)

    real_find = ch.find
    calls = []

    def stale_find(*args):
        calls.append(args)
        return None if len(calls) == 1 else real_find(*args)

    monkeypatch.setattr(ch, "find", stale_find)
    row = ch.ensure_exists(e.id, b.id, WEEK)
    assert row.id == theirs.id
    assert row.notes != ch.AUTO_NOTE
    assert float(row.total_hours) == 15.5
    assert ConfirmedHours.query.count() == 1


def test_weekly_with_schedule(seed):
    b, _, e = seed
    s = schedule_service.create_schedule(b.id, WEEK)
    schedule_service.create_shift(s.id, {"employee_id": e.id, "day_of_week": 2,
                                         "start_time": "8:00 AM", "end_time": "12:00 PM"}, today=WEEK)
    schedule_service.post_schedule(s.id)
    out = ch.weekly_with_schedule(b.id, WEEK, e.id)
    assert out["scheduled_total"] == 4.0
    assert out["scheduled_hours"]["tuesday_hours"] == 4.0
    assert out["confirmed_hours"]["tuesday_hours"] == 4.0
    assert out["business"] == {"id": b.id, "name": "Bakery"}


def test_listings(seed):
    b, _, e = seed
    row = _draft(b, e)
    assert ch.list_for_employer(b.id) == []
    assert ch.list_for_employer(b.id, "draft")[0]["id"] == row.id
    ch.submit(row.id, e.id)
    listed = ch.list_for_employer(b.id)
    assert [r["id"] for r in listed] == [row.id]
    assert listed[0]["employee_name"] == "Pat Worker"
    assert len(ch.list_for_employee(e.id)) == 1
    assert ch.list_for_employee(e.id, business_id=b.id + 100) == []
    with pytest.raises(ValidationError):
        ch.list_for_employer(b.id, "archived")
