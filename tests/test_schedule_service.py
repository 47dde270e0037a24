import os
from datetime import date

import pytest

from gigshift_api import create_app
from gigshift_api.extensions import db
from gigshift_api.common.errors import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from gigshift_api.models.directory import Business, BusinessEmployee, Employee
from gigshift_api.models.schedule import Shift
from gigshift_api.services import schedule_service as svc
from gigshift_api.services import shift_templates

WEEK = date(2025, 9, 21)  # Sunday


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    with app.app_context():
        db.create_all()
        yield app


@pytest.fixture(scope="function")
def biz(app):
    b = Business(name="Corner Diner", employer_user_id=10)
    e1 = Employee(user_id=20, full_name="Erin Example", employee_gid="GIG-20")
    e2 = Employee(user_id=21, full_name="Sam Sample", employee_gid="GIG-21")
    db.session.add_all([b, e1, e2]); db.session.commit()
    db.session.add_all([BusinessEmployee(business_id=b.id, employee_id=e1.id),
                        BusinessEmployee(business_id=b.id, employee_id=e2.id)])
    db.session.commit()
    return b, e1, e2


def _shift(schedule, emp, day, start, end, today=WEEK, **kw):
    data = {"employee_id": emp.id, "day_of_week": day, "start_time": start, "end_time": end}
    data.update(kw)
    return svc.create_shift(schedule.id, data, today=today)


def test_week_must_start_on_sunday(biz):
    b, _, _ = biz
    with pytest.raises(BusinessRuleError):
        svc.create_schedule(b.id, date(2025, 9, 22))
    s = svc.create_schedule(b.id, WEEK, user_id=10)
    assert s.status == "draft"
    with pytest.raises(ConflictError):
        svc.create_schedule(b.id, WEEK)


def test_get_or_create_is_idempotent(biz):
    b, _, _ = biz
    a = svc.get_or_create(b.id, WEEK, 10)
    again = svc.get_or_create(b.id, WEEK, 10)
    assert a.id == again.id
    assert svc.get_schedule(b.id, WEEK, status="posted") is None
    with pytest.raises(ValidationError):
        svc.get_schedule(b.id, WEEK, status="archived")


def test_end_to_end_hours(biz):
    b, e, _ = biz
    s = svc.create_schedule(b.id, WEEK)
    _shift(s, e, 1, "9:00 AM", "5:00 PM")
    _shift(s, e, 3, "10:00 PM", "6:00 AM")
    assert svc.employee_hours(s.id) == {e.id: 16.00}


def test_shift_projections_written_from_minutes(biz):
    b, e, _ = biz
    s = svc.create_schedule(b.id, WEEK)
    sh = _shift(s, e, 2, "9 am", "17:30:00")
    assert (sh.start_min, sh.end_min) == (540, 1050)
    assert (sh.start_label, sh.end_label) == ("9:00 AM", "5:30 PM")
    assert (sh.start_time, sh.end_time) == ("09:00:00", "17:30:00")
    assert float(sh.duration_hours) == 8.5


def test_overlap_and_touching(biz):
    b, e, e2 = biz
    s = svc.create_schedule(b.id, WEEK)
    _shift(s, e, 1, "9:00 AM", "5:00 PM")
    with pytest.raises(ConflictError):
        _shift(s, e, 1, "4:00 PM", "8:00 PM")
    with pytest.raises(ConflictError):
        _shift(s, e, 1, "9:00 AM", "5:00 PM")
    _shift(s, e, 1, "5:00 PM", "9:00 PM")
    # other employees are independent
    _shift(s, e2, 1, "4:00 PM", "8:00 PM")
    assert Shift.query.filter_by(schedule_id=s.id).count() == 3


def test_past_day_rejected(biz):
    b, e, _ = biz
    s = svc.create_schedule(b.id, WEEK)
    with pytest.raises(BusinessRuleError) as ei:
        _shift(s, e, 1, "9:00 AM", "5:00 PM", today=date(2025, 9, 24))
    assert "Monday (2025-09-22)" in ei.value.message


def test_non_member_and_bad_input(biz):
    b, _, _ = biz
    outsider = Employee(full_name="Out Sider")
    db.session.add(outsider); db.session.commit()
    s = svc.create_schedule(b.id, WEEK)
    with pytest.raises(BusinessRuleError):
        _shift(s, outsider, 1, "9:00 AM", "5:00 PM")
    with pytest.raises(ValidationError):
        svc.create_shift(s.id, {"employee_id": biz[1].id, "day_of_week": 7,
                                "start_time": "9:00 AM", "end_time": "5:00 PM"}, today=WEEK)
    with pytest.raises(ValidationError):
        svc.create_shift(s.id, {"employee_id": biz[1].id, "day_of_week": 1,
                                "start_time": "whenever", "end_time": "5:00 PM"}, today=WEEK)


def test_template_fills_times(biz):
    b, e, _ = biz
    shift_templates.create_default_templates(b.id)
    night = [t for t in shift_templates.list_templates(b.id) if t.name == "Night"][0]
    s = svc.create_schedule(b.id, WEEK)
    sh = svc.create_shift(s.id, {"employee_id": e.id, "day_of_week": 4, "shift_template_id": night.id}, today=WEEK)
    assert (sh.start_label, sh.end_label) == ("10:00 PM", "6:00 AM")
    assert svc.serialize_shift(sh)["template_name"] == "Night"


def test_update_revalidates_only_on_time_change(biz):
    b, e, _ = biz
    s = svc.create_schedule(b.id, WEEK)
    first = _shift(s, e, 1, "9:00 AM", "1:00 PM")
    second = _shift(s, e, 1, "2:00 PM", "6:00 PM")

    with pytest.raises(ConflictError):
        svc.update_shift(second.id, {"start_time": "12:00 PM"}, today=WEEK)

    # notes-only edits on a day that has passed are allowed
    upd = svc.update_shift(first.id, {"notes": "bring keys"}, today=date(2025, 9, 25))
    assert upd.notes == "bring keys"

    with pytest.raises(BusinessRuleError):
        svc.update_shift(first.id, {"end_time": "1:30 PM"}, today=date(2025, 9, 25))

    moved = svc.update_shift(second.id, {"start_time": "1:00 PM", "end_time": "7:00 PM"}, today=WEEK)
    assert moved.start_label == "1:00 PM"
    assert float(moved.duration_hours) == 6.0


def test_rejected_template_change_is_not_persisted(biz):
    b, e, _ = biz
    shift_templates.create_default_templates(b.id)
    morning = [t for t in shift_templates.list_templates(b.id) if t.name == "Morning"][0]
    s = svc.create_schedule(b.id, WEEK)
    _shift(s, e, 1, "9:00 AM", "1:00 PM")
    second = _shift(s, e, 1, "2:00 PM", "6:00 PM")

    with pytest.raises(ConflictError):
        svc.update_shift(second.id, {"shift_template_id": morning.id}, today=WEEK)
    db.session.commit()
    db.session.expire_all()
    assert db.session.get(Shift, second.id).shift_template_id is None


def test_unique_constraint_catches_duplicate_shift(biz, monkeypatch):
    b, e, _ = biz
    s = svc.create_schedule(b.id, WEEK)
    _shift(s, e, 2, "9:00 AM", "5:00 PM")
    monkeypatch.setattr(svc, "_same_day_shifts", lambda *a, **kw: [])
    with pytest.raises(ConflictError):
        _shift(s, e, 2, "9:00 AM", "5:00 PM")
    assert Shift.query.count() == 1


def test_schedule_insert_race(biz, monkeypatch):
    b, _, _ = biz
    first = svc.create_schedule(b.id, WEEK)
    real_get = svc.get_schedule
    calls = []

    def stale_get(*args, **kwargs):
        calls.append(args)
        return None if len(calls) <= 3 else real_get(*args, **kwargs)

    monkeypatch.setattr(svc, "get_schedule", stale_get)
    with pytest.raises(ConflictError):
        svc.create_schedule(b.id, WEEK)
    # get_or_create falls back to the row the other writer inserted
    assert svc.get_or_create(b.id, WEEK).id == first.id


def test_delete_and_post_toggle(biz):
    b, e, _ = biz
    s = svc.create_schedule(b.id, WEEK)
    sh = _shift(s, e, 1, "9:00 AM", "5:00 PM")
    svc.delete_shift(sh.id)
    with pytest.raises(NotFoundError):
        svc.delete_shift(sh.id)

    posted = svc.post_schedule(s.id)
    assert posted.status == "posted" and posted.posted_at is not None
    draft = svc.unpost_schedule(s.id)
    assert draft.status == "draft" and draft.posted_at is None
    with pytest.raises(NotFoundError):
        svc.post_schedule(9999)


def test_bulk_create_collects_errors(biz):
    b, e, _ = biz
    s = svc.create_schedule(b.id, WEEK)
    res = svc.bulk_create_shifts(s.id, [
        {"employee_id": e.id, "day_of_week": 1, "start_time": "9:00 AM", "end_time": "5:00 PM"},
        {"employee_id": e.id, "day_of_week": 1, "start_time": "4:00 PM", "end_time": "8:00 PM"},
        {"employee_id": e.id, "day_of_week": 2, "start_time": "9:00 AM", "end_time": "5:00 PM"},
    ], today=WEEK)
    assert len(res["created"]) == 2
    assert res["errors"][0]["index"] == 1
    assert res["errors"][0]["code"] == "CONFLICT"


def test_copy_previous_week(biz):
    b, e, e2 = biz
    prev = svc.create_schedule(b.id, date(2025, 9, 14))
    _shift(prev, e, 1, "9:00 AM", "5:00 PM", today=date(2025, 9, 14))
    _shift(prev, e2, 4, "10:00 PM", "6:00 AM", today=date(2025, 9, 14))

    with pytest.raises(BusinessRuleError) as ei:
        svc.copy_previous_week(b.id, WEEK, today=WEEK)
    assert "No posted schedule" in ei.value.message

    svc.post_schedule(prev.id)
    data = svc.copy_previous_week(b.id, WEEK, user_id=10, today=WEEK)
    assert data["copied"] == 2 and data["skipped"] == 0
    assert data["total_hours_by_employee"] == {e.id: 8.0, e2.id: 8.0}


def test_copy_previous_week_skips_past_days(biz):
    b, e, e2 = biz
    prev = svc.create_schedule(b.id, date(2025, 9, 14))
    _shift(prev, e, 1, "9:00 AM", "5:00 PM", today=date(2025, 9, 14))
    _shift(prev, e2, 4, "9:00 AM", "5:00 PM", today=date(2025, 9, 14))
    svc.post_schedule(prev.id)

    data = svc.copy_previous_week(b.id, WEEK, today=date(2025, 9, 24))
    assert (data["copied"], data["skipped"]) == (1, 1)

    empty = svc.create_schedule(b.id, date(2025, 9, 28))
    svc.post_schedule(empty.id)
    with pytest.raises(BusinessRuleError) as ei:
        svc.copy_previous_week(b.id, date(2025, 10, 5), today=WEEK)
    assert "no shifts to copy" in ei.value.message


def test_copy_fails_when_nothing_copies(biz):
    b, e, _ = biz
    prev = svc.create_schedule(b.id, date(2025, 9, 14))
    _shift(prev, e, 1, "9:00 AM", "5:00 PM", today=date(2025, 9, 14))
    svc.post_schedule(prev.id)
    with pytest.raises(BusinessRuleError) as ei:
        svc.copy_previous_week(b.id, WEEK, today=date(2025, 9, 27))
    assert ei.value.message == "Failed to copy any shifts from previous week"


def test_scheduled_daily_hours_only_from_posted(biz):
    b, e, _ = biz
    s = svc.create_schedule(b.id, WEEK)
    _shift(s, e, 1, "9:00 AM", "5:00 PM")
    _shift(s, e, 1, "6:00 PM", "8:00 PM")
    assert svc.scheduled_daily_hours(e.id, b.id, WEEK) == [0.0] * 7
    svc.post_schedule(s.id)
    assert svc.scheduled_daily_hours(e.id, b.id, WEEK) == [0.0, 10.0, 0.0, 0.0, 0.0, 0.0, 0.0]


def test_employee_week_view(biz):
    b, e, e2 = biz
    s = svc.create_schedule(b.id, WEEK)
    _shift(s, e, 1, "9:00 AM", "5:00 PM")
    _shift(s, e2, 1, "9:00 AM", "1:00 PM")
    assert svc.employee_week_view(e.user_id, WEEK)["schedules"] == []

    svc.post_schedule(s.id)
    view = svc.employee_week_view(e.user_id, WEEK)
    assert len(view["schedules"]) == 1
    assert [sh["employee_id"] for sh in view["schedules"][0]["shifts"]] == [e.id]
    assert view["total_hours"] == 8.0
    with pytest.raises(NotFoundError):
        svc.employee_week_view(999, WEEK)
