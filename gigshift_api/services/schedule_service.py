# gigshift_api/services/schedule_service.py
"""
Weekly schedules and their shifts.

A schedule belongs to one business and one Sunday-based week. Shifts carry
canonical minute-of-day times; labels and legacy strings are written alongside
as projections. Every write path runs the validator first and then relies on
the shift unique constraint for the final word.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy.exc import IntegrityError

from gigshift_api.common.clock import business_today
from gigshift_api.common.errors import (
    APIError, BusinessRuleError, ConflictError, NotFoundError, ValidationError,
)
from gigshift_api.extensions import db
from gigshift_api.models.confirmed_hours import ConfirmedHours
from gigshift_api.models.directory import Business, BusinessEmployee, Employee, business_employees
from gigshift_api.models.schedule import Shift, ShiftTemplate, WeeklySchedule
from gigshift_api.services.shift_validator import (
    DAY_NAMES, reject_if_duplicate, reject_if_overlapping, reject_if_past, validate_day_of_week,
)
from gigshift_api.services.time_codec import (
    duration_hours_from_minutes, format_minute, parse_time, round2, to_legacy,
)

log = logging.getLogger(__name__)

SCHEDULE_STATUSES = ("draft", "posted")


def is_sunday(d: date) -> bool:
    return d.weekday() == 6


def _require_sunday(week_start: date):
    if not is_sunday(week_start):
        raise BusinessRuleError("Week start date must be a Sunday")


# ---------- serialization ----------

def serialize_shift(s: Shift) -> dict:
    return {
        "id": s.id,
        "schedule_id": s.schedule_id,
        "employee_id": s.employee_id,
        "day_of_week": s.day_of_week,
        "day_name": DAY_NAMES[s.day_of_week],
        "start_label": s.start_label,
        "end_label": s.end_label,
        "start_time": s.start_time,
        "end_time": s.end_time,
        "duration_hours": float(s.duration_hours),
        "shift_template_id": s.shift_template_id,
        "template_name": s.template.name if s.template else None,
        "notes": s.notes,
    }


def _ordered_shifts(schedule_id: int, employee_id: int | None = None) -> list:
    q = Shift.query.filter(Shift.schedule_id == schedule_id)
    if employee_id is not None:
        q = q.filter(Shift.employee_id == employee_id)
    return q.order_by(Shift.day_of_week.asc(), Shift.start_min.asc(), Shift.id.asc()).all()


def serialize_schedule(schedule: WeeklySchedule) -> dict:
    shifts = _ordered_shifts(schedule.id)
    return {
        "id": schedule.id,
        "business_id": schedule.business_id,
        "week_start_date": schedule.week_start_date.isoformat(),
        "status": schedule.status,
        "posted_at": schedule.posted_at.isoformat() if schedule.posted_at else None,
        "created_by": schedule.created_by,
        "employees": business_employees(schedule.business_id),
        "shifts": [serialize_shift(s) for s in shifts],
        "total_hours_by_employee": _hours_by_employee(shifts),
    }


# ---------- schedules ----------

def get_schedule(business_id: int, week_start: date, status: str | None = None):
    q = WeeklySchedule.query.filter_by(business_id=business_id, week_start_date=week_start)
    if status is not None:
        if status not in SCHEDULE_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(SCHEDULE_STATUSES)}")
        q = q.filter(WeeklySchedule.status == status)
    return q.first()


def get_schedule_by_id(schedule_id: int) -> WeeklySchedule:
    s = db.session.get(WeeklySchedule, schedule_id)
    if not s:
        raise NotFoundError("Schedule not found")
    return s


def create_schedule(business_id: int, week_start: date, user_id: int | None = None) -> WeeklySchedule:
    _require_sunday(week_start)
    if not db.session.get(Business, business_id):
        raise NotFoundError("Business not found")
    if get_schedule(business_id, week_start):
        raise ConflictError("Schedule already exists for this week")

    s = WeeklySchedule(business_id=business_id, week_start_date=week_start,
                       status="draft", created_by=user_id)
    db.session.add(s)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        log.info("schedule create race lost business=%s week=%s", business_id, week_start)
        raise ConflictError("Schedule already exists for this week")
    return s


def get_or_create(business_id: int, week_start: date, user_id: int | None = None) -> WeeklySchedule:
    _require_sunday(week_start)
    existing = get_schedule(business_id, week_start)
    if existing:
        return existing
    try:
        return create_schedule(business_id, week_start, user_id)
    except ConflictError:
        # someone else created it between our read and insert
        existing = get_schedule(business_id, week_start)
        if existing:
            return existing
        raise


def _set_status(schedule_id: int, status: str, posted_at) -> WeeklySchedule:
    n = (WeeklySchedule.query
         .filter(WeeklySchedule.id == schedule_id)
         .update({"status": status, "posted_at": posted_at, "updated_at": datetime.utcnow()},
                 synchronize_session=False))
    db.session.commit()
    if n == 0:
        raise NotFoundError("Schedule not found")
    return get_schedule_by_id(schedule_id)


def post_schedule(schedule_id: int) -> WeeklySchedule:
    return _set_status(schedule_id, "posted", datetime.utcnow())


def unpost_schedule(schedule_id: int) -> WeeklySchedule:
    return _set_status(schedule_id, "draft", None)


# ---------- shifts ----------

def _ensure_member(business_id: int, employee_id) -> int:
    try:
        employee_id = int(employee_id)
    except (TypeError, ValueError):
        raise ValidationError("employee_id is required") from None
    link = BusinessEmployee.query.filter_by(business_id=business_id, employee_id=employee_id).first()
    if not link:
        raise BusinessRuleError("Employee is not associated with this business")
    return employee_id


def _resolve_template(business_id: int, template_id):
    if template_id in (None, ""):
        return None
    try:
        template_id = int(template_id)
    except (TypeError, ValueError):
        raise ValidationError("shift_template_id must be an integer") from None
    t = db.session.get(ShiftTemplate, template_id)
    if not t or t.business_id != business_id:
        raise ValidationError("Shift template not found for this business")
    return t


def _resolve_times(data: dict, template, fallback=None):
    """Explicit times win; a template fills in whatever was not given."""
    start_raw = data.get("start_time")
    end_raw = data.get("end_time")
    if start_raw is None and template is not None:
        start_min = template.start_min
    elif start_raw is not None:
        start_min = parse_time(start_raw)
    elif fallback is not None:
        start_min = fallback[0]
    else:
        raise ValidationError("start_time is required")

    if end_raw is None and template is not None:
        end_min = template.end_min
    elif end_raw is not None:
        end_min = parse_time(end_raw)
    elif fallback is not None:
        end_min = fallback[1]
    else:
        raise ValidationError("end_time is required")
    return start_min, end_min


def _apply_times(shift: Shift, start_min: int, end_min: int):
    shift.start_min, shift.end_min = start_min, end_min
    shift.start_label, shift.end_label = format_minute(start_min), format_minute(end_min)
    shift.start_time, shift.end_time = to_legacy(start_min), to_legacy(end_min)
    shift.duration_hours = duration_hours_from_minutes(start_min, end_min)


def _same_day_shifts(schedule_id: int, employee_id: int, day: int, exclude_id: int | None = None) -> list:
    q = Shift.query.filter(Shift.schedule_id == schedule_id,
                           Shift.employee_id == employee_id,
                           Shift.day_of_week == day)
    if exclude_id is not None:
        q = q.filter(Shift.id != exclude_id)
    return q.all()


def _commit_shift(shift: Shift):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        log.info("shift unique constraint hit schedule=%s employee=%s day=%s",
                 shift.schedule_id, shift.employee_id, shift.day_of_week)
        raise ConflictError("Duplicate shift: an identical shift already exists for this employee and day")


def create_shift(schedule_id: int, data: dict, today: date | None = None) -> Shift:
    schedule = get_schedule_by_id(schedule_id)
    employee_id = _ensure_member(schedule.business_id, data.get("employee_id"))
    day = validate_day_of_week(data.get("day_of_week"))
    template = _resolve_template(schedule.business_id, data.get("shift_template_id"))
    start_min, end_min = _resolve_times(data, template)

    reject_if_past(schedule.week_start_date, day, today or business_today())
    existing = _same_day_shifts(schedule.id, employee_id, day)
    reject_if_duplicate(existing, start_min, end_min)
    reject_if_overlapping(existing, start_min, end_min, day)

    shift = Shift(schedule_id=schedule.id, employee_id=employee_id, day_of_week=day,
                  shift_template_id=template.id if template else None,
                  notes=data.get("notes"))
    _apply_times(shift, start_min, end_min)
    db.session.add(shift)
    _commit_shift(shift)
    return shift


def bulk_create_shifts(schedule_id: int, items: list, today: date | None = None) -> dict:
    get_schedule_by_id(schedule_id)
    created, errors = [], []
    for idx, item in enumerate(items or []):
        try:
            created.append(serialize_shift(create_shift(schedule_id, item or {}, today=today)))
        except APIError as e:
            errors.append({"index": idx, "error": e.message, "code": e.code})
    return {"created": created, "errors": errors}


def update_shift(shift_id: int, data: dict, today: date | None = None) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if not shift:
        raise NotFoundError("Shift not found")
    schedule = shift.schedule

    employee_id = shift.employee_id
    if "employee_id" in data and data["employee_id"] is not None:
        employee_id = _ensure_member(schedule.business_id, data["employee_id"])
    day = validate_day_of_week(data["day_of_week"]) if "day_of_week" in data else shift.day_of_week

    template = shift.template
    if "shift_template_id" in data:
        template = _resolve_template(schedule.business_id, data["shift_template_id"])
    if "start_time" in data or "end_time" in data:
        start_min, end_min = _resolve_times(data, None, fallback=(shift.start_min, shift.end_min))
    elif "shift_template_id" in data and template is not None:
        start_min, end_min = template.start_min, template.end_min
    else:
        start_min, end_min = shift.start_min, shift.end_min

    changed = (employee_id, day, start_min, end_min) != (
        shift.employee_id, shift.day_of_week, shift.start_min, shift.end_min)
    if changed:
        reject_if_past(schedule.week_start_date, day, today or business_today())
        existing = _same_day_shifts(schedule.id, employee_id, day, exclude_id=shift.id)
        reject_if_duplicate(existing, start_min, end_min)
        reject_if_overlapping(existing, start_min, end_min, day)
        shift.employee_id = employee_id
        shift.day_of_week = day
        _apply_times(shift, start_min, end_min)

    if "shift_template_id" in data:
        shift.shift_template_id = template.id if template else None
    if "notes" in data:
        shift.notes = data["notes"]
    _commit_shift(shift)
    return shift


def delete_shift(shift_id: int) -> None:
    shift = db.session.get(Shift, shift_id)
    if not shift:
        raise NotFoundError("Shift not found")
    db.session.delete(shift)
    db.session.commit()


# ---------- hours ----------

def _hours_by_employee(shifts) -> dict:
    out: dict = {}
    for s in shifts:
        hrs = duration_hours_from_minutes(s.start_min, s.end_min)
        out[s.employee_id] = round2(out.get(s.employee_id, 0.0) + hrs)
    return out


def employee_hours(schedule_id: int) -> dict:
    """{employee_id: scheduled hours} for one schedule, posted or not."""
    get_schedule_by_id(schedule_id)
    return _hours_by_employee(_ordered_shifts(schedule_id))


def posted_hours_in_range(business_id: int, start: date, end: date) -> dict:
    """Scheduled hours from posted weeks, counting only shifts dated inside [start, end]."""
    schedules = (WeeklySchedule.query
                 .filter(WeeklySchedule.business_id == business_id,
                         WeeklySchedule.status == "posted",
                         WeeklySchedule.week_start_date <= end,
                         WeeklySchedule.week_start_date >= start - timedelta(days=6))
                 .order_by(WeeklySchedule.week_start_date.asc())
                 .all())
    out: dict = {}
    for sch in schedules:
        shifts = [s for s in _ordered_shifts(sch.id)
                  if start <= sch.week_start_date + timedelta(days=s.day_of_week) <= end]
        for emp_id, hrs in _hours_by_employee(shifts).items():
            out[emp_id] = round2(out.get(emp_id, 0.0) + hrs)
    return out


def scheduled_daily_hours(employee_id: int, business_id: int, week_start: date) -> list:
    daily = [0.0] * 7
    schedule = get_schedule(business_id, week_start, status="posted")
    if not schedule:
        return daily
    for s in _ordered_shifts(schedule.id, employee_id=employee_id):
        daily[s.day_of_week] = round2(daily[s.day_of_week] + duration_hours_from_minutes(s.start_min, s.end_min))
    return daily


# ---------- copy ----------

def copy_previous_week(business_id: int, target_week_start: date, user_id: int | None = None,
                       today: date | None = None) -> dict:
    _require_sunday(target_week_start)
    source = get_schedule(business_id, target_week_start - timedelta(days=7), status="posted")
    if not source:
        raise BusinessRuleError("No posted schedule found for previous week")
    source_shifts = _ordered_shifts(source.id)
    if not source_shifts:
        raise BusinessRuleError("Previous week has no shifts to copy")

    target = get_or_create(business_id, target_week_start, user_id)
    copied = skipped = 0
    for s in source_shifts:
        payload = {
            "employee_id": s.employee_id,
            "day_of_week": s.day_of_week,
            "start_time": s.start_label,
            "end_time": s.end_label,
            "shift_template_id": s.shift_template_id,
            "notes": s.notes,
        }
        try:
            create_shift(target.id, payload, today=today)
            copied += 1
        except APIError as e:
            skipped += 1
            log.warning("copy skipped shift=%s into schedule=%s: %s", s.id, target.id, e.message)

    if copied == 0:
        raise BusinessRuleError("Failed to copy any shifts from previous week")

    data = serialize_schedule(target)
    data["copied"] = copied
    data["skipped"] = skipped
    return data


# ---------- employee view ----------

def employee_week_view(user_id: int, week_start: date) -> dict:
    emp = Employee.query.filter_by(user_id=user_id).first()
    if not emp:
        raise NotFoundError("Employee profile not found")
    _require_sunday(week_start)

    business_ids = [r[0] for r in db.session.query(BusinessEmployee.business_id)
                    .filter(BusinessEmployee.employee_id == emp.id).all()]
    schedules = []
    total = 0.0
    if business_ids:
        rows = (WeeklySchedule.query
                .filter(WeeklySchedule.business_id.in_(business_ids),
                        WeeklySchedule.week_start_date == week_start,
                        WeeklySchedule.status == "posted")
                .order_by(WeeklySchedule.business_id.asc())
                .all())
        for sch in rows:
            shifts = _ordered_shifts(sch.id, employee_id=emp.id)
            scheduled = _hours_by_employee(shifts).get(emp.id, 0.0)
            confirmed = (ConfirmedHours.query
                         .filter_by(employee_id=emp.id, business_id=sch.business_id, week_start_date=week_start)
                         .first())
            hours = round2(confirmed.total_hours) if confirmed is not None else scheduled
            total = round2(total + hours)
            biz = db.session.get(Business, sch.business_id)
            schedules.append({
                "schedule_id": sch.id,
                "business_id": sch.business_id,
                "business_name": biz.name if biz else None,
                "shifts": [serialize_shift(s) for s in shifts],
                "scheduled_hours": scheduled,
                "confirmed_hours": round2(confirmed.total_hours) if confirmed is not None else None,
                "confirmed_status": confirmed.status if confirmed is not None else None,
                "total_hours": hours,
            })
    return {
        "employee_id": emp.id,
        "week_start_date": week_start.isoformat(),
        "schedules": schedules,
        "total_hours": total,
    }
