# gigshift_api/services/confirmed_hours_service.py
"""
Confirmed-hours workflow.

    draft -> submitted -> approved
                       -> rejected -> draft (edit) | submitted (resubmit)

Every transition is one UPDATE ... WHERE status IN (...) and the rowcount
decides whether it happened. A zero rowcount is reported as NotFoundError,
whether the row is missing or simply in the wrong state.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError

from gigshift_api.common.errors import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from gigshift_api.extensions import db
from gigshift_api.models.confirmed_hours import CH_STATUSES, DAY_FIELDS, ConfirmedHours
from gigshift_api.models.directory import Business, employee_names
from gigshift_api.services.schedule_service import is_sunday, scheduled_daily_hours
from gigshift_api.services.time_codec import round2

log = logging.getLogger(__name__)

AUTO_NOTE = "Auto-generated from scheduled hours"
STATE_ERROR = "Confirmed hours record not found or not in the required state"
EMPLOYER_DEFAULT_STATUSES = ("submitted", "approved")


def _iso(v):
    return v.isoformat() if v else None


def serialize(row: ConfirmedHours, name: str | None = None) -> dict:
    d = {
        "id": row.id,
        "employee_id": row.employee_id,
        "business_id": row.business_id,
        "week_start_date": _iso(row.week_start_date),
        "status": row.status,
        "total_hours": round2(row.total_hours),
        "submitted_at": _iso(row.submitted_at),
        "approved_at": _iso(row.approved_at),
        "approved_by": row.approved_by,
        "rejected_at": _iso(row.rejected_at),
        "rejected_by": row.rejected_by,
        "rejection_reason": row.rejection_reason,
        "notes": row.notes,
    }
    for f in DAY_FIELDS:
        d[f] = round2(getattr(row, f))
    if name is not None:
        d["employee_name"] = name
    return d


def _hour_value(field: str, value) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number between 0 and 24")
    try:
        v = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number between 0 and 24") from None
    if not v.is_finite() or v < 0 or v > 24:
        raise ValidationError(f"{field} must be a number between 0 and 24")
    return round2(v)


def clean_hours(data: dict, partial: bool = False) -> dict:
    """Pick the seven day fields out of a payload; unknown keys are ignored."""
    out = {}
    for f in DAY_FIELDS:
        if f in data and data[f] is not None:
            out[f] = _hour_value(f, data[f])
        elif not partial:
            out[f] = 0.0
    return out


def _total(values) -> float:
    t = 0.0
    for v in values:
        t = round2(t + v)
    return t


def get(record_id: int) -> ConfirmedHours:
    row = db.session.get(ConfirmedHours, record_id)
    if not row:
        raise NotFoundError("Confirmed hours record not found")
    return row


def find(employee_id: int, business_id: int, week_start: date):
    return ConfirmedHours.query.filter_by(
        employee_id=employee_id, business_id=business_id, week_start_date=week_start
    ).first()


# ---------- lazy materialization ----------

def ensure_exists(employee_id: int, business_id: int, week_start: date):
    """
    Return the confirmed-hours row for the week, creating a draft prefilled
    from the posted schedule when there is none and something was scheduled.
    Returns None when nothing exists and nothing was scheduled.
    """
    row = find(employee_id, business_id, week_start)
    if row is not None:
        return row

    daily = scheduled_daily_hours(employee_id, business_id, week_start)
    total = _total(daily)
    if total <= 0:
        return None

    row = ConfirmedHours(employee_id=employee_id, business_id=business_id, week_start_date=week_start,
                         status="draft", total_hours=total, notes=AUTO_NOTE)
    for f, v in zip(DAY_FIELDS, daily):
        setattr(row, f, v)
    db.session.add(row)
    try:
        db.session.commit()
        log.info("confirmed hours auto-created employee=%s business=%s week=%s total=%s",
                 employee_id, business_id, week_start, total)
    except IntegrityError:
        db.session.rollback()
        log.info("confirmed hours auto-create raced employee=%s business=%s week=%s",
                 employee_id, business_id, week_start)
        row = find(employee_id, business_id, week_start)
    return row


def weekly_with_schedule(business_id: int, week_start: date, employee_id: int) -> dict:
    if not is_sunday(week_start):
        raise BusinessRuleError("Week start date must be a Sunday")
    biz = db.session.get(Business, business_id)
    if not biz:
        raise NotFoundError("Business not found")

    row = ensure_exists(employee_id, business_id, week_start)
    daily = scheduled_daily_hours(employee_id, business_id, week_start)
    return {
        "confirmed_hours": serialize(row) if row is not None else None,
        "scheduled_hours": dict(zip(DAY_FIELDS, daily)),
        "scheduled_total": _total(daily),
        "business": {"id": biz.id, "name": biz.name},
    }


# ---------- employee writes ----------

def create(employee_id: int, business_id: int, week_start: date, hours: dict, notes: str | None = None) -> ConfirmedHours:
    if not is_sunday(week_start):
        raise BusinessRuleError("Week start date must be a Sunday")
    values = clean_hours(hours or {})
    if find(employee_id, business_id, week_start) is not None:
        raise ConflictError("Confirmed hours already exist for this week")

    row = ConfirmedHours(employee_id=employee_id, business_id=business_id, week_start_date=week_start,
                         status="draft", total_hours=_total(values.values()), notes=notes, **values)
    db.session.add(row)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Confirmed hours already exist for this week")
    return row


def update(record_id: int, employee_id: int, fields: dict) -> ConfirmedHours:
    values = clean_hours(fields or {}, partial=True)
    col = ConfirmedHours.__table__.c

    # unchanged days are read by the database inside the same statement
    total_expr = None
    for f in DAY_FIELDS:
        term = values[f] if f in values else col[f]
        total_expr = term if total_expr is None else total_expr + term
    if all(f in values for f in DAY_FIELDS):
        total_expr = _total(values[f] for f in DAY_FIELDS)
    else:
        total_expr = db.func.round(total_expr, 2)

    upd = dict(values)
    upd.update({
        "total_hours": total_expr,
        "status": "draft",
        "rejection_reason": None,
        "rejected_at": None,
        "rejected_by": None,
        "updated_at": datetime.utcnow(),
    })
    if "notes" in (fields or {}):
        upd["notes"] = fields["notes"]

    n = (ConfirmedHours.query
         .filter(ConfirmedHours.id == record_id,
                 ConfirmedHours.employee_id == employee_id,
                 ConfirmedHours.status.in_(("draft", "rejected")))
         .update(upd, synchronize_session=False))
    db.session.commit()
    if n == 0:
        raise NotFoundError(STATE_ERROR)
    return get(record_id)


def submit(record_id: int, employee_id: int, notes: str | None = None) -> ConfirmedHours:
    upd = {
        "status": "submitted",
        "submitted_at": datetime.utcnow(),
        "rejection_reason": None,
        "rejected_at": None,
        "rejected_by": None,
        "updated_at": datetime.utcnow(),
    }
    if notes is not None:
        upd["notes"] = notes
    n = (ConfirmedHours.query
         .filter(ConfirmedHours.id == record_id,
                 ConfirmedHours.employee_id == employee_id,
                 ConfirmedHours.status.in_(("draft", "rejected")))
         .update(upd, synchronize_session=False))
    db.session.commit()
    if n == 0:
        raise NotFoundError(STATE_ERROR)
    return get(record_id)


# ---------- employer decisions ----------

def _decide(record_id: int, business_ids, upd: dict) -> ConfirmedHours:
    q = ConfirmedHours.query.filter(ConfirmedHours.id == record_id,
                                    ConfirmedHours.status == "submitted")
    if business_ids is not None:
        q = q.filter(ConfirmedHours.business_id.in_(list(business_ids) or [-1]))
    n = q.update(upd, synchronize_session=False)
    db.session.commit()
    if n == 0:
        raise NotFoundError(STATE_ERROR)
    return get(record_id)


def approve(record_id: int, approver_id: int, business_ids=None, notes: str | None = None) -> ConfirmedHours:
    """business_ids limits which businesses the approver may act on; None means any."""
    upd = {"status": "approved", "approved_at": datetime.utcnow(), "approved_by": approver_id,
           "updated_at": datetime.utcnow()}
    if notes is not None:
        upd["notes"] = notes
    row = _decide(record_id, business_ids, upd)
    log.info("confirmed hours approved id=%s by=%s", record_id, approver_id)
    return row


def reject(record_id: int, rejecter_id: int, reason, business_ids=None, notes: str | None = None) -> ConfirmedHours:
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationError("Rejection reason is required")
    upd = {"status": "rejected", "rejected_at": datetime.utcnow(), "rejected_by": rejecter_id,
           "rejection_reason": reason, "updated_at": datetime.utcnow()}
    if notes is not None:
        upd["notes"] = notes
    return _decide(record_id, business_ids, upd)


# ---------- listings ----------

def list_for_employee(employee_id: int, business_id: int | None = None) -> list:
    q = ConfirmedHours.query.filter(ConfirmedHours.employee_id == employee_id)
    if business_id is not None:
        q = q.filter(ConfirmedHours.business_id == business_id)
    rows = q.order_by(ConfirmedHours.week_start_date.desc()).all()
    return [serialize(r) for r in rows]


def list_for_employer(business_id: int, status: str | None = None) -> list:
    if status is not None and status not in CH_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(CH_STATUSES)}")
    statuses = (status,) if status else EMPLOYER_DEFAULT_STATUSES
    rows = (ConfirmedHours.query
            .filter(ConfirmedHours.business_id == business_id,
                    ConfirmedHours.status.in_(statuses))
            .order_by(ConfirmedHours.week_start_date.desc(), ConfirmedHours.employee_id.asc())
            .all())
    names = employee_names(r.employee_id for r in rows)
    return [serialize(r, names.get(r.employee_id, "")) for r in rows]
