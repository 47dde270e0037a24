# gigshift_api/services/payroll_service.py
"""
Payroll reconciliation: rates, hours, pay calculation, payment records and reports.

Hours for a period come from approved confirmed-hours weeks. An employee with
no approved week in the period falls back to posted-schedule hours; the
fallback is decided per employee, never for the business as a whole.
Every accumulation step goes through round2.
"""
from __future__ import annotations

import calendar
import csv
import io
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from gigshift_api.common.clock import business_today
from gigshift_api.common.errors import (
    APIError, BusinessRuleError, ConflictError, NotFoundError, ValidationError,
)
from gigshift_api.extensions import db
from gigshift_api.models.confirmed_hours import ConfirmedHours
from gigshift_api.models.directory import Business, BusinessEmployee, employee_names
from gigshift_api.models.payroll import PAYMENT_METHODS, EmployeeRate, PaymentRecord
from gigshift_api.services.schedule_service import posted_hours_in_range
from gigshift_api.services.time_codec import round2

log = logging.getLogger(__name__)

CSV_FIELDS = (
    "employee_id", "employee_name", "period_start", "period_end", "total_hours", "hourly_rate",
    "gross_pay", "advances", "bonuses", "deductions", "net_pay", "status", "payment_method",
    "paid_at", "notes",
)
_MONEY_FIELDS = ("total_hours", "hourly_rate", "advances", "bonuses", "deductions")


def _iso(v):
    return v.isoformat() if v else None


def _amount(field: str, value, default=0.0) -> float:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a non-negative number")
    try:
        v = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a non-negative number") from None
    if not v.is_finite() or v < 0:
        raise ValidationError(f"{field} must be a non-negative number")
    return round2(v)


def _check_period(start: date, end: date):
    if start is None or end is None:
        raise ValidationError("start_date and end_date are required")
    if end < start:
        raise ValidationError("end_date must be on or after start_date")


def _require_business(business_id: int) -> Business:
    biz = db.session.get(Business, business_id)
    if not biz:
        raise NotFoundError("Business not found")
    return biz


def _require_member(business_id: int, employee_id: int):
    link = BusinessEmployee.query.filter_by(business_id=business_id, employee_id=employee_id).first()
    if not link:
        raise BusinessRuleError("Employee is not associated with this business")


# ---------- rate directory ----------

def serialize_rate(r: EmployeeRate, name: str | None = None) -> dict:
    d = {
        "id": r.id,
        "business_id": r.business_id,
        "employee_id": r.employee_id,
        "hourly_rate": round2(r.hourly_rate),
        "effective_from": _iso(r.effective_from),
        "created_by": r.created_by,
    }
    if name is not None:
        d["employee_name"] = name
    return d


def set_rate(business_id: int, employee_id: int, hourly_rate, effective_from: date | None = None,
             created_by: int | None = None) -> EmployeeRate:
    _require_business(business_id)
    _require_member(business_id, employee_id)
    if hourly_rate is None:
        raise ValidationError("hourly_rate is required")
    rate = _amount("hourly_rate", hourly_rate)
    effective_from = effective_from or business_today()

    row = EmployeeRate.query.filter_by(business_id=business_id, employee_id=employee_id,
                                       effective_from=effective_from).first()
    if row is not None:
        row.hourly_rate = rate
    else:
        row = EmployeeRate(business_id=business_id, employee_id=employee_id, hourly_rate=rate,
                           effective_from=effective_from, created_by=created_by)
        db.session.add(row)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A rate already exists for this employee and effective date")
    return row


def get_rate(rate_id: int) -> EmployeeRate:
    r = db.session.get(EmployeeRate, rate_id)
    if not r:
        raise NotFoundError("Employee rate not found")
    return r


def update_rate(rate_id: int, fields: dict) -> EmployeeRate:
    r = get_rate(rate_id)
    if "hourly_rate" in fields:
        if fields["hourly_rate"] is None:
            raise ValidationError("hourly_rate is required")
        r.hourly_rate = _amount("hourly_rate", fields["hourly_rate"])
    if fields.get("effective_from"):
        r.effective_from = fields["effective_from"]
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A rate already exists for this employee and effective date")
    return r


def effective_rate(business_id: int, employee_id: int, on: date):
    """Hourly rate in force on a date (latest effective_from <= on), or None."""
    r = (EmployeeRate.query
         .filter(EmployeeRate.business_id == business_id,
                 EmployeeRate.employee_id == employee_id,
                 EmployeeRate.effective_from <= on)
         .order_by(EmployeeRate.effective_from.desc(), EmployeeRate.id.desc())
         .first())
    return round2(r.hourly_rate) if r is not None else None


def current_rates(business_id: int, on: date | None = None) -> list:
    on = on or business_today()
    latest = (db.session.query(EmployeeRate.employee_id,
                               func.max(EmployeeRate.effective_from).label("eff"))
              .filter(EmployeeRate.business_id == business_id,
                      EmployeeRate.effective_from <= on)
              .group_by(EmployeeRate.employee_id)
              .subquery())
    rows = (EmployeeRate.query
            .join(latest, (EmployeeRate.employee_id == latest.c.employee_id)
                  & (EmployeeRate.effective_from == latest.c.eff))
            .filter(EmployeeRate.business_id == business_id)
            .order_by(EmployeeRate.employee_id.asc())
            .all())
    names = employee_names(r.employee_id for r in rows)
    return [serialize_rate(r, names.get(r.employee_id, "")) for r in rows]


def rate_history(business_id: int, employee_id: int) -> list:
    rows = (EmployeeRate.query
            .filter_by(business_id=business_id, employee_id=employee_id)
            .order_by(EmployeeRate.effective_from.desc())
            .all())
    return [serialize_rate(r) for r in rows]


# ---------- hours ----------

def _week_rows(business_id: int, start: date, end: date, approved_only: bool = True):
    q = ConfirmedHours.query.filter(
        ConfirmedHours.business_id == business_id,
        ConfirmedHours.week_start_date <= end,
        ConfirmedHours.week_start_date >= start - timedelta(days=6),
    )
    if approved_only:
        q = q.filter(ConfirmedHours.status == "approved")
    return q.order_by(ConfirmedHours.week_start_date.asc()).all()


def _hours_in_window(row: ConfirmedHours, start: date, end: date) -> float:
    total = 0.0
    for i, hrs in enumerate(row.daily()):
        if start <= row.week_start_date + timedelta(days=i) <= end:
            total = round2(total + hrs)
    return total


def _sum_by_employee(rows, start: date, end: date) -> dict:
    """Only the daily buckets dated inside [start, end] count; boundary weeks are split."""
    out: dict = {}
    for r in rows:
        out[r.employee_id] = round2(out.get(r.employee_id, 0.0) + _hours_in_window(r, start, end))
    return out


def employee_hours(business_id: int, start: date, end: date) -> dict:
    _check_period(start, end)
    approved = _sum_by_employee(_week_rows(business_id, start, end), start, end)
    scheduled = posted_hours_in_range(business_id, start, end)

    out = dict(approved)
    for emp_id, hrs in scheduled.items():
        if emp_id not in approved:
            out[emp_id] = hrs
    return out


def detailed_employee_hours(business_id: int, start: date, end: date) -> dict:
    _check_period(start, end)
    rows = _week_rows(business_id, start, end, approved_only=False)
    confirmed = _sum_by_employee(rows, start, end)
    approved = _sum_by_employee((r for r in rows if r.status == "approved"), start, end)
    scheduled = posted_hours_in_range(business_id, start, end)

    out = {}
    for emp_id in sorted(set(confirmed) | set(scheduled)):
        sched = scheduled.get(emp_id, 0.0)
        has_approved = emp_id in approved
        out[emp_id] = {
            "confirmed": confirmed.get(emp_id),
            "approved": approved.get(emp_id),
            "scheduled": sched,
            "source": "confirmed" if has_approved else "scheduled",
            "hours": approved[emp_id] if has_approved else sched,
        }
    return out


def month_bounds(year: int, month: int):
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def monthly_employee_hours(business_id: int, year: int, month: int) -> dict:
    """Approved hours that fall inside the calendar month, split day by day across boundary weeks."""
    month_start, month_end = month_bounds(year, month)
    rows = (ConfirmedHours.query
            .filter(ConfirmedHours.business_id == business_id,
                    ConfirmedHours.status == "approved",
                    ConfirmedHours.week_start_date <= month_end,
                    ConfirmedHours.week_start_date >= month_start - timedelta(days=6))
            .all())
    out: dict = {}
    for r in rows:
        week_total = _hours_in_window(r, month_start, month_end)
        if week_total > 0:
            out[r.employee_id] = round2(out.get(r.employee_id, 0.0) + week_total)
    return out


def calculate_pay(business_id: int, employee_id: int, start: date, end: date) -> dict:
    _check_period(start, end)
    hours = employee_hours(business_id, start, end).get(employee_id, 0.0)
    rate = effective_rate(business_id, employee_id, end)
    if rate is None:
        raise BusinessRuleError(f"No hourly rate found for employee {employee_id}")
    gross = round2(Decimal(str(hours)) * Decimal(str(rate)))
    return {
        "employee_id": employee_id,
        "total_hours": hours,
        "hourly_rate": rate,
        "gross_pay": gross,
        "net_pay": gross,
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
    }


# ---------- payment records ----------

def serialize_record(r: PaymentRecord, name: str | None = None) -> dict:
    d = {
        "id": r.id,
        "business_id": r.business_id,
        "employee_id": r.employee_id,
        "period_start": _iso(r.period_start),
        "period_end": _iso(r.period_end),
        "total_hours": round2(r.total_hours),
        "hourly_rate": round2(r.hourly_rate),
        "gross_pay": round2(r.gross_pay),
        "advances": round2(r.advances),
        "bonuses": round2(r.bonuses),
        "deductions": round2(r.deductions),
        "net_pay": round2(r.net_pay),
        "status": r.status,
        "payment_method": r.payment_method,
        "paid_at": _iso(r.paid_at),
        "notes": r.notes,
    }
    if name is not None:
        d["employee_name"] = name
    return d


def _recompute(r: PaymentRecord):
    hours, rate = Decimal(str(r.total_hours or 0)), Decimal(str(r.hourly_rate or 0))
    gross = round2(hours * rate)
    r.gross_pay = gross
    r.net_pay = round2(Decimal(str(gross)) + Decimal(str(r.bonuses or 0))
                       - Decimal(str(r.advances or 0)) - Decimal(str(r.deductions or 0)))


def get_record(record_id: int) -> PaymentRecord:
    r = db.session.get(PaymentRecord, record_id)
    if not r:
        raise NotFoundError("Payment record not found")
    return r


def create_record(data: dict, created_by: int | None = None) -> PaymentRecord:
    business_id, employee_id = data.get("business_id"), data.get("employee_id")
    if business_id is None or employee_id is None:
        raise ValidationError("business_id and employee_id are required")
    _require_business(business_id)
    _require_member(business_id, employee_id)
    start, end = data.get("period_start"), data.get("period_end")
    _check_period(start, end)

    r = PaymentRecord(business_id=business_id, employee_id=employee_id,
                      period_start=start, period_end=end,
                      status="calculated", notes=data.get("notes"), created_by=created_by)
    for f in _MONEY_FIELDS:
        setattr(r, f, _amount(f, data.get(f)))
    _recompute(r)
    db.session.add(r)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Payment record already exists for this period")
    return r


def update_record(record_id: int, data: dict) -> PaymentRecord:
    r = get_record(record_id)
    if r.status == "paid":
        raise BusinessRuleError("Paid payment records cannot be modified")
    for f in _MONEY_FIELDS:
        if f in data:
            setattr(r, f, _amount(f, data[f]))
    if "period_start" in data or "period_end" in data:
        start = data.get("period_start") or r.period_start
        end = data.get("period_end") or r.period_end
        _check_period(start, end)
        r.period_start, r.period_end = start, end
    if "notes" in data:
        r.notes = data["notes"]
    _recompute(r)
    db.session.commit()
    return r


def mark_paid(record_id: int, method: str, notes: str | None = None) -> PaymentRecord:
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
    upd = {"status": "paid", "payment_method": method, "paid_at": datetime.utcnow(),
           "updated_at": datetime.utcnow()}
    if notes is not None:
        upd["notes"] = notes
    try:
        n = (PaymentRecord.query
             .filter(PaymentRecord.id == record_id, PaymentRecord.status == "calculated")
             .update(upd, synchronize_session=False))
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        log.info("paid-period conflict record=%s", record_id)
        raise ConflictError("Payment already marked as paid for this period")
    if n == 0:
        r = get_record(record_id)
        raise BusinessRuleError(f"Payment record is already {r.status}")
    return get_record(record_id)


def delete_record(record_id: int) -> None:
    r = get_record(record_id)
    db.session.delete(r)
    db.session.commit()


def _records_query(business_id: int, start: date | None = None, end: date | None = None,
                   employee_id: int | None = None):
    q = PaymentRecord.query.filter(PaymentRecord.business_id == business_id)
    if start:
        q = q.filter(PaymentRecord.period_start >= start)
    if end:
        q = q.filter(PaymentRecord.period_end <= end)
    if employee_id is not None:
        q = q.filter(PaymentRecord.employee_id == employee_id)
    return q


def list_records(business_id: int, start: date | None = None, end: date | None = None,
                 employee_id: int | None = None) -> list:
    rows = (_records_query(business_id, start, end, employee_id)
            .order_by(PaymentRecord.created_at.desc(), PaymentRecord.id.desc())
            .all())
    names = employee_names(r.employee_id for r in rows)
    return [serialize_record(r, names.get(r.employee_id, "")) for r in rows]


# ---------- reports ----------

def is_full_month(start: date, end: date) -> bool:
    return (start.day == 1 and start.year == end.year and start.month == end.month
            and end.day == calendar.monthrange(start.year, start.month)[1])


def payroll_report(business_id: int, start: date, end: date) -> dict:
    _check_period(start, end)
    _require_business(business_id)
    stats: dict = {}
    timeline: dict = {}

    if is_full_month(start, end):
        hours_by_emp = monthly_employee_hours(business_id, start.year, start.month)
        paid_counts = dict(
            db.session.query(PaymentRecord.employee_id, func.count(PaymentRecord.id))
            .filter(PaymentRecord.business_id == business_id,
                    PaymentRecord.status == "paid",
                    PaymentRecord.period_start >= start,
                    PaymentRecord.period_end <= end)
            .group_by(PaymentRecord.employee_id)
            .all()
        )
        for emp_id, hrs in hours_by_emp.items():
            rate = effective_rate(business_id, emp_id, end) or 0.0
            gross = round2(Decimal(str(hrs)) * Decimal(str(rate)))
            stats[emp_id] = {"employee_id": emp_id, "total_hours": hrs, "gross_pay": gross,
                             "net_pay": gross, "payment_count": paid_counts.get(emp_id, 0)}
    else:
        rows = (_records_query(business_id, start, end)
                .filter(PaymentRecord.status == "paid")
                .order_by(PaymentRecord.paid_at.asc())
                .all())
        for r in rows:
            s = stats.setdefault(r.employee_id, {"employee_id": r.employee_id, "total_hours": 0.0,
                                                 "gross_pay": 0.0, "net_pay": 0.0, "payment_count": 0})
            s["total_hours"] = round2(s["total_hours"] + round2(r.total_hours))
            s["gross_pay"] = round2(s["gross_pay"] + round2(r.gross_pay))
            s["net_pay"] = round2(s["net_pay"] + round2(r.net_pay))
            s["payment_count"] += 1
            if r.paid_at:
                key = r.paid_at.date().isoformat()
                timeline[key] = round2(timeline.get(key, 0.0) + round2(r.net_pay))

    names = employee_names(stats.keys())
    total_paid = total_hours = 0.0
    employees = []
    for emp_id in sorted(stats):
        s = stats[emp_id]
        s["employee_name"] = names.get(emp_id, "Unknown")
        total_paid = round2(total_paid + s["net_pay"])
        total_hours = round2(total_hours + s["total_hours"])
        employees.append(s)

    return {
        "business_id": business_id,
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
        "total_paid": total_paid,
        "total_hours": total_hours,
        "employee_count": len(employees),
        "employees": employees,
        "timeline_data": [{"date": k, "amount": timeline[k]} for k in sorted(timeline)],
    }


def monthly_breakdown(business_id: int, start: date, end: date, employee_id: int | None = None) -> dict:
    _check_period(start, end)
    _require_business(business_id)
    rows = (_records_query(business_id, start, end, employee_id)
            .order_by(PaymentRecord.period_start.asc(), PaymentRecord.id.asc())
            .all())
    names = employee_names(r.employee_id for r in rows)

    per_emp: dict = {}
    for r in rows:
        e = per_emp.setdefault(r.employee_id, {
            "employee_id": r.employee_id,
            "employee_name": names.get(r.employee_id, "Unknown"),
            "total_hours": 0.0, "gross_pay": 0.0, "total_advances": 0.0, "total_bonuses": 0.0,
            "total_deductions": 0.0, "net_pay": 0.0, "final_amount_paid": 0.0,
            "payment_records": [],
        })
        e["total_hours"] = round2(e["total_hours"] + round2(r.total_hours))
        e["gross_pay"] = round2(e["gross_pay"] + round2(r.gross_pay))
        e["total_advances"] = round2(e["total_advances"] + round2(r.advances))
        e["total_bonuses"] = round2(e["total_bonuses"] + round2(r.bonuses))
        e["total_deductions"] = round2(e["total_deductions"] + round2(r.deductions))
        e["net_pay"] = round2(e["net_pay"] + round2(r.net_pay))
        if r.status == "paid":
            e["final_amount_paid"] = round2(e["final_amount_paid"] + round2(r.net_pay))
        e["payment_records"].append(serialize_record(r))

    employees = [per_emp[k] for k in sorted(per_emp)]
    total_paid = total_hours = 0.0
    for e in employees:
        total_paid = round2(total_paid + e["final_amount_paid"])
        total_hours = round2(total_hours + e["total_hours"])
    return {
        "business_id": business_id,
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
        "total_paid": total_paid,
        "total_hours": total_hours,
        "employee_count": len(employees),
        "employees": employees,
    }


def _csv_money(v) -> str:
    return f"{round2(v):.2f}"


def export_csv(business_id: int, start: date, end: date, employee_id: int | None = None) -> str:
    _check_period(start, end)
    rows = (_records_query(business_id, start, end, employee_id)
            .order_by(PaymentRecord.period_start.asc(), PaymentRecord.employee_id.asc(), PaymentRecord.id.asc())
            .all())
    names = employee_names(r.employee_id for r in rows)

    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(CSV_FIELDS)
    for r in rows:
        w.writerow([
            r.employee_id,
            names.get(r.employee_id, ""),
            r.period_start.isoformat(),
            r.period_end.isoformat(),
            _csv_money(r.total_hours),
            _csv_money(r.hourly_rate),
            _csv_money(r.gross_pay),
            _csv_money(r.advances),
            _csv_money(r.bonuses),
            _csv_money(r.deductions),
            _csv_money(r.net_pay),
            r.status,
            r.payment_method or "",
            r.paid_at.isoformat() if r.paid_at else "",
            r.notes or "",
        ])
    return buf.getvalue()


# ---------- bulk ----------

def bulk_calculate(business_id: int, start: date, end: date, employee_ids=None) -> dict:
    _check_period(start, end)
    _require_business(business_id)
    targets = list(employee_ids) if employee_ids else sorted(employee_hours(business_id, start, end))
    calculations = []
    for emp_id in targets:
        try:
            calculations.append(calculate_pay(business_id, emp_id, start, end))
        except APIError as e:
            log.warning("bulk calculate failed business=%s employee=%s: %s", business_id, emp_id, e.message)
            calculations.append({"employee_id": emp_id, "error": e.message})
    return {
        "business_id": business_id,
        "period": {"start_date": start.isoformat(), "end_date": end.isoformat()},
        "calculations": calculations,
    }


def bulk_create_records(business_id: int, start: date, end: date, employee_ids=None,
                        default_adjustments: dict | None = None, created_by: int | None = None) -> dict:
    adj = default_adjustments or {}
    result = bulk_calculate(business_id, start, end, employee_ids)
    created, errors = [], []
    for calc in result["calculations"]:
        if "error" in calc:
            errors.append(calc)
            continue
        payload = {
            "business_id": business_id,
            "employee_id": calc["employee_id"],
            "period_start": start,
            "period_end": end,
            "total_hours": calc["total_hours"],
            "hourly_rate": calc["hourly_rate"],
            "advances": adj.get("advances") or 0,
            "bonuses": adj.get("bonuses") or 0,
            "deductions": adj.get("deductions") or 0,
        }
        try:
            created.append(serialize_record(create_record(payload, created_by=created_by)))
        except APIError as e:
            log.warning("bulk record failed business=%s employee=%s: %s", business_id, calc["employee_id"], e.message)
            errors.append({"employee_id": calc["employee_id"], "error": e.message})
    return {
        "business_id": business_id,
        "period": result["period"],
        "created_records": created,
        "errors": errors,
    }
