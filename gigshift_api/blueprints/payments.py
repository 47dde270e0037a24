# gigshift_api/blueprints/payments.py
from __future__ import annotations

from datetime import date, timedelta

from flask import Blueprint, request, current_app

from gigshift_api.common.auth import (
    current_identity, require_business_owner, require_employee_profile, require_membership,
    requires_roles,
)
from gigshift_api.common.clock import business_today
from gigshift_api.common.errors import ValidationError
from gigshift_api.common.http import csv_download, ok
from gigshift_api.services import payroll_service as svc

bp = Blueprint("payments", __name__, url_prefix="/api/v1/payments")


# ---------- helpers ----------
def _d(s, field):
    if s in (None, ""):
        return None
    try:
        return date.fromisoformat(str(s))
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format") from None


def _period(src) -> tuple:
    start, end = _d(src.get("start_date"), "start_date"), _d(src.get("end_date"), "end_date")
    if not start or not end:
        raise ValidationError("start_date and end_date are required")
    return start, end


def _int(v, field):
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} is required") from None


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _ids(v):
    if not v:
        return None
    if not isinstance(v, list):
        raise ValidationError("employee_ids must be a list")
    return [_int(x, "employee_ids") for x in v]


# ---------- rates ----------
@bp.get("/rates/<int:business_id>")
@requires_roles("employer")
def current_rates(business_id: int):
    require_business_owner(business_id)
    on = _d(request.args.get("on"), "on")
    return ok(svc.current_rates(business_id, on))


@bp.post("/rates")
@requires_roles("employer")
def set_rate():
    d = _body()
    business_id = _int(d.get("business_id"), "business_id")
    require_business_owner(business_id)
    r = svc.set_rate(business_id, _int(d.get("employee_id"), "employee_id"), d.get("hourly_rate"),
                     effective_from=_d(d.get("effective_from"), "effective_from"),
                     created_by=current_identity().id)
    return ok(svc.serialize_rate(r), 201)


@bp.put("/rates/<int:rate_id>")
@requires_roles("employer")
def update_rate(rate_id: int):
    r = svc.get_rate(rate_id)
    require_business_owner(r.business_id)
    d = _body()
    fields = {}
    if "hourly_rate" in d:
        fields["hourly_rate"] = d["hourly_rate"]
    if d.get("effective_from"):
        fields["effective_from"] = _d(d["effective_from"], "effective_from")
    return ok(svc.serialize_rate(svc.update_rate(rate_id, fields)))


@bp.get("/rates/<int:business_id>/history/<int:employee_id>")
@requires_roles("employer")
def rate_history(business_id: int, employee_id: int):
    require_business_owner(business_id)
    return ok(svc.rate_history(business_id, employee_id))


# ---------- records ----------
@bp.get("/records/<int:business_id>")
@requires_roles("employer")
def list_records(business_id: int):
    require_business_owner(business_id)
    a = request.args
    return ok(svc.list_records(business_id, _d(a.get("start_date"), "start_date"),
                               _d(a.get("end_date"), "end_date"), a.get("employee_id", type=int)))


def _record_payload(d: dict) -> dict:
    out = {k: d[k] for k in ("total_hours", "hourly_rate", "advances", "bonuses", "deductions", "notes") if k in d}
    if "period_start" in d:
        out["period_start"] = _d(d["period_start"], "period_start")
    if "period_end" in d:
        out["period_end"] = _d(d["period_end"], "period_end")
    return out


@bp.post("/records")
@requires_roles("employer")
def create_record():
    d = _body()
    business_id = _int(d.get("business_id"), "business_id")
    require_business_owner(business_id)
    payload = _record_payload(d)
    payload.update({"business_id": business_id, "employee_id": _int(d.get("employee_id"), "employee_id")})
    r = svc.create_record(payload, created_by=current_identity().id)
    return ok(svc.serialize_record(r), 201)


@bp.put("/records/<int:record_id>")
@requires_roles("employer")
def update_record(record_id: int):
    r = svc.get_record(record_id)
    require_business_owner(r.business_id)
    return ok(svc.serialize_record(svc.update_record(record_id, _record_payload(_body()))))


@bp.patch("/records/<int:record_id>/mark-paid")
@requires_roles("employer")
def mark_paid(record_id: int):
    r = svc.get_record(record_id)
    require_business_owner(r.business_id)
    d = _body()
    r = svc.mark_paid(record_id, d.get("payment_method"), d.get("notes"))
    current_app.logger.info("payment record %s marked paid via %s", record_id, r.payment_method)
    return ok(svc.serialize_record(r))


@bp.delete("/records/<int:record_id>")
@requires_roles("employer")
def delete_record(record_id: int):
    r = svc.get_record(record_id)
    require_business_owner(r.business_id)
    svc.delete_record(record_id)
    return ok({"id": record_id, "deleted": True})


# ---------- hours & calculation ----------
@bp.get("/hours/<int:business_id>")
@requires_roles("employer")
def employee_hours(business_id: int):
    require_business_owner(business_id)
    start, end = _period(request.args)
    return ok({str(k): v for k, v in svc.employee_hours(business_id, start, end).items()})


@bp.get("/hours-detailed/<int:business_id>")
@requires_roles("employer")
def employee_hours_detailed(business_id: int):
    require_business_owner(business_id)
    start, end = _period(request.args)
    return ok({str(k): v for k, v in svc.detailed_employee_hours(business_id, start, end).items()})


@bp.post("/calculate")
@requires_roles("employer")
def calculate():
    d = _body()
    business_id = _int(d.get("business_id"), "business_id")
    require_business_owner(business_id)
    start, end = _period(d)
    return ok(svc.calculate_pay(business_id, _int(d.get("employee_id"), "employee_id"), start, end))


# ---------- reports ----------
@bp.get("/reports/<int:business_id>")
@requires_roles("employer")
def report(business_id: int):
    require_business_owner(business_id)
    start, end = _period(request.args)
    return ok(svc.payroll_report(business_id, start, end))


@bp.get("/summary/<int:business_id>")
@requires_roles("employer")
def summary(business_id: int):
    require_business_owner(business_id)
    end = _d(request.args.get("end_date"), "end_date") or business_today()
    start = _d(request.args.get("start_date"), "start_date") or end - timedelta(days=30)
    return ok(svc.payroll_report(business_id, start, end))


@bp.get("/employee-breakdown/<int:business_id>")
@requires_roles("employer", "employee")
def employee_breakdown(business_id: int):
    start, end = _period(request.args)
    ident = current_identity()
    if ident.role == "employee":
        emp = require_employee_profile()
        require_membership(business_id, emp.id)
        return ok(svc.monthly_breakdown(business_id, start, end, employee_id=emp.id))
    require_business_owner(business_id)
    return ok(svc.monthly_breakdown(business_id, start, end))


@bp.post("/export")
@requires_roles("employer")
def export():
    d = _body()
    business_id = _int(d.get("business_id"), "business_id")
    require_business_owner(business_id)
    if (d.get("format") or "csv") != "csv":
        raise ValidationError("Only csv export is supported")
    start, end = _period(d)
    employee_id = d.get("employee_id")
    body = svc.export_csv(business_id, start, end, _int(employee_id, "employee_id") if employee_id else None)
    filename = f"payroll_{business_id}_{start.isoformat()}_{end.isoformat()}.csv"
    return csv_download(body, filename)


# ---------- bulk ----------
@bp.post("/bulk/calculate/<int:business_id>")
@requires_roles("employer")
def bulk_calculate(business_id: int):
    require_business_owner(business_id)
    d = _body()
    start, end = _period(d)
    return ok(svc.bulk_calculate(business_id, start, end, _ids(d.get("employee_ids"))))


@bp.post("/bulk/create-records/<int:business_id>")
@requires_roles("employer")
def bulk_create_records(business_id: int):
    require_business_owner(business_id)
    d = _body()
    start, end = _period(d)
    res = svc.bulk_create_records(business_id, start, end, _ids(d.get("employee_ids")),
                                  default_adjustments=d.get("default_adjustments"),
                                  created_by=current_identity().id)
    return ok(res, 201 if res["created_records"] else 200)
