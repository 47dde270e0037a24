# gigshift_api/blueprints/confirmed_hours.py
from __future__ import annotations

from datetime import date

from flask import Blueprint, request, current_app

from gigshift_api.common.auth import (
    current_identity, owned_business_ids, require_business_owner, require_employee_profile,
    require_membership, requires_roles,
)
from gigshift_api.common.errors import ValidationError
from gigshift_api.common.http import ok
from gigshift_api.services import confirmed_hours_service as svc

bp = Blueprint("confirmed_hours", __name__, url_prefix="/api/v1/confirmed-hours")


def _d(s, field="week_start_date") -> date:
    try:
        return date.fromisoformat(str(s))
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format") from None


def _int(v, field):
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} is required") from None


# ---------- employee ----------
@bp.get("/businesses/<int:business_id>/weeks/<week_start>")
@requires_roles("employee")
def weekly_with_schedule(business_id: int, week_start: str):
    emp = require_employee_profile()
    require_membership(business_id, emp.id)
    return ok(svc.weekly_with_schedule(business_id, _d(week_start), emp.id))


@bp.post("")
@requires_roles("employee")
def create_confirmed_hours():
    d = request.get_json(silent=True) or {}
    emp = require_employee_profile()
    business_id = _int(d.get("business_id"), "business_id")
    require_membership(business_id, emp.id)
    row = svc.create(emp.id, business_id, _d(d.get("week_start_date")), d, notes=d.get("notes"))
    return ok(svc.serialize(row), 201)


@bp.put("/<int:record_id>")
@requires_roles("employee")
def update_confirmed_hours(record_id: int):
    emp = require_employee_profile()
    row = svc.update(record_id, emp.id, request.get_json(silent=True) or {})
    return ok(svc.serialize(row))


@bp.post("/<int:record_id>/submit")
@requires_roles("employee")
def submit_confirmed_hours(record_id: int):
    d = request.get_json(silent=True) or {}
    emp = require_employee_profile()
    row = svc.submit(record_id, emp.id, notes=d.get("notes"))
    current_app.logger.info("confirmed hours submitted id=%s employee=%s", record_id, emp.id)
    return ok(svc.serialize(row))


@bp.get("/mine")
@requires_roles("employee")
def my_confirmed_hours():
    emp = require_employee_profile()
    business_id = request.args.get("business_id", type=int)
    return ok(svc.list_for_employee(emp.id, business_id))


# ---------- employer ----------
@bp.get("/businesses/<int:business_id>")
@requires_roles("employer")
def list_for_business(business_id: int):
    require_business_owner(business_id)
    status = request.args.get("status") or None
    return ok(svc.list_for_employer(business_id, status))


@bp.post("/<int:record_id>/approve")
@requires_roles("employer")
def approve_confirmed_hours(record_id: int):
    d = request.get_json(silent=True) or {}
    row = svc.approve(record_id, current_identity().id, owned_business_ids(), notes=d.get("notes"))
    return ok(svc.serialize(row))


@bp.post("/<int:record_id>/reject")
@requires_roles("employer")
def reject_confirmed_hours(record_id: int):
    d = request.get_json(silent=True) or {}
    row = svc.reject(record_id, current_identity().id, d.get("rejection_reason") or d.get("reason"),
                     owned_business_ids(), notes=d.get("notes"))
    current_app.logger.info("confirmed hours rejected id=%s", record_id)
    return ok(svc.serialize(row))
