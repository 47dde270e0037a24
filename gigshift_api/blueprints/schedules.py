# gigshift_api/blueprints/schedules.py
from __future__ import annotations

from datetime import date

from flask import Blueprint, request, current_app

from gigshift_api.common.auth import current_identity, require_business_owner, requires_roles
from gigshift_api.common.errors import NotFoundError, ValidationError
from gigshift_api.common.http import ok
from gigshift_api.extensions import db
from gigshift_api.models.schedule import Shift
from gigshift_api.services import schedule_service as svc
from gigshift_api.services import shift_templates as tpl_svc

bp = Blueprint("schedules", __name__, url_prefix="/api/v1")


# ---------- helpers ----------
def _d(s, field="week_start") -> date:
    try:
        return date.fromisoformat(str(s))
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format") from None


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _owned_schedule(schedule_id: int):
    sch = svc.get_schedule_by_id(schedule_id)
    require_business_owner(sch.business_id)
    return sch


def _owned_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if not shift:
        raise NotFoundError("Shift not found")
    require_business_owner(shift.schedule.business_id)
    return shift


# ---------- shift templates ----------
@bp.get("/businesses/<int:business_id>/shift-templates")
@requires_roles("employer")
def list_templates(business_id: int):
    require_business_owner(business_id)
    return ok([tpl_svc.serialize_template(t) for t in tpl_svc.list_templates(business_id)])


@bp.post("/businesses/<int:business_id>/shift-templates")
@requires_roles("employer")
def create_template(business_id: int):
    require_business_owner(business_id)
    t = tpl_svc.create_template(business_id, _body())
    return ok(tpl_svc.serialize_template(t), 201)


@bp.post("/businesses/<int:business_id>/shift-templates/default")
@requires_roles("employer")
def create_default_templates(business_id: int):
    require_business_owner(business_id)
    created = tpl_svc.create_default_templates(business_id)
    return ok([tpl_svc.serialize_template(t) for t in created], 201)


@bp.put("/shift-templates/<int:template_id>")
@requires_roles("employer")
def update_template(template_id: int):
    t = tpl_svc.get_template(template_id)
    require_business_owner(t.business_id)
    return ok(tpl_svc.serialize_template(tpl_svc.update_template(template_id, _body())))


@bp.delete("/shift-templates/<int:template_id>")
@requires_roles("employer")
def delete_template(template_id: int):
    t = tpl_svc.get_template(template_id)
    require_business_owner(t.business_id)
    tpl_svc.deactivate_template(template_id)
    return ok({"id": template_id, "is_active": False})


# ---------- weeks ----------
@bp.get("/businesses/<int:business_id>/weeks/<week_start>")
@requires_roles("employer")
def get_or_create_week(business_id: int, week_start: str):
    require_business_owner(business_id)
    sch = svc.get_or_create(business_id, _d(week_start), current_identity().id)
    return ok(svc.serialize_schedule(sch))


@bp.get("/businesses/<int:business_id>/weeks/<week_start>/<status>")
@requires_roles("employer")
def get_week_by_status(business_id: int, week_start: str, status: str):
    require_business_owner(business_id)
    sch = svc.get_schedule(business_id, _d(week_start), status=status)
    return ok(svc.serialize_schedule(sch) if sch else None)


@bp.post("/businesses/<int:business_id>/weeks/<week_start>")
@requires_roles("employer")
def create_week(business_id: int, week_start: str):
    require_business_owner(business_id)
    sch = svc.create_schedule(business_id, _d(week_start), current_identity().id)
    current_app.logger.info("schedule created id=%s business=%s week=%s", sch.id, business_id, week_start)
    return ok(svc.serialize_schedule(sch), 201)


@bp.post("/businesses/<int:business_id>/weeks/<week_start>/copy-previous")
@requires_roles("employer")
def copy_previous(business_id: int, week_start: str):
    require_business_owner(business_id)
    data = svc.copy_previous_week(business_id, _d(week_start), current_identity().id)
    return ok(data, 201)


# ---------- schedules ----------
@bp.put("/schedules/<int:schedule_id>/post")
@requires_roles("employer")
def post_schedule(schedule_id: int):
    _owned_schedule(schedule_id)
    return ok(svc.serialize_schedule(svc.post_schedule(schedule_id)))


@bp.put("/schedules/<int:schedule_id>/unpost")
@requires_roles("employer")
def unpost_schedule(schedule_id: int):
    _owned_schedule(schedule_id)
    return ok(svc.serialize_schedule(svc.unpost_schedule(schedule_id)))


@bp.get("/schedules/<int:schedule_id>/hours")
@requires_roles("employer")
def schedule_hours(schedule_id: int):
    _owned_schedule(schedule_id)
    hours = svc.employee_hours(schedule_id)
    return ok({str(k): v for k, v in hours.items()})


# ---------- shifts ----------
@bp.post("/schedules/<int:schedule_id>/shifts")
@requires_roles("employer")
def create_shift(schedule_id: int):
    _owned_schedule(schedule_id)
    shift = svc.create_shift(schedule_id, _body())
    return ok(svc.serialize_shift(shift), 201)


@bp.post("/schedules/<int:schedule_id>/shifts/bulk")
@requires_roles("employer")
def bulk_create_shifts(schedule_id: int):
    _owned_schedule(schedule_id)
    items = _body().get("shifts")
    if not isinstance(items, list) or not items:
        raise ValidationError("shifts must be a non-empty list")
    res = svc.bulk_create_shifts(schedule_id, items)
    return ok(res, 201 if res["created"] else 200)


@bp.put("/shifts/<int:shift_id>")
@requires_roles("employer")
def update_shift(shift_id: int):
    _owned_shift(shift_id)
    return ok(svc.serialize_shift(svc.update_shift(shift_id, _body())))


@bp.delete("/shifts/<int:shift_id>")
@requires_roles("employer")
def delete_shift(shift_id: int):
    _owned_shift(shift_id)
    svc.delete_shift(shift_id)
    return ok({"id": shift_id, "deleted": True})


# ---------- employee ----------
@bp.get("/employee/schedules/<week_start>")
@requires_roles("employee")
def my_week(week_start: str):
    return ok(svc.employee_week_view(current_identity().id, _d(week_start)))
