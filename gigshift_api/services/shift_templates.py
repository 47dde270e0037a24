# gigshift_api/services/shift_templates.py
import logging
import re

from sqlalchemy.exc import IntegrityError

from gigshift_api.common.errors import ConflictError, NotFoundError, ValidationError
from gigshift_api.extensions import db
from gigshift_api.models.schedule import ShiftTemplate
from gigshift_api.services.time_codec import format_minute, parse_time, to_legacy

log = logging.getLogger(__name__)

DEFAULT_TEMPLATES = (
    ("Morning", "6:00 AM", "2:00 PM", "#10B981"),
    ("Afternoon", "2:00 PM", "10:00 PM", "#F59E0B"),
    ("Night", "10:00 PM", "6:00 AM", "#6366F1"),
)

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def serialize_template(t: ShiftTemplate) -> dict:
    return {
        "id": t.id,
        "business_id": t.business_id,
        "name": t.name,
        "start_label": t.start_label,
        "end_label": t.end_label,
        "start_time": t.start_time,
        "end_time": t.end_time,
        "color": t.color,
        "is_active": t.is_active,
    }


def _apply_times(t: ShiftTemplate, start_min: int, end_min: int):
    t.start_min, t.end_min = start_min, end_min
    t.start_label, t.end_label = format_minute(start_min), format_minute(end_min)
    t.start_time, t.end_time = to_legacy(start_min), to_legacy(end_min)


def _clean_name(name) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > 60:
        raise ValidationError("name must be at most 60 characters")
    return name


def _clean_color(color):
    if color is None:
        return None
    if not _COLOR_RE.match(str(color)):
        raise ValidationError("color must look like #RRGGBB")
    return str(color)


def list_templates(business_id: int) -> list:
    rows = (ShiftTemplate.query
            .filter_by(business_id=business_id, is_active=True)
            .order_by(ShiftTemplate.start_min.asc(), ShiftTemplate.name.asc())
            .all())
    return rows


def get_template(template_id: int) -> ShiftTemplate:
    t = db.session.get(ShiftTemplate, template_id)
    if not t:
        raise NotFoundError("Shift template not found")
    return t


def create_template(business_id: int, data: dict) -> ShiftTemplate:
    name = _clean_name(data.get("name"))
    if "start_time" not in data or "end_time" not in data:
        raise ValidationError("start_time and end_time are required")
    start_min, end_min = parse_time(data["start_time"]), parse_time(data["end_time"])

    if ShiftTemplate.query.filter_by(business_id=business_id, name=name).first():
        raise ConflictError(f"A shift template named '{name}' already exists")

    t = ShiftTemplate(business_id=business_id, name=name,
                      color=_clean_color(data.get("color")) or "#3B82F6", is_active=True)
    _apply_times(t, start_min, end_min)
    db.session.add(t)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        log.info("template name race lost business=%s name=%s", business_id, name)
        raise ConflictError(f"A shift template named '{name}' already exists")
    return t


def update_template(template_id: int, data: dict) -> ShiftTemplate:
    t = get_template(template_id)
    if "name" in data:
        name = _clean_name(data["name"])
        clash = (ShiftTemplate.query
                 .filter(ShiftTemplate.business_id == t.business_id,
                         ShiftTemplate.name == name,
                         ShiftTemplate.id != t.id)
                 .first())
        if clash:
            raise ConflictError(f"A shift template named '{name}' already exists")
        t.name = name
    if "start_time" in data or "end_time" in data:
        start_min = parse_time(data["start_time"]) if "start_time" in data else t.start_min
        end_min = parse_time(data["end_time"]) if "end_time" in data else t.end_min
        _apply_times(t, start_min, end_min)
    if "color" in data:
        t.color = _clean_color(data["color"]) or t.color
    if "is_active" in data:
        t.is_active = bool(data["is_active"])
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A shift template with that name already exists")
    return t


def deactivate_template(template_id: int) -> ShiftTemplate:
    # shifts keep their template reference, so templates are never hard-deleted
    t = get_template(template_id)
    t.is_active = False
    db.session.commit()
    return t


def create_default_templates(business_id: int) -> list:
    existing = {name for (name,) in db.session.query(ShiftTemplate.name)
                .filter(ShiftTemplate.business_id == business_id).all()}
    created = []
    for name, start, end, color in DEFAULT_TEMPLATES:
        if name in existing:
            continue
        t = ShiftTemplate(business_id=business_id, name=name, color=color, is_active=True)
        _apply_times(t, parse_time(start), parse_time(end))
        db.session.add(t)
        created.append(t)
    db.session.commit()
    if created:
        log.info("default templates created business=%s count=%s", business_id, len(created))
    return created
