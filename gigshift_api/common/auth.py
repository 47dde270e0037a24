# gigshift_api/common/auth.py
"""
Identity seam.

Tokens are issued by the identity provider; we only read `sub` (user id) and
the `role` claim ("employer" | "employee" | "admin"). Ownership checks below
translate the directory tables into AuthorizationError / NotFoundError.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import g
from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from gigshift_api.common.errors import AuthorizationError, BusinessRuleError, NotFoundError
from gigshift_api.common.http import fail
from gigshift_api.extensions import db
from gigshift_api.models.directory import Business, BusinessEmployee, Employee

ROLES = ("employer", "employee", "admin")


@dataclass(frozen=True)
class Identity:
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _identity_from_jwt() -> Identity | None:
    uid = get_jwt_identity()
    if uid in (None, ""):
        return None
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        return None
    claims = get_jwt() or {}
    role = claims.get("role")
    if not role:
        roles = claims.get("roles") or []
        role = roles[0] if roles else None
    if role not in ROLES:
        return None
    return Identity(id=uid, role=role)


def current_identity() -> Identity:
    ident = getattr(g, "identity", None)
    if ident is None:
        ident = _identity_from_jwt()
        if ident is None:
            raise AuthorizationError("Unauthorized", status_code=401, code="UNAUTHORIZED")
        g.identity = ident
    return ident


def requires_roles(*codes: str):
    """
    Require that the caller has one of the given roles. 'admin' always passes.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            ident = _identity_from_jwt()
            if ident is None:
                return fail("Unauthorized", status=401)
            g.identity = ident
            if ident.is_admin or not codes or ident.role in codes:
                return fn(*args, **kwargs)
            return fail("Forbidden", status=403)
        return inner
    return outer


# ---------- ownership ----------

def require_business_owner(business_id: int) -> Business:
    biz = db.session.get(Business, business_id)
    if not biz:
        raise NotFoundError("Business not found")
    ident = current_identity()
    if not ident.is_admin and biz.employer_user_id != ident.id:
        raise AuthorizationError("You do not own this business")
    return biz


def owned_business_ids() -> list[int] | None:
    """Businesses the caller may act on as employer; None means unrestricted (admin)."""
    ident = current_identity()
    if ident.is_admin:
        return None
    rows = db.session.query(Business.id).filter(Business.employer_user_id == ident.id).all()
    return [r[0] for r in rows]


def require_employee_profile() -> Employee:
    ident = current_identity()
    emp = Employee.query.filter_by(user_id=ident.id).first()
    if not emp:
        raise NotFoundError("Employee profile not found")
    return emp


def require_membership(business_id: int, employee_id: int) -> None:
    if not db.session.get(Business, business_id):
        raise NotFoundError("Business not found")
    link = BusinessEmployee.query.filter_by(business_id=business_id, employee_id=employee_id).first()
    if not link:
        raise BusinessRuleError("Employee is not associated with this business")
