from datetime import datetime
from gigshift_api.extensions import db


class Business(db.Model):
    __tablename__ = "businesses"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    employer_user_id = db.Column(db.Integer, nullable=False, index=True)  # owner, from the identity provider
    timezone = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    members = db.relationship("BusinessEmployee", back_populates="business", lazy="selectin",
                              cascade="all, delete-orphan")


class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, unique=True)
    full_name = db.Column(db.String(255), nullable=False)
    employee_gid = db.Column(db.String(32), nullable=True, unique=True)  # public id shown to employers
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class BusinessEmployee(db.Model):
    __tablename__ = "business_employees"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("business_id", "employee_id", name="uq_business_employee"),
    )

    business = db.relationship("Business", back_populates="members")
    employee = db.relationship("Employee", lazy="joined")


def employee_names(ids) -> dict:
    """{employee_id: full_name} for display enrichment; unknown ids are simply absent."""
    ids = [i for i in set(ids or []) if i is not None]
    if not ids:
        return {}
    rows = db.session.query(Employee.id, Employee.full_name).filter(Employee.id.in_(ids)).all()
    return {r[0]: r[1] for r in rows}


def business_employees(business_id: int) -> list:
    rows = (
        db.session.query(Employee)
        .join(BusinessEmployee, BusinessEmployee.employee_id == Employee.id)
        .filter(BusinessEmployee.business_id == business_id)
        .order_by(Employee.full_name.asc())
        .all()
    )
    return [{"id": e.id, "full_name": e.full_name, "employee_gid": e.employee_gid} for e in rows]
