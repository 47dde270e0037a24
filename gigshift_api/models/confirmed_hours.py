from datetime import datetime
from gigshift_api.extensions import db

DAY_FIELDS = (
    "sunday_hours",
    "monday_hours",
    "tuesday_hours",
    "wednesday_hours",
    "thursday_hours",
    "friday_hours",
    "saturday_hours",
)

CH_STATUSES = ("draft", "submitted", "approved", "rejected")


def _day_col(name):
    return db.Column(name, db.Numeric(4, 2), nullable=False, default=0)


class ConfirmedHours(db.Model):
    """
    Employee-confirmed hours for one (employee, business, Sunday-based week).

    Workflow: draft -> submitted -> approved | rejected; rejected -> draft on edit,
    rejected -> submitted on resubmit. Status changes go through conditional
    UPDATEs in services.confirmed_hours_service, never through attribute writes.
    """
    __tablename__ = "employee_confirmed_hours"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    week_start_date = db.Column(db.Date, nullable=False)

    sunday_hours = _day_col("sunday_hours")
    monday_hours = _day_col("monday_hours")
    tuesday_hours = _day_col("tuesday_hours")
    wednesday_hours = _day_col("wednesday_hours")
    thursday_hours = _day_col("thursday_hours")
    friday_hours = _day_col("friday_hours")
    saturday_hours = _day_col("saturday_hours")
    total_hours = db.Column(db.Numeric(5, 2), nullable=False, default=0)  # sum of the seven, kept in step on write

    status = db.Column(db.String(12), nullable=False, default="draft")
    submitted_at = db.Column(db.DateTime)
    approved_at = db.Column(db.DateTime)
    approved_by = db.Column(db.Integer)
    rejected_at = db.Column(db.DateTime)
    rejected_by = db.Column(db.Integer)
    rejection_reason = db.Column(db.Text)

    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "business_id", "week_start_date", name="uq_confirmed_hours_emp_biz_week"),
        db.CheckConstraint("status IN ('draft', 'submitted', 'approved', 'rejected')", name="ck_confirmed_hours_status"),
        db.CheckConstraint(
            "(status = 'rejected' AND rejection_reason IS NOT NULL AND rejected_at IS NOT NULL AND rejected_by IS NOT NULL)"
            " OR "
            "(status <> 'rejected' AND rejection_reason IS NULL AND rejected_at IS NULL AND rejected_by IS NULL)",
            name="ck_confirmed_hours_rejected_fields",
        ),
        *[
            db.CheckConstraint(f"{f} >= 0 AND {f} <= 24", name=f"ck_confirmed_hours_{f}")
            for f in DAY_FIELDS
        ],
        db.Index("ix_confirmed_hours_business_status", "business_id", "status"),
        db.Index("ix_confirmed_hours_week_status", "week_start_date", "status"),
    )

    employee = db.relationship("Employee", lazy="joined")
    business = db.relationship("Business", lazy="joined")

    def daily(self) -> list:
        return [float(getattr(self, f) or 0) for f in DAY_FIELDS]
