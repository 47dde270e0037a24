from datetime import datetime
from gigshift_api.extensions import db

PAYMENT_METHODS = ("cash", "check", "bank_transfer", "other")


class EmployeeRate(db.Model):
    __tablename__ = "employee_rates"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    hourly_rate = db.Column(db.Numeric(8, 2), nullable=False)
    effective_from = db.Column(db.Date, nullable=False)

    created_by = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("business_id", "employee_id", "effective_from", name="uq_employee_rate_effective"),
        db.CheckConstraint("hourly_rate >= 0", name="ck_employee_rate_non_negative"),
        db.Index("ix_employee_rate_lookup", "business_id", "employee_id", "effective_from"),
    )


class PaymentRecord(db.Model):
    __tablename__ = "payment_records"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)

    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)

    total_hours = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    hourly_rate = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    gross_pay = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    advances = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    bonuses = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    deductions = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    net_pay = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    status = db.Column(db.String(12), nullable=False, default="calculated")  # calculated|paid
    payment_method = db.Column(db.String(20))
    paid_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)

    created_by = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("period_end >= period_start", name="ck_payment_period_valid"),
        db.CheckConstraint("status IN ('calculated', 'paid')", name="ck_payment_status"),
        db.CheckConstraint("total_hours >= 0 AND hourly_rate >= 0 AND gross_pay >= 0", name="ck_payment_non_negative"),
        db.Index("ix_payment_business_period", "business_id", "period_start", "period_end"),
        # one paid record per employee and exact period
        db.Index(
            "uq_payment_paid_period",
            "business_id", "employee_id", "period_start", "period_end",
            unique=True,
            postgresql_where=db.text("status = 'paid'"),
            sqlite_where=db.text("status = 'paid'"),
        ),
    )

    employee = db.relationship("Employee", lazy="joined")
