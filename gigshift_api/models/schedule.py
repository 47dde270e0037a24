from datetime import datetime
from gigshift_api.extensions import db


class ShiftTemplate(db.Model):
    __tablename__ = "shift_templates"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(60), nullable=False)
    start_min = db.Column(db.Integer, nullable=False)
    end_min = db.Column(db.Integer, nullable=False)
    # write-time projections of start_min/end_min
    start_label = db.Column(db.String(8), nullable=False)
    end_label = db.Column(db.String(8), nullable=False)
    start_time = db.Column(db.String(8), nullable=False)
    end_time = db.Column(db.String(8), nullable=False)
    color = db.Column(db.String(7), nullable=False, default="#3B82F6")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("business_id", "name", name="uq_shift_template_business_name"),
        db.CheckConstraint("start_min >= 0 AND start_min <= 1439", name="ck_shift_template_start_min"),
        db.CheckConstraint("end_min >= 0 AND end_min <= 1439", name="ck_shift_template_end_min"),
    )


class WeeklySchedule(db.Model):
    __tablename__ = "weekly_schedules"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    week_start_date = db.Column(db.Date, nullable=False)  # always a Sunday
    status = db.Column(db.String(10), nullable=False, default="draft")  # draft|posted
    posted_at = db.Column(db.DateTime, nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("business_id", "week_start_date", name="uq_weekly_schedule_business_week"),
        db.CheckConstraint("status IN ('draft', 'posted')", name="ck_weekly_schedule_status"),
    )

    shifts = db.relationship(
        "Shift",
        back_populates="schedule",
        cascade="all, delete-orphan",
    )


class Shift(db.Model):
    __tablename__ = "shifts"

    id = db.Column(db.Integer, primary_key=True)
    schedule_id = db.Column(db.Integer, db.ForeignKey("weekly_schedules.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = db.Column(db.SmallInteger, nullable=False)  # 0=Sun .. 6=Sat, offset from week_start_date

    # canonical minute-of-day, the only authoritative time fields
    start_min = db.Column(db.Integer, nullable=False)
    end_min = db.Column(db.Integer, nullable=False)

    # projections written alongside start_min/end_min, never read back for math
    start_label = db.Column(db.String(8), nullable=False)   # "9:00 AM"
    end_label = db.Column(db.String(8), nullable=False)
    start_time = db.Column(db.String(8), nullable=False)    # legacy "09:00:00"
    end_time = db.Column(db.String(8), nullable=False)

    duration_hours = db.Column(db.Numeric(5, 2), nullable=False)
    shift_template_id = db.Column(db.Integer, db.ForeignKey("shift_templates.id", ondelete="SET NULL"), nullable=True)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("schedule_id", "employee_id", "day_of_week", "start_min", "end_min",
                            name="uq_shift_employee_day_times"),
        db.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_shift_day_of_week"),
        db.CheckConstraint("start_min >= 0 AND start_min <= 1439", name="ck_shift_start_min"),
        db.CheckConstraint("end_min >= 0 AND end_min <= 1439", name="ck_shift_end_min"),
        db.Index("ix_shift_schedule_employee_day", "schedule_id", "employee_id", "day_of_week"),
    )

    schedule = db.relationship("WeeklySchedule", back_populates="shifts")
    template = db.relationship("ShiftTemplate", lazy="joined")
