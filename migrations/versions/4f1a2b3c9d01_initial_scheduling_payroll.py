"""initial scheduling, confirmed hours and payroll tables

Revision ID: 4f1a2b3c9d01
Revises:
Create Date: 2025-09-15 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1a2b3c9d01'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DAY_FIELDS = (
    'sunday_hours', 'monday_hours', 'tuesday_hours', 'wednesday_hours',
    'thursday_hours', 'friday_hours', 'saturday_hours',
)


def upgrade() -> None:
    op.create_table(
        'businesses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('employer_user_id', sa.Integer(), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_businesses_employer_user_id', 'businesses', ['employer_user_id'])

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=True, unique=True),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('employee_gid', sa.String(length=32), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'business_employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('business_id', 'employee_id', name='uq_business_employee'),
    )
    op.create_index('ix_business_employees_business_id', 'business_employees', ['business_id'])
    op.create_index('ix_business_employees_employee_id', 'business_employees', ['employee_id'])

    op.create_table(
        'shift_templates',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=60), nullable=False),
        sa.Column('start_min', sa.Integer(), nullable=False),
        sa.Column('end_min', sa.Integer(), nullable=False),
        sa.Column('start_label', sa.String(length=8), nullable=False),
        sa.Column('end_label', sa.String(length=8), nullable=False),
        sa.Column('start_time', sa.String(length=8), nullable=False),
        sa.Column('end_time', sa.String(length=8), nullable=False),
        sa.Column('color', sa.String(length=7), nullable=False, server_default='#3B82F6'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('business_id', 'name', name='uq_shift_template_business_name'),
        sa.CheckConstraint('start_min >= 0 AND start_min <= 1439', name='ck_shift_template_start_min'),
        sa.CheckConstraint('end_min >= 0 AND end_min <= 1439', name='ck_shift_template_end_min'),
    )
    op.create_index('ix_shift_templates_business_id', 'shift_templates', ['business_id'])

    op.create_table(
        'weekly_schedules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('week_start_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False, server_default='draft'),
        sa.Column('posted_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('business_id', 'week_start_date', name='uq_weekly_schedule_business_week'),
        sa.CheckConstraint("status IN ('draft', 'posted')", name='ck_weekly_schedule_status'),
    )
    op.create_index('ix_weekly_schedules_business_id', 'weekly_schedules', ['business_id'])

    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('schedule_id', sa.Integer(), sa.ForeignKey('weekly_schedules.id', ondelete='CASCADE'), nullable=False),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.SmallInteger(), nullable=False),
        sa.Column('start_min', sa.Integer(), nullable=False),
        sa.Column('end_min', sa.Integer(), nullable=False),
        sa.Column('start_label', sa.String(length=8), nullable=False),
        sa.Column('end_label', sa.String(length=8), nullable=False),
        sa.Column('start_time', sa.String(length=8), nullable=False),
        sa.Column('end_time', sa.String(length=8), nullable=False),
        sa.Column('duration_hours', sa.Numeric(5, 2), nullable=False),
        sa.Column('shift_template_id', sa.Integer(), sa.ForeignKey('shift_templates.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('schedule_id', 'employee_id', 'day_of_week', 'start_min', 'end_min',
                            name='uq_shift_employee_day_times'),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_shift_day_of_week'),
        sa.CheckConstraint('start_min >= 0 AND start_min <= 1439', name='ck_shift_start_min'),
        sa.CheckConstraint('end_min >= 0 AND end_min <= 1439', name='ck_shift_end_min'),
    )
    op.create_index('ix_shifts_schedule_id', 'shifts', ['schedule_id'])
    op.create_index('ix_shifts_employee_id', 'shifts', ['employee_id'])
    op.create_index('ix_shift_schedule_employee_day', 'shifts', ['schedule_id', 'employee_id', 'day_of_week'])

    day_cols = [sa.Column(f, sa.Numeric(4, 2), nullable=False, server_default='0') for f in DAY_FIELDS]
    day_checks = [sa.CheckConstraint(f'{f} >= 0 AND {f} <= 24', name=f'ck_confirmed_hours_{f}') for f in DAY_FIELDS]
    op.create_table(
        'employee_confirmed_hours',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('week_start_date', sa.Date(), nullable=False),
        *day_cols,
        sa.Column('total_hours', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=12), nullable=False, server_default='draft'),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(), nullable=True),
        sa.Column('rejected_by', sa.Integer(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('employee_id', 'business_id', 'week_start_date', name='uq_confirmed_hours_emp_biz_week'),
        sa.CheckConstraint("status IN ('draft', 'submitted', 'approved', 'rejected')", name='ck_confirmed_hours_status'),
        sa.CheckConstraint(
            "(status = 'rejected' AND rejection_reason IS NOT NULL AND rejected_at IS NOT NULL AND rejected_by IS NOT NULL)"
            " OR "
            "(status <> 'rejected' AND rejection_reason IS NULL AND rejected_at IS NULL AND rejected_by IS NULL)",
            name='ck_confirmed_hours_rejected_fields',
        ),
        *day_checks,
    )
    op.create_index('ix_employee_confirmed_hours_employee_id', 'employee_confirmed_hours', ['employee_id'])
    op.create_index('ix_employee_confirmed_hours_business_id', 'employee_confirmed_hours', ['business_id'])
    op.create_index('ix_confirmed_hours_business_status', 'employee_confirmed_hours', ['business_id', 'status'])
    op.create_index('ix_confirmed_hours_week_status', 'employee_confirmed_hours', ['week_start_date', 'status'])

    op.create_table(
        'employee_rates',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('hourly_rate', sa.Numeric(8, 2), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('business_id', 'employee_id', 'effective_from', name='uq_employee_rate_effective'),
        sa.CheckConstraint('hourly_rate >= 0', name='ck_employee_rate_non_negative'),
    )
    op.create_index('ix_employee_rate_lookup', 'employee_rates', ['business_id', 'employee_id', 'effective_from'])

    op.create_table(
        'payment_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('total_hours', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('hourly_rate', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('gross_pay', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('advances', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('bonuses', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('deductions', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('net_pay', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=12), nullable=False, server_default='calculated'),
        sa.Column('payment_method', sa.String(length=20), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('period_end >= period_start', name='ck_payment_period_valid'),
        sa.CheckConstraint("status IN ('calculated', 'paid')", name='ck_payment_status'),
        sa.CheckConstraint('total_hours >= 0 AND hourly_rate >= 0 AND gross_pay >= 0', name='ck_payment_non_negative'),
    )
    op.create_index('ix_payment_records_employee_id', 'payment_records', ['employee_id'])
    op.create_index('ix_payment_business_period', 'payment_records', ['business_id', 'period_start', 'period_end'])
    op.create_index(
        'uq_payment_paid_period', 'payment_records',
        ['business_id', 'employee_id', 'period_start', 'period_end'],
        unique=True,
        postgresql_where=sa.text("status = 'paid'"),
        sqlite_where=sa.text("status = 'paid'"),
    )


def downgrade() -> None:
    op.drop_index('uq_payment_paid_period', table_name='payment_records')
    op.drop_table('payment_records')
    op.drop_table('employee_rates')
    op.drop_table('employee_confirmed_hours')
    op.drop_table('shifts')
    op.drop_table('weekly_schedules')
    op.drop_table('shift_templates')
    op.drop_table('business_employees')
    op.drop_table('employees')
    op.drop_index('ix_businesses_employer_user_id', table_name='businesses')
    op.drop_table('businesses')
