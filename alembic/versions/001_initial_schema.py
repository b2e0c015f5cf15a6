"""payroll core tables

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("profile_id", sa.String(length=128), nullable=True),
        sa.Column("admin", sa.Boolean(), nullable=False),
        sa.Column("owner", sa.Boolean(), nullable=False),
        sa.Column("super_admin", sa.Boolean(), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=True),
        sa.Column("roles", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "employee_rates",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("employee_id", sa.String(length=128), nullable=False),
        sa.Column("effective_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rate_type", sa.String(length=20), nullable=True),
        sa.Column("hourly_rate", sa.Float(), nullable=True),
        sa.Column("per_visit_rate", sa.Float(), nullable=True),
        sa.Column("monthly_rate", sa.Float(), nullable=True),
        sa.Column("monthly_pay_day", sa.Integer(), nullable=True),
        sa.Column("location_id", sa.String(length=128), nullable=True),
        sa.Column("client_profile_id", sa.String(length=128), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_employee_rates_employee_id"), "employee_rates", ["employee_id"], unique=False)
    op.create_index(
        "ix_employee_rates_employee_effective", "employee_rates", ["employee_id", "effective_date"], unique=False
    )

    op.create_table(
        "service_history",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("service_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=True),
        sa.Column("status_legacy", sa.String(length=50), nullable=True),
        sa.Column("assigned_employees", sa.JSON(), nullable=True),
        sa.Column("employee_assignments", sa.JSON(), nullable=True),
        sa.Column("location_id", sa.String(length=128), nullable=True),
        sa.Column("client_profile_id", sa.String(length=128), nullable=True),
        sa.Column("duration_minutes", sa.Float(), nullable=True),
        sa.Column("estimated_duration_minutes", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_service_history_service_date"), "service_history", ["service_date"], unique=False)

    op.create_table(
        "payroll_runs",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="draft", nullable=False),
        sa.Column("total_hours", sa.Float(), nullable=False),
        sa.Column("total_earnings", sa.Float(), nullable=False),
        sa.Column("by_employee", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(length=128), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_payroll_runs_status"), "payroll_runs", ["status"], unique=False)

    op.create_table(
        "payroll_run_summaries",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("run_id", sa.String(length=64), nullable=False),
        sa.Column("profile_id", sa.String(length=128), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("hours_total", sa.Float(), nullable=False),
        sa.Column("gross_pay", sa.Float(), nullable=False),
        sa.Column("rate_at_time", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("timesheet_refs", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["run_id"], ["payroll_runs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("run_id", "profile_id", name="uq_run_summary_profile"),
    )
    op.create_index(op.f("ix_payroll_run_summaries_run_id"), "payroll_run_summaries", ["run_id"], unique=False)

    op.create_table(
        "timesheets",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("employee_id", sa.String(length=128), nullable=False),
        sa.Column("employee_profile_id", sa.String(length=128), nullable=True),
        sa.Column("job_id", sa.String(length=128), nullable=True),
        sa.Column("start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("hours", sa.Float(), nullable=True),
        sa.Column("units", sa.Float(), nullable=True),
        sa.Column("rate_snapshot", sa.JSON(), nullable=True),
        sa.Column("hourly_rate", sa.Float(), nullable=True),
        sa.Column("approved_in_run_id", sa.String(length=64), nullable=True),
        sa.Column("admin_approved", sa.Boolean(), nullable=False),
        sa.Column("source", sa.String(length=20), server_default="manual", nullable=False),
        sa.Column("period_id", sa.String(length=64), nullable=True),
        sa.Column("backfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("backfilled_by", sa.String(length=128), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_timesheets_employee_id"), "timesheets", ["employee_id"], unique=False)
    op.create_index(op.f("ix_timesheets_job_id"), "timesheets", ["job_id"], unique=False)
    op.create_index(op.f("ix_timesheets_start"), "timesheets", ["start"], unique=False)
    op.create_index(op.f("ix_timesheets_approved_in_run_id"), "timesheets", ["approved_in_run_id"], unique=False)
    op.create_index(
        "ix_timesheets_run_employee_start",
        "timesheets",
        ["approved_in_run_id", "employee_id", "start"],
        unique=False,
    )
    op.create_index(
        "uq_timesheets_payroll_prep_job",
        "timesheets",
        ["employee_id", "job_id"],
        unique=True,
        postgresql_where=sa.text("source = 'payroll_prep'"),
        sqlite_where=sa.text("source = 'payroll_prep'"),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_log_created_at"), "audit_log", ["created_at"], unique=False)
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"], unique=False)


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("timesheets")
    op.drop_table("payroll_run_summaries")
    op.drop_table("payroll_runs")
    op.drop_table("service_history")
    op.drop_table("employee_rates")
    op.drop_table("users")
