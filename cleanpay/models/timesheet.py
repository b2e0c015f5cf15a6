from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from cleanpay.models.base import DocumentBase, TimestampMixin
from cleanpay.models.enums import TimesheetSource


class Timesheet(DocumentBase, TimestampMixin, table=True):
    """One employee's worked unit, optionally tied to a job."""

    __tablename__ = "timesheets"
    __table_args__ = (
        sa.Index("ix_timesheets_run_employee_start", "approved_in_run_id", "employee_id", "start"),
        sa.Index(
            "uq_timesheets_payroll_prep_job",
            "employee_id",
            "job_id",
            unique=True,
            postgresql_where=sa.text("source = 'payroll_prep'"),
            sqlite_where=sa.text("source = 'payroll_prep'"),
        ),
    )

    employee_id: str = Field(index=True, max_length=128)
    employee_profile_id: str | None = Field(default=None, max_length=128)
    job_id: str | None = Field(default=None, index=True, max_length=128)
    start: datetime = Field(index=True, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    end: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    hours: float | None = None
    units: float | None = None
    rate_snapshot: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    hourly_rate: float | None = None
    approved_in_run_id: str | None = Field(default=None, index=True, max_length=64)
    admin_approved: bool = False
    source: str = Field(
        default=TimesheetSource.MANUAL, max_length=20, sa_column_kwargs={"server_default": "manual"}
    )
    period_id: str | None = Field(default=None, max_length=64)
    backfilled_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    backfilled_by: str | None = Field(default=None, max_length=128)
    updated_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
