from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from cleanpay.models.base import DocumentBase, TimestampMixin
from cleanpay.models.enums import PayrollRunStatus


class PayrollRun(DocumentBase, TimestampMixin, table=True):
    """One payroll processing cycle and its computed totals.

    ``version`` is bumped on every totals write; recalculation only commits when
    the version it read is still current.
    """

    __tablename__ = "payroll_runs"

    period_start: datetime = Field(sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    period_end: datetime = Field(sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    status: str = Field(
        default=PayrollRunStatus.DRAFT, max_length=20, index=True, sa_column_kwargs={"server_default": "draft"}
    )
    total_hours: float = 0.0
    total_earnings: float = 0.0
    by_employee: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    version: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    created_by: str = Field(max_length=128)
    updated_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    updated_by: str | None = Field(default=None, max_length=128)


class PayrollRunSummary(DocumentBase, table=True):
    """Per employee-profile aggregate of a run, rebuilt whenever the run changes."""

    __tablename__ = "payroll_run_summaries"
    __table_args__ = (sa.UniqueConstraint("run_id", "profile_id", name="uq_run_summary_profile"),)

    run_id: str = Field(
        sa_column=sa.Column(
            sa.String(64), sa.ForeignKey("payroll_runs.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    profile_id: str = Field(max_length=128)
    period_start: datetime = Field(sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    period_end: datetime = Field(sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    hours_total: float = 0.0
    gross_pay: float = 0.0
    rate_at_time: float | None = None
    status: str = Field(default=PayrollRunStatus.DRAFT, max_length=20)
    timesheet_refs: list[str] = Field(default_factory=list, sa_type=sa.JSON)
