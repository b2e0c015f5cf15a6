from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field

from cleanpay.models.base import DocumentBase, TimestampMixin


class PayrollEntry(DocumentBase, TimestampMixin, table=True):
    """An earning or deduction line of a semi-monthly pay period.

    ``amount`` is signed: earnings are positive and deductions negative.
    """

    __tablename__ = "payroll_entries"
    __table_args__ = (sa.Index("ix_payroll_entries_period_source", "period_id", "source"),)

    period_id: str = Field(index=True, max_length=64)
    employee_id: str = Field(index=True, max_length=128)
    job_id: str | None = Field(default=None, max_length=128)
    type: str = Field(max_length=20)
    category: str = Field(max_length=30)
    amount: float
    description: str | None = Field(default=None, max_length=255)
    source: str | None = Field(default=None, max_length=50)
