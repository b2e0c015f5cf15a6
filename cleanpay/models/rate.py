from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from cleanpay.models.base import DocumentBase, TimestampMixin


class EmployeeRate(DocumentBase, TimestampMixin, table=True):
    """An employee's pay rate, effective from a given instant.

    Written by HR workflows and never modified by payroll. Legacy rows may have
    no ``rate_type`` (treated as hourly when ``hourly_rate`` is set) and no
    ``effective_date`` (``created_at`` stands in).
    """

    __tablename__ = "employee_rates"
    __table_args__ = (sa.Index("ix_employee_rates_employee_effective", "employee_id", "effective_date"),)

    employee_id: str = Field(index=True, max_length=128)
    effective_date: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    rate_type: str | None = Field(default=None, max_length=20)
    hourly_rate: float | None = None
    per_visit_rate: float | None = None
    monthly_rate: float | None = None
    monthly_pay_day: int | None = None
    location_id: str | None = Field(default=None, max_length=128)
    client_profile_id: str | None = Field(default=None, max_length=128)
