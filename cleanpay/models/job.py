from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from cleanpay.models.base import DocumentBase, TimestampMixin


class ServiceJob(DocumentBase, TimestampMixin, table=True):
    """A scheduled or completed cleaning job. Read-only input to payroll."""

    __tablename__ = "service_history"

    service_date: datetime = Field(index=True, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    status: str | None = Field(default=None, max_length=50)
    status_legacy: str | None = Field(default=None, max_length=50)
    assigned_employees: list[str] | None = Field(default=None, sa_type=sa.JSON)
    # Older jobs store assignments as [{"uid": ...}] instead of a plain id list.
    employee_assignments: list[dict[str, Any]] | None = Field(default=None, sa_type=sa.JSON)
    location_id: str | None = Field(default=None, max_length=128)
    client_profile_id: str | None = Field(default=None, max_length=128)
    duration_minutes: float | None = None
    estimated_duration_minutes: float | None = None
