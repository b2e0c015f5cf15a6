"""Wire schemas for the payroll callables.

Field names on the wire are camelCase and form a compatibility contract with
existing clients; Python attributes stay snake_case via the alias generator.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from cleanpay.schemas.rates import RateSnapshot

EpochMillis = Annotated[int, Field(gt=0, description="Instant as milliseconds since the Unix epoch")]


class WireModel(BaseModel):
    """Base for camelCase request/response bodies."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class PeriodPayload(WireModel):
    """A half-open period ``[periodStart, periodEnd)``."""

    period_start: EpochMillis
    period_end: EpochMillis

    @model_validator(mode="after")
    def _validate_period(self) -> Self:
        if self.period_end <= self.period_start:
            msg = "periodEnd must be after periodStart"
            raise ValueError(msg)
        return self


class CreatePayrollRunRequest(PeriodPayload):
    """Request body for createPayrollRun."""


class PayrollScanRequest(PeriodPayload):
    """Request body for payrollScan."""


class PayrollGenerateRequest(PeriodPayload):
    """Request body for payrollGenerate."""

    period_id: str | None = Field(default=None, max_length=64)


class RecalcPayrollRunRequest(WireModel):
    """Request body for recalcPayrollRun."""

    run_id: str = Field(min_length=1, max_length=64)


class ApproveTimesheetsRequest(WireModel):
    """Request body for approveTimesheetsInRun."""

    run_id: str = Field(min_length=1, max_length=64)
    timesheet_ids: list[str] = []


class BackfillRateSnapshotsRequest(WireModel):
    """Request body for backfillRateSnapshots."""

    start_date: EpochMillis
    end_date: EpochMillis

    @model_validator(mode="after")
    def _validate_range(self) -> Self:
        if self.end_date <= self.start_date:
            msg = "endDate must be after startDate"
            raise ValueError(msg)
        return self


class SyncMonthlyPayRequest(WireModel):
    """Request body for syncMonthlyPay. ``payDate`` must be the 1st or 15th."""

    pay_date: date


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CreatePayrollRunResponse(WireModel):
    id: str
    success: bool = True


class EmployeeTotals(WireModel):
    """Hours and earnings for one employee within a run."""

    hours: float
    earnings: float
    hourly_rate: float | None = None


class RunTotals(WireModel):
    """Aggregated totals of a payroll run."""

    by_employee: dict[str, EmployeeTotals]
    total_hours: float
    total_earnings: float


class RecalcPayrollRunResponse(WireModel):
    success: bool = True
    totals: RunTotals
    missing_rate_timesheet_ids: list[str] = []


class DraftTimesheetResponse(WireModel):
    """A timesheet candidate produced by a period scan."""

    employee_id: str
    job_id: str
    service_date: int
    rate_snapshot: RateSnapshot
    hours: float | None = None
    units: float | None = None
    location_id: str | None = None


class MissingRateResponse(WireModel):
    """An assignment whose employee had no resolvable rate."""

    employee_id: str
    job_id: str
    location_id: str | None = None


class PayrollScanResponse(WireModel):
    period_id: str
    timesheet_count: int
    total_hours: float
    total_earnings: float
    missing_rates: list[MissingRateResponse]
    timesheets: list[DraftTimesheetResponse]
    total_jobs: int
    total_assignments: int


class PayrollGenerateResponse(WireModel):
    success: bool = True
    created: int
    skipped: int = 0


class ApproveTimesheetsResponse(WireModel):
    count: int


class BackfillRateSnapshotsResponse(WireModel):
    success: bool = True
    updated: int
    skipped: int
    errors: int
    total: int


class SyncMonthlyPayResponse(WireModel):
    success: bool = True
    period_id: str
    created: int
    removed: int


class SemiMonthlyPeriodResponse(WireModel):
    """A semi-monthly pay period as half-open epoch-ms bounds."""

    period_id: str
    period_start: int
    period_end: int
    pay_date: date
