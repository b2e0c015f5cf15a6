"""Run aggregation: recompute a payroll run's totals from its approved timesheets.

Every accumulation step is rounded to cents, never only the final sum, so the
stored totals match those produced by earlier versions of the system.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update
from sqlmodel import col

from cleanpay.config import Settings, get_settings
from cleanpay.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from cleanpay.models.base import now_utc
from cleanpay.models.enums import AuditAction, AuditEntityType, PayrollRunStatus
from cleanpay.models.payroll_run import PayrollRun, PayrollRunSummary
from cleanpay.models.timesheet import Timesheet
from cleanpay.models.user import UserProfile
from cleanpay.schemas.rates import HourlyRate, RateSnapshot, parse_rate_snapshot
from cleanpay.services.audit import write_audit_log
from cleanpay.services.compensation import Compensation, compute_compensation
from cleanpay.services.money import accumulate
from cleanpay.services.timeutil import ensure_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cleanpay.services.rates import RateResolver

logger = logging.getLogger(__name__)


@dataclass
class EmployeeAccumulator:
    hours: float = 0.0
    earnings: float = 0.0
    hourly_rate: float | None = None

    def add(self, compensation: Compensation) -> None:
        self.hours = accumulate(self.hours, compensation.hours)
        self.earnings = accumulate(self.earnings, compensation.earnings)
        if self.hourly_rate is None:
            self.hourly_rate = compensation.applied_rate

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"hours": self.hours, "earnings": self.earnings}
        if self.hourly_rate is not None:
            document["hourlyRate"] = self.hourly_rate
        return document


@dataclass
class SummaryAccumulator:
    hours_total: float = 0.0
    gross_pay: float = 0.0
    rate_at_time: float | None = None
    timesheet_refs: list[str] = field(default_factory=list)

    def add(self, timesheet_id: str, compensation: Compensation) -> None:
        self.hours_total = accumulate(self.hours_total, compensation.hours)
        self.gross_pay = accumulate(self.gross_pay, compensation.earnings)
        if self.rate_at_time is None:
            self.rate_at_time = compensation.applied_rate
        self.timesheet_refs.append(timesheet_id)


@dataclass
class RunComputation:
    """Totals of a run as computed from its current approved timesheets."""

    by_employee: dict[str, EmployeeAccumulator] = field(default_factory=dict)
    total_hours: float = 0.0
    total_earnings: float = 0.0
    summaries: dict[str, SummaryAccumulator] = field(default_factory=dict)
    missing_rate_timesheet_ids: list[str] = field(default_factory=list)

    def by_employee_document(self) -> dict[str, Any]:
        return {employee_id: totals.to_document() for employee_id, totals in self.by_employee.items()}

    def totals_document(self) -> dict[str, Any]:
        return {
            "byEmployee": self.by_employee_document(),
            "totalHours": self.total_hours,
            "totalEarnings": self.total_earnings,
        }


@dataclass
class RecalcResult:
    run_id: str
    version: int
    computation: RunComputation


def run_totals_document(run: PayrollRun) -> dict[str, Any]:
    return {
        "byEmployee": dict(run.by_employee or {}),
        "totalHours": run.total_hours,
        "totalEarnings": run.total_earnings,
    }


async def get_run_or_404(session: AsyncSession, run_id: str, *, refresh: bool = False) -> PayrollRun:
    """Fetch a payroll run by id. Raises NotFoundError if it does not exist."""
    query = select(PayrollRun).where(col(PayrollRun.id) == run_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await session.execute(query)
    run = result.scalar_one_or_none()
    if run is None:
        raise NotFoundError("Payroll run not found")
    return run


class RunAggregator:
    """Computes and persists payroll run totals and per-profile summaries."""

    def __init__(self, session: AsyncSession, resolver: RateResolver, settings: Settings | None = None) -> None:
        self.session = session
        self.resolver = resolver
        self.settings = settings or get_settings()
        self._profile_cache: dict[str, str | None] = {}

    async def compute(self, run: PayrollRun) -> RunComputation:
        """Aggregate the run's approved timesheets in ``(employee, start)`` order."""
        if run.period_start is None or run.period_end is None:
            raise InvalidArgumentError("Payroll run has no valid period")

        query = (
            select(Timesheet)
            .where(col(Timesheet.approved_in_run_id) == run.id)
            .order_by(col(Timesheet.employee_id), col(Timesheet.start), col(Timesheet.id))
        )
        result = await self.session.execute(query)
        computation = RunComputation()

        for timesheet in result.scalars().all():
            snapshot = await self._rate_for(timesheet)
            if snapshot is None:
                logger.warning("No rate for timesheet %s (employee %s)", timesheet.id, timesheet.employee_id)
                computation.missing_rate_timesheet_ids.append(timesheet.id)
                continue

            compensation = compute_compensation(snapshot, timesheet.hours, timesheet.units)
            if compensation is None:
                continue

            totals = computation.by_employee.setdefault(timesheet.employee_id, EmployeeAccumulator())
            totals.add(compensation)
            computation.total_hours = accumulate(computation.total_hours, compensation.hours)
            computation.total_earnings = accumulate(computation.total_earnings, compensation.earnings)

            profile_id = await self._profile_id_for(timesheet)
            if profile_id:
                summary = computation.summaries.setdefault(profile_id, SummaryAccumulator())
                summary.add(timesheet.id, compensation)

        return computation

    async def recalc(self, run_id: str, *, actor: str) -> RecalcResult:
        """Recompute and store a run's totals with a compare-and-swap on ``version``."""
        attempts = max(1, self.settings.recalc_max_attempts)
        for attempt in range(1, attempts + 1):
            run = await get_run_or_404(self.session, run_id, refresh=True)
            before = run_totals_document(run)
            expected_version = run.version
            computation = await self.compute(run)

            if await self._swap_totals(run, expected_version, computation, actor):
                break
            logger.warning(
                "Payroll run %s changed during recalculation (attempt %d of %d)", run_id, attempt, attempts
            )
        else:
            raise ConflictError("Payroll run was modified concurrently, please retry")

        run = await get_run_or_404(self.session, run_id, refresh=True)
        if run.status == PayrollRunStatus.FINALIZED:
            logger.warning("Recalculated finalized payroll run %s", run_id)

        await self.write_summaries(run, computation)
        await write_audit_log(
            self.session,
            actor_id=actor,
            entity_type=AuditEntityType.PAYROLL_RUN,
            entity_id=run.id,
            action=AuditAction.RECALCULATE,
            before_json=before,
            after_json=computation.totals_document(),
        )
        await self.session.commit()

        logger.info(
            "Recalculated payroll run %s: %.2f hours, %.2f earnings, %d missing rates",
            run_id,
            computation.total_hours,
            computation.total_earnings,
            len(computation.missing_rate_timesheet_ids),
        )
        return RecalcResult(run_id=run.id, version=run.version, computation=computation)

    async def refresh_summaries(self, run: PayrollRun) -> RunComputation:
        """Rebuild the run's summaries without touching its stored totals."""
        computation = await self.compute(run)
        await self.write_summaries(run, computation)
        return computation

    async def write_summaries(self, run: PayrollRun, computation: RunComputation) -> None:
        """Upsert current summaries and delete those of profiles no longer in the run."""
        result = await self.session.execute(
            select(PayrollRunSummary).where(col(PayrollRunSummary.run_id) == run.id)
        )
        existing = {summary.profile_id: summary for summary in result.scalars().all()}

        for profile_id, summary in existing.items():
            if profile_id not in computation.summaries:
                await self.session.delete(summary)

        for profile_id, aggregate in computation.summaries.items():
            row = existing.get(profile_id)
            if row is None:
                row = PayrollRunSummary(
                    run_id=run.id,
                    profile_id=profile_id,
                    period_start=run.period_start,
                    period_end=run.period_end,
                )
            row.period_start = run.period_start
            row.period_end = run.period_end
            row.hours_total = aggregate.hours_total
            row.gross_pay = aggregate.gross_pay
            row.rate_at_time = aggregate.rate_at_time
            row.status = run.status
            row.timesheet_refs = list(aggregate.timesheet_refs)
            self.session.add(row)
        await self.session.flush()

    async def _swap_totals(
        self, run: PayrollRun, expected_version: int, computation: RunComputation, actor: str
    ) -> bool:
        result = await self.session.execute(
            update(PayrollRun)
            .where(col(PayrollRun.id) == run.id, col(PayrollRun.version) == expected_version)
            .values(
                by_employee=computation.by_employee_document(),
                total_hours=computation.total_hours,
                total_earnings=computation.total_earnings,
                version=expected_version + 1,
                updated_at=now_utc(),
                updated_by=actor,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _rate_for(self, timesheet: Timesheet) -> RateSnapshot | None:
        snapshot = parse_rate_snapshot(timesheet.rate_snapshot)
        if snapshot is not None:
            return snapshot
        if timesheet.rate_snapshot:
            logger.warning("Ignoring unusable rate snapshot on timesheet %s", timesheet.id)
        if timesheet.hourly_rate and timesheet.hourly_rate > 0:
            return HourlyRate(amount=timesheet.hourly_rate)
        if not timesheet.employee_id:
            return None
        return await self.resolver.resolve_rate(timesheet.employee_id, ensure_utc(timesheet.start))

    async def _profile_id_for(self, timesheet: Timesheet) -> str | None:
        if timesheet.employee_profile_id:
            return timesheet.employee_profile_id
        employee_id = timesheet.employee_id
        if employee_id not in self._profile_cache:
            result = await self.session.execute(
                select(UserProfile.profile_id).where(col(UserProfile.id) == employee_id)
            )
            self._profile_cache[employee_id] = result.scalar_one_or_none()
        return self._profile_cache[employee_id]
