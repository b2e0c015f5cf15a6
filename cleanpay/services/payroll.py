"""The payroll callables.

Each operation receives an already-validated payload, authorizes the caller,
then runs its procedure. Anything other than an :class:`AppError` is logged
with its cause and surfaced as a generic internal error.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from sqlalchemy import select
from sqlmodel import col

from cleanpay.exceptions import AppError, InternalError, NotFoundError
from cleanpay.models.base import now_utc
from cleanpay.models.enums import AuditAction, AuditEntityType, PayrollRunStatus, RateType
from cleanpay.models.payroll_run import PayrollRun
from cleanpay.models.timesheet import Timesheet
from cleanpay.schemas.payroll import (
    ApproveTimesheetsResponse,
    BackfillRateSnapshotsResponse,
    CreatePayrollRunResponse,
    DraftTimesheetResponse,
    EmployeeTotals,
    MissingRateResponse,
    PayrollGenerateResponse,
    PayrollScanResponse,
    RecalcPayrollRunResponse,
    RunTotals,
    SyncMonthlyPayResponse,
)
from cleanpay.schemas.rates import snapshot_type
from cleanpay.services.aggregator import RunAggregator, RunComputation, get_run_or_404
from cleanpay.services.audit import model_to_audit_dict, write_audit_log
from cleanpay.services.authz import require_finance_admin
from cleanpay.services.backfill import SnapshotBackfiller
from cleanpay.services.compensation import compute_compensation, positive_quantity
from cleanpay.services.generator import TimesheetGenerator
from cleanpay.services.money import accumulate
from cleanpay.services.monthly import MonthlySalarySync
from cleanpay.services.periods import period_for_pay_date
from cleanpay.services.rates import RateCache, RateResolver
from cleanpay.services.scanner import DraftTimesheet, PeriodScanner, ScanResult
from cleanpay.services.timeutil import from_epoch_ms, period_id_for, to_epoch_ms

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from cleanpay.schemas.auth import CallerContext
    from cleanpay.schemas.payroll import (
        ApproveTimesheetsRequest,
        BackfillRateSnapshotsRequest,
        CreatePayrollRunRequest,
        PayrollGenerateRequest,
        PayrollScanRequest,
        RecalcPayrollRunRequest,
        SyncMonthlyPayRequest,
    )

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

_RUN_AUDIT_FIELDS = {"id", "period_start", "period_end", "status", "total_hours", "total_earnings", "version"}


def callable_operation(failure_message: str) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Convert unexpected exceptions of an operation into InternalError."""

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except AppError:
                raise
            except Exception as exc:
                logger.exception("%s failed", func.__name__)
                raise InternalError(failure_message) from exc

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_run_totals(computation: RunComputation) -> RunTotals:
    return RunTotals(
        by_employee={
            employee_id: EmployeeTotals(hours=totals.hours, earnings=totals.earnings, hourly_rate=totals.hourly_rate)
            for employee_id, totals in computation.by_employee.items()
        },
        total_hours=computation.total_hours,
        total_earnings=computation.total_earnings,
    )


def _build_draft_response(draft: DraftTimesheet) -> DraftTimesheetResponse:
    return DraftTimesheetResponse(
        employee_id=draft.employee_id,
        job_id=draft.job_id,
        service_date=to_epoch_ms(draft.service_date),
        rate_snapshot=draft.rate_snapshot,
        hours=draft.hours,
        units=draft.units,
        location_id=draft.location_id,
    )


def _estimate_drafts(drafts: list[DraftTimesheet]) -> tuple[float, float]:
    """Estimated hours and pay of the drafts, with the same rules as recalculation."""
    total_hours = 0.0
    total_earnings = 0.0
    for draft in drafts:
        if snapshot_type(draft.rate_snapshot) == RateType.MONTHLY:
            continue
        compensation = compute_compensation(draft.rate_snapshot, draft.hours, draft.units)
        if compensation is None:
            continue
        total_hours = accumulate(total_hours, compensation.hours)
        total_earnings = accumulate(total_earnings, compensation.earnings)
    return total_hours, total_earnings


def _generatable_drafts(scan: ScanResult) -> list[DraftTimesheet]:
    """Drop monthly drafts and drafts with nothing to pay before generation."""
    drafts: list[DraftTimesheet] = []
    for draft in scan.drafts:
        if snapshot_type(draft.rate_snapshot) == RateType.MONTHLY:
            logger.warning(
                "Excluding monthly-rate assignment of employee %s on job %s from generation",
                draft.employee_id,
                draft.job_id,
            )
            continue
        if positive_quantity(draft.hours) <= 0 and positive_quantity(draft.units) <= 0:
            logger.warning(
                "Excluding assignment of employee %s on job %s with no hours or units",
                draft.employee_id,
                draft.job_id,
            )
            continue
        drafts.append(draft)
    return drafts


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


@callable_operation("Failed to create payroll run")
async def create_payroll_run(
    session: AsyncSession,
    caller: CallerContext,
    payload: CreatePayrollRunRequest,
) -> CreatePayrollRunResponse:
    """Create a draft payroll run with zero totals."""
    actor = await require_finance_admin(session, caller)

    run = PayrollRun(
        period_start=from_epoch_ms(payload.period_start),
        period_end=from_epoch_ms(payload.period_end),
        status=PayrollRunStatus.DRAFT.value,
        total_hours=0.0,
        total_earnings=0.0,
        by_employee={},
        version=0,
        created_by=actor,
    )
    session.add(run)
    await session.flush()

    await RunAggregator(session, RateResolver(session, RateCache())).refresh_summaries(run)
    await write_audit_log(
        session,
        actor_id=actor,
        entity_type=AuditEntityType.PAYROLL_RUN,
        entity_id=run.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(run, include=_RUN_AUDIT_FIELDS),
    )
    await session.commit()

    logger.info("Created payroll run %s for %s", run.id, period_id_for(run.period_start, run.period_end))
    return CreatePayrollRunResponse(id=run.id, success=True)


@callable_operation("Failed to recalculate payroll run")
async def recalc_payroll_run(
    session: AsyncSession,
    caller: CallerContext,
    payload: RecalcPayrollRunRequest,
) -> RecalcPayrollRunResponse:
    """Recompute a run's totals from its approved timesheets."""
    actor = await require_finance_admin(session, caller)

    aggregator = RunAggregator(session, RateResolver(session, RateCache()))
    result = await aggregator.recalc(payload.run_id, actor=actor)
    return RecalcPayrollRunResponse(
        success=True,
        totals=_build_run_totals(result.computation),
        missing_rate_timesheet_ids=result.computation.missing_rate_timesheet_ids,
    )


@callable_operation("Failed to scan payroll period")
async def payroll_scan(
    session: AsyncSession,
    caller: CallerContext,
    payload: PayrollScanRequest,
) -> PayrollScanResponse:
    """Preview the draft timesheets and missing rates of a period."""
    await require_finance_admin(session, caller)

    period_start = from_epoch_ms(payload.period_start)
    period_end = from_epoch_ms(payload.period_end)
    scanner = PeriodScanner(session, RateResolver(session, RateCache()))
    scan = await scanner.scan(period_start, period_end)
    total_hours, total_earnings = _estimate_drafts(scan.drafts)

    return PayrollScanResponse(
        period_id=period_id_for(period_start, period_end),
        timesheet_count=len(scan.drafts),
        total_hours=total_hours,
        total_earnings=total_earnings,
        missing_rates=[
            MissingRateResponse(employee_id=m.employee_id, job_id=m.job_id, location_id=m.location_id)
            for m in scan.missing_rates
        ],
        timesheets=[_build_draft_response(draft) for draft in scan.drafts],
        total_jobs=scan.total_jobs,
        total_assignments=scan.total_assignments,
    )


@callable_operation("Failed to generate timesheets")
async def payroll_generate(
    session: AsyncSession,
    caller: CallerContext,
    payload: PayrollGenerateRequest,
) -> PayrollGenerateResponse:
    """Scan a period and persist its generatable drafts as timesheets."""
    actor = await require_finance_admin(session, caller)

    period_start = from_epoch_ms(payload.period_start)
    period_end = from_epoch_ms(payload.period_end)
    period_id = payload.period_id or period_id_for(period_start, period_end)

    scanner = PeriodScanner(session, RateResolver(session, RateCache()))
    scan = await scanner.scan(period_start, period_end)
    drafts = _generatable_drafts(scan)

    result = await TimesheetGenerator(session).generate(drafts, actor=actor, period_id=period_id)
    return PayrollGenerateResponse(success=True, created=result.created, skipped=result.skipped)


@callable_operation("Failed to approve timesheets")
async def approve_timesheets_in_run(
    session: AsyncSession,
    caller: CallerContext,
    payload: ApproveTimesheetsRequest,
) -> ApproveTimesheetsResponse:
    """Assign timesheets to a run and refresh the run's summaries."""
    actor = await require_finance_admin(session, caller)
    if not payload.timesheet_ids:
        return ApproveTimesheetsResponse(count=0)

    run = await get_run_or_404(session, payload.run_id)
    timesheet_ids = list(dict.fromkeys(payload.timesheet_ids))
    result = await session.execute(select(Timesheet).where(col(Timesheet.id).in_(timesheet_ids)))
    timesheets = {timesheet.id: timesheet for timesheet in result.scalars().all()}

    missing = [timesheet_id for timesheet_id in timesheet_ids if timesheet_id not in timesheets]
    if missing:
        msg = f"Timesheets not found: {', '.join(missing)}"
        raise NotFoundError(msg)

    now = now_utc()
    for timesheet_id in timesheet_ids:
        timesheet = timesheets[timesheet_id]
        timesheet.approved_in_run_id = run.id
        timesheet.admin_approved = True
        timesheet.updated_at = now
        session.add(timesheet)
    await session.flush()

    await RunAggregator(session, RateResolver(session, RateCache())).refresh_summaries(run)
    await write_audit_log(
        session,
        actor_id=actor,
        entity_type=AuditEntityType.PAYROLL_RUN,
        entity_id=run.id,
        action=AuditAction.APPROVE,
        after_json={"timesheet_ids": timesheet_ids},
    )
    await session.commit()

    logger.info("Approved %d timesheets into payroll run %s", len(timesheet_ids), run.id)
    return ApproveTimesheetsResponse(count=len(timesheet_ids))


@callable_operation("Failed to backfill rate snapshots")
async def backfill_rate_snapshots(
    session: AsyncSession,
    caller: CallerContext,
    payload: BackfillRateSnapshotsRequest,
) -> BackfillRateSnapshotsResponse:
    """Attach rate snapshots to timesheets in a date range that lack one."""
    actor = await require_finance_admin(session, caller)

    backfiller = SnapshotBackfiller(session, RateResolver(session, RateCache()))
    result = await backfiller.backfill(
        from_epoch_ms(payload.start_date),
        from_epoch_ms(payload.end_date),
        actor=actor,
    )
    return BackfillRateSnapshotsResponse(
        success=True,
        updated=result.updated,
        skipped=result.skipped,
        errors=result.errors,
        total=result.total,
    )


@callable_operation("Failed to sync monthly pay")
async def sync_monthly_pay(
    session: AsyncSession,
    caller: CallerContext,
    payload: SyncMonthlyPayRequest,
) -> SyncMonthlyPayResponse:
    """Rebuild the salary entries of monthly-rate employees for a semi-monthly period."""
    actor = await require_finance_admin(session, caller)

    period = period_for_pay_date(payload.pay_date)
    salaries = MonthlySalarySync(session, RateResolver(session, RateCache()))
    result = await salaries.sync(period, actor=actor)
    return SyncMonthlyPayResponse(
        success=True,
        period_id=result.period_id,
        created=result.created,
        removed=result.removed,
    )
