# ruff: noqa: TC001
from __future__ import annotations

from fastapi import APIRouter

from cleanpay.api.deps import CallerDep
from cleanpay.db import SessionDep
from cleanpay.schemas.payroll import (
    ApproveTimesheetsRequest,
    ApproveTimesheetsResponse,
    BackfillRateSnapshotsRequest,
    BackfillRateSnapshotsResponse,
    CreatePayrollRunRequest,
    CreatePayrollRunResponse,
    PayrollGenerateRequest,
    PayrollGenerateResponse,
    PayrollScanRequest,
    PayrollScanResponse,
    RecalcPayrollRunRequest,
    RecalcPayrollRunResponse,
    SyncMonthlyPayRequest,
    SyncMonthlyPayResponse,
)
from cleanpay.services import payroll as payroll_service

callable_router = APIRouter(prefix="/callable", tags=["payroll"])


@callable_router.post("/createPayrollRun", response_model=CreatePayrollRunResponse)
async def create_payroll_run(
    payload: CreatePayrollRunRequest,
    session: SessionDep,
    caller: CallerDep,
) -> CreatePayrollRunResponse:
    """Create a draft payroll run for a period."""
    return await payroll_service.create_payroll_run(session, caller, payload)


@callable_router.post("/recalcPayrollRun", response_model=RecalcPayrollRunResponse)
async def recalc_payroll_run(
    payload: RecalcPayrollRunRequest,
    session: SessionDep,
    caller: CallerDep,
) -> RecalcPayrollRunResponse:
    """Recompute a payroll run's totals."""
    return await payroll_service.recalc_payroll_run(session, caller, payload)


@callable_router.post("/payrollScan", response_model=PayrollScanResponse)
async def payroll_scan(
    payload: PayrollScanRequest,
    session: SessionDep,
    caller: CallerDep,
) -> PayrollScanResponse:
    """Preview draft timesheets and missing rates for a period."""
    return await payroll_service.payroll_scan(session, caller, payload)


@callable_router.post("/payrollGenerate", response_model=PayrollGenerateResponse)
async def payroll_generate(
    payload: PayrollGenerateRequest,
    session: SessionDep,
    caller: CallerDep,
) -> PayrollGenerateResponse:
    """Generate draft timesheets for a period."""
    return await payroll_service.payroll_generate(session, caller, payload)


@callable_router.post("/approveTimesheetsInRun", response_model=ApproveTimesheetsResponse)
async def approve_timesheets_in_run(
    payload: ApproveTimesheetsRequest,
    session: SessionDep,
    caller: CallerDep,
) -> ApproveTimesheetsResponse:
    """Approve timesheets into a payroll run."""
    return await payroll_service.approve_timesheets_in_run(session, caller, payload)


@callable_router.post("/backfillRateSnapshots", response_model=BackfillRateSnapshotsResponse)
async def backfill_rate_snapshots(
    payload: BackfillRateSnapshotsRequest,
    session: SessionDep,
    caller: CallerDep,
) -> BackfillRateSnapshotsResponse:
    """Attach missing rate snapshots to historical timesheets."""
    return await payroll_service.backfill_rate_snapshots(session, caller, payload)


@callable_router.post("/syncMonthlyPay", response_model=SyncMonthlyPayResponse)
async def sync_monthly_pay(
    payload: SyncMonthlyPayRequest,
    session: SessionDep,
    caller: CallerDep,
) -> SyncMonthlyPayResponse:
    """Rebuild salary entries for monthly-rate employees."""
    return await payroll_service.sync_monthly_pay(session, caller, payload)
