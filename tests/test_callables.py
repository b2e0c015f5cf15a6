"""API tests for the payroll callables: authorization gate, error kinds,
and the scan, generate, approve, recalculate workflow end to end.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from cleanpay.models.audit import AuditLog
from cleanpay.models.payroll_entry import PayrollEntry
from cleanpay.models.payroll_run import PayrollRun, PayrollRunSummary
from cleanpay.models.timesheet import Timesheet
from cleanpay.services.scanner import PeriodScanner

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from cleanpay.models.user import UserProfile

ADMIN_HEADERS = {"X-User-Id": "admin-1"}
WORKER_HEADERS = {"X-User-Id": "worker-1"}

PERIOD_START = datetime(2024, 1, 1, tzinfo=UTC)
PERIOD_END = datetime(2024, 1, 16, tzinfo=UTC)


def _ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


PERIOD_BODY = {"periodStart": _ms(PERIOD_START), "periodEnd": _ms(PERIOD_END)}


async def _count(session: AsyncSession, model: type) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.fixture
async def existing_run(db_session: AsyncSession) -> PayrollRun:
    run = PayrollRun(period_start=PERIOD_START, period_end=PERIOD_END, created_by="admin-1")
    db_session.add(run)
    await db_session.commit()
    return run


@pytest.fixture
async def unsnapshotted_timesheet(make_rate, make_timesheet) -> Timesheet:
    await make_rate("emp-a", datetime(2023, 6, 1, tzinfo=UTC), rate_type="hourly", hourly_rate=20)
    return await make_timesheet("emp-a", datetime(2024, 1, 5, tzinfo=UTC), hours=3)


def _requests(run_id: str, timesheet_id: str) -> list[tuple[str, dict[str, Any]]]:
    return [
        ("createPayrollRun", PERIOD_BODY),
        ("recalcPayrollRun", {"runId": run_id}),
        ("payrollScan", PERIOD_BODY),
        ("payrollGenerate", PERIOD_BODY),
        ("approveTimesheetsInRun", {"runId": run_id, "timesheetIds": [timesheet_id]}),
        ("backfillRateSnapshots", {"startDate": _ms(PERIOD_START), "endDate": _ms(PERIOD_END)}),
        ("syncMonthlyPay", {"payDate": "2024-01-15"}),
    ]


# ---------------------------------------------------------------------------
# Authorization gate
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("index", range(7))
async def test_caller_without_finance_role_is_denied(
    async_client: AsyncClient,
    db_session: AsyncSession,
    worker_user: UserProfile,
    existing_run: PayrollRun,
    unsnapshotted_timesheet: Timesheet,
    make_job,
    index: int,
) -> None:
    await make_job(datetime(2024, 1, 2, tzinfo=UTC), ["emp-a"])
    name, body = _requests(existing_run.id, unsnapshotted_timesheet.id)[index]

    resp = await async_client.post(f"/callable/{name}", json=body, headers=WORKER_HEADERS)

    assert resp.status_code == 403
    assert resp.json()["kind"] == "permission-denied"

    # Nothing was written anywhere.
    assert await _count(db_session, PayrollRun) == 1
    assert await _count(db_session, Timesheet) == 1
    assert await _count(db_session, AuditLog) == 0
    assert await _count(db_session, PayrollRunSummary) == 0
    assert await _count(db_session, PayrollEntry) == 0
    await db_session.refresh(unsnapshotted_timesheet)
    assert unsnapshotted_timesheet.rate_snapshot is None
    assert unsnapshotted_timesheet.approved_in_run_id is None
    await db_session.refresh(existing_run)
    assert existing_run.version == 0


@pytest.mark.parametrize("index", range(7))
async def test_anonymous_caller_is_unauthenticated(
    async_client: AsyncClient, existing_run: PayrollRun, unsnapshotted_timesheet: Timesheet, index: int
) -> None:
    name, body = _requests(existing_run.id, unsnapshotted_timesheet.id)[index]

    resp = await async_client.post(f"/callable/{name}", json=body)

    assert resp.status_code == 401
    assert resp.json()["kind"] == "unauthenticated"
    assert resp.json()["detail"] == "User must be authenticated"


async def test_validation_runs_before_authentication(async_client: AsyncClient) -> None:
    resp = await async_client.post("/callable/createPayrollRun", json={"periodStart": _ms(PERIOD_START)})
    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid-argument"


async def test_inverted_period_is_invalid(async_client: AsyncClient, admin_user: UserProfile) -> None:
    body = {"periodStart": _ms(PERIOD_END), "periodEnd": _ms(PERIOD_START)}
    resp = await async_client.post("/callable/payrollScan", json=body, headers=ADMIN_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid-argument"


async def test_role_claim_grants_access_without_profile(async_client: AsyncClient) -> None:
    headers = {"X-User-Id": "claims-only", "X-Roles": "viewer, super_admin"}
    resp = await async_client.post("/callable/createPayrollRun", json=PERIOD_BODY, headers=headers)
    assert resp.status_code == 200


@pytest.mark.parametrize(
    "fields",
    [{"owner": True}, {"super_admin": True}, {"role": "Admin"}, {"roles": ["employee", "owner"]}],
    ids=["owner-flag", "super-admin-flag", "role", "roles"],
)
async def test_profile_roles_grant_access(async_client: AsyncClient, make_user, fields: dict[str, Any]) -> None:
    await make_user("finance-1", **fields)
    resp = await async_client.post(
        "/callable/createPayrollRun", json=PERIOD_BODY, headers={"X-User-Id": "finance-1"}
    )
    assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Individual operations
# ---------------------------------------------------------------------------


async def test_create_payroll_run(async_client: AsyncClient, db_session: AsyncSession, admin_user: UserProfile) -> None:
    resp = await async_client.post("/callable/createPayrollRun", json=PERIOD_BODY, headers=ADMIN_HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True

    run = (await db_session.execute(select(PayrollRun).where(col(PayrollRun.id) == body["id"]))).scalar_one()
    assert run.status == "draft"
    assert run.total_hours == 0
    assert run.total_earnings == 0
    assert run.by_employee == {}
    assert run.version == 0
    assert run.created_by == "admin-1"

    entry = (await db_session.execute(select(AuditLog))).scalar_one()
    assert entry.action == "CREATE"
    assert entry.entity_id == body["id"]


async def test_recalc_unknown_run(async_client: AsyncClient, admin_user: UserProfile) -> None:
    resp = await async_client.post("/callable/recalcPayrollRun", json={"runId": "nope"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["kind"] == "not-found"


async def test_approve_empty_list(
    async_client: AsyncClient, admin_user: UserProfile, existing_run: PayrollRun
) -> None:
    resp = await async_client.post(
        "/callable/approveTimesheetsInRun",
        json={"runId": existing_run.id, "timesheetIds": []},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json() == {"count": 0}


async def test_approve_unknown_timesheet_writes_nothing(
    async_client: AsyncClient,
    db_session: AsyncSession,
    admin_user: UserProfile,
    existing_run: PayrollRun,
    unsnapshotted_timesheet: Timesheet,
) -> None:
    resp = await async_client.post(
        "/callable/approveTimesheetsInRun",
        json={"runId": existing_run.id, "timesheetIds": [unsnapshotted_timesheet.id, "ghost"]},
        headers=ADMIN_HEADERS,
    )

    assert resp.status_code == 404
    assert "ghost" in resp.json()["detail"]
    await db_session.refresh(unsnapshotted_timesheet)
    assert unsnapshotted_timesheet.approved_in_run_id is None


async def test_approve_into_unknown_run(
    async_client: AsyncClient, admin_user: UserProfile, unsnapshotted_timesheet: Timesheet
) -> None:
    resp = await async_client.post(
        "/callable/approveTimesheetsInRun",
        json={"runId": "nope", "timesheetIds": [unsnapshotted_timesheet.id]},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 404


async def test_backfill_rate_snapshots(
    async_client: AsyncClient, admin_user: UserProfile, unsnapshotted_timesheet: Timesheet, db_session: AsyncSession
) -> None:
    resp = await async_client.post(
        "/callable/backfillRateSnapshots",
        json={"startDate": _ms(PERIOD_START), "endDate": _ms(PERIOD_END)},
        headers=ADMIN_HEADERS,
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "updated": 1, "skipped": 0, "errors": 0, "total": 1}
    await db_session.refresh(unsnapshotted_timesheet)
    assert unsnapshotted_timesheet.rate_snapshot == {"type": "hourly", "amount": 20}
    assert unsnapshotted_timesheet.backfilled_by == "admin-1"


async def test_unexpected_failure_is_masked(
    async_client: AsyncClient, admin_user: UserProfile, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _boom(self: PeriodScanner, period_start: datetime, period_end: datetime) -> None:
        raise RuntimeError("connection to db-primary:5432 refused")

    monkeypatch.setattr(PeriodScanner, "scan", _boom)

    resp = await async_client.post("/callable/payrollScan", json=PERIOD_BODY, headers=ADMIN_HEADERS)

    assert resp.status_code == 500
    body = resp.json()
    assert body["kind"] == "internal"
    assert body["detail"] == "Failed to scan payroll period"
    assert "5432" not in resp.text


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


async def test_scan_generate_approve_recalc(
    async_client: AsyncClient,
    db_session: AsyncSession,
    admin_user: UserProfile,
    make_rate,
    make_job,
) -> None:
    await make_rate("emp-e", datetime(2024, 1, 1, tzinfo=UTC), rate_type="hourly", hourly_rate=20)
    await make_rate("emp-m", datetime(2023, 1, 1, tzinfo=UTC), rate_type="monthly", monthly_rate=3000)
    job_1 = await make_job(datetime(2024, 1, 5, 9, tzinfo=UTC), ["emp-e", "emp-m"], duration_minutes=480)
    job_2 = await make_job(datetime(2024, 1, 6, 9, tzinfo=UTC), ["emp-e"], duration_minutes=240)
    job_3 = await make_job(datetime(2024, 1, 7, 9, tzinfo=UTC), ["emp-f"], duration_minutes=60, location_id="loc-9")

    # Scan
    resp = await async_client.post("/callable/payrollScan", json=PERIOD_BODY, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    scan = resp.json()
    assert scan["periodId"] == f"{PERIOD_BODY['periodStart']}-{PERIOD_BODY['periodEnd']}"
    assert scan["totalJobs"] == 3
    assert scan["totalAssignments"] == 4
    assert scan["timesheetCount"] == 3
    assert scan["missingRates"] == [{"employeeId": "emp-f", "jobId": job_3.id, "locationId": "loc-9"}]
    assert scan["totalHours"] == 12
    assert scan["totalEarnings"] == 240.0
    first = scan["timesheets"][0]
    assert first["employeeId"] == "emp-e"
    assert first["jobId"] == job_1.id
    assert first["serviceDate"] == _ms(datetime(2024, 1, 5, 9, tzinfo=UTC))
    assert first["rateSnapshot"] == {"type": "hourly", "amount": 20.0}
    assert first["hours"] == 8

    # Generate: monthly assignments are filtered out before generation
    resp = await async_client.post(
        "/callable/payrollGenerate", json={**PERIOD_BODY, "periodId": "2024-01-15"}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "created": 2, "skipped": 0}

    generated = (await db_session.execute(select(Timesheet).order_by(col(Timesheet.start)))).scalars().all()
    assert [(t.employee_id, t.job_id) for t in generated] == [("emp-e", job_1.id), ("emp-e", job_2.id)]
    assert all(t.period_id == "2024-01-15" for t in generated)

    # Generating again is idempotent
    resp = await async_client.post("/callable/payrollGenerate", json=PERIOD_BODY, headers=ADMIN_HEADERS)
    assert resp.json() == {"success": True, "created": 0, "skipped": 2}

    # Create a run and approve the generated timesheets into it
    resp = await async_client.post("/callable/createPayrollRun", json=PERIOD_BODY, headers=ADMIN_HEADERS)
    run_id = resp.json()["id"]
    resp = await async_client.post(
        "/callable/approveTimesheetsInRun",
        json={"runId": run_id, "timesheetIds": [t.id for t in generated]},
        headers=ADMIN_HEADERS,
    )
    assert resp.json() == {"count": 2}

    # Recalculate
    resp = await async_client.post("/callable/recalcPayrollRun", json={"runId": run_id}, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["totals"] == {
        "byEmployee": {"emp-e": {"hours": 12.0, "earnings": 240.0, "hourlyRate": 20.0}},
        "totalHours": 12.0,
        "totalEarnings": 240.0,
    }
    assert body["missingRateTimesheetIds"] == []


async def test_sync_monthly_pay(
    async_client: AsyncClient,
    db_session: AsyncSession,
    admin_user: UserProfile,
    make_rate,
    make_job,
) -> None:
    await make_rate("emp-m", datetime(2023, 1, 1, tzinfo=UTC), rate_type="monthly", monthly_rate=3000)
    await make_job(datetime(2024, 1, 5, 9, tzinfo=UTC), ["emp-m"])
    await make_job(datetime(2024, 1, 8, 9, tzinfo=UTC), ["emp-m"], status="scheduled")

    resp = await async_client.post("/callable/syncMonthlyPay", json={"payDate": "2024-01-15"}, headers=ADMIN_HEADERS)

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "periodId": "2024-01-15", "created": 2, "removed": 0}
    entries = (await db_session.execute(select(PayrollEntry).order_by(col(PayrollEntry.amount)))).scalars().all()
    assert [(e.category, e.amount) for e in entries] == [("missed_day", -750.0), ("monthly", 1500.0)]


async def test_sync_monthly_pay_rejects_mid_period_pay_date(async_client: AsyncClient, admin_user: UserProfile) -> None:
    resp = await async_client.post("/callable/syncMonthlyPay", json={"payDate": "2024-01-10"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid-argument"
