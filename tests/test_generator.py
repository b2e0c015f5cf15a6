"""Tests for draft timesheet generation."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from cleanpay.exceptions import InvalidArgumentError
from cleanpay.models.audit import AuditLog
from cleanpay.models.enums import TimesheetSource
from cleanpay.models.timesheet import Timesheet
from cleanpay.schemas.rates import HourlyRate, MonthlyRate, PerVisitRate
from cleanpay.services.generator import TimesheetGenerator
from cleanpay.services.scanner import DraftTimesheet

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

ACTOR = "admin-1"
SERVICE_DATE = datetime(2024, 1, 5, 9, tzinfo=UTC)


def _hourly_draft(employee_id: str = "emp-a", job_id: str = "job-1", hours: float = 2.5) -> DraftTimesheet:
    return DraftTimesheet(
        employee_id=employee_id,
        job_id=job_id,
        service_date=SERVICE_DATE,
        rate_snapshot=HourlyRate(amount=20),
        hours=hours,
    )


async def _timesheet_count(session: AsyncSession) -> int:
    return (await session.execute(select(func.count()).select_from(Timesheet))).scalar_one()


async def test_generates_payroll_prep_timesheets(db_session: AsyncSession) -> None:
    visit = DraftTimesheet(
        employee_id="emp-b",
        job_id="job-1",
        service_date=SERVICE_DATE,
        rate_snapshot=PerVisitRate(amount=45),
        units=1,
    )

    result = await TimesheetGenerator(db_session).generate(
        [_hourly_draft(), visit], actor=ACTOR, period_id="2024-01-15"
    )

    assert result.created == 2
    assert result.skipped == 0
    rows = (await db_session.execute(select(Timesheet).order_by(col(Timesheet.employee_id)))).scalars().all()
    hourly, per_visit = rows
    assert hourly.source == TimesheetSource.PAYROLL_PREP
    assert hourly.approved_in_run_id is None
    assert hourly.rate_snapshot == {"type": "hourly", "amount": 20}
    assert hourly.hours == 2.5
    assert hourly.end - hourly.start == timedelta(hours=2.5)
    assert hourly.period_id == "2024-01-15"
    assert per_visit.rate_snapshot == {"type": "per_visit", "amount": 45}
    assert per_visit.units == 1
    assert per_visit.hours is None
    assert per_visit.end == per_visit.start


async def test_monthly_draft_is_rejected_before_any_write(db_session: AsyncSession) -> None:
    monthly = DraftTimesheet(
        employee_id="emp-m",
        job_id="job-2",
        service_date=SERVICE_DATE,
        rate_snapshot=MonthlyRate(amount=3000),
    )

    with pytest.raises(InvalidArgumentError, match="monthly"):
        await TimesheetGenerator(db_session).generate([_hourly_draft(), monthly], actor=ACTOR)

    assert await _timesheet_count(db_session) == 0


async def test_regeneration_skips_existing_pairs(db_session: AsyncSession) -> None:
    generator = TimesheetGenerator(db_session)
    first = await generator.generate([_hourly_draft()], actor=ACTOR)
    second = await generator.generate([_hourly_draft(), _hourly_draft(job_id="job-2")], actor=ACTOR)

    assert first.created == 1
    assert second.created == 1
    assert second.skipped == 1
    assert await _timesheet_count(db_session) == 2


async def test_duplicates_within_a_batch_are_skipped(db_session: AsyncSession) -> None:
    result = await TimesheetGenerator(db_session).generate([_hourly_draft(), _hourly_draft(hours=4)], actor=ACTOR)
    assert result.created == 1
    assert result.skipped == 1


async def test_manual_timesheets_do_not_block_generation(db_session: AsyncSession, make_timesheet) -> None:
    await make_timesheet("emp-a", SERVICE_DATE, job_id="job-1", hours=2, source=TimesheetSource.MANUAL.value)
    result = await TimesheetGenerator(db_session).generate([_hourly_draft()], actor=ACTOR)
    assert result.created == 1


async def test_generation_is_audited(db_session: AsyncSession) -> None:
    await TimesheetGenerator(db_session).generate([_hourly_draft()], actor=ACTOR, period_id="2024-01-15")

    entry = (await db_session.execute(select(AuditLog))).scalar_one()
    assert entry.action == "GENERATE"
    assert entry.entity_type == "TIMESHEET_BATCH"
    assert entry.entity_id == "2024-01-15"
    assert entry.actor_id == ACTOR
    assert entry.after_json["created"] == 1


async def test_empty_batch(db_session: AsyncSession) -> None:
    result = await TimesheetGenerator(db_session).generate([], actor=ACTOR)
    assert result.created == 0
    assert await _timesheet_count(db_session) == 0
