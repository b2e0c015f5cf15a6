from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from cleanpay import maintenance
from cleanpay.models.payroll_run import PayrollRun

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


@pytest.fixture
def maintenance_sessions(monkeypatch: pytest.MonkeyPatch, engine: AsyncEngine) -> None:
    factory = async_sessionmaker(engine, expire_on_commit=False)
    monkeypatch.setattr(maintenance, "get_session_factory", lambda: factory)


def test_parser_reads_iso_dates() -> None:
    args = maintenance.build_parser().parse_args(["backfill", "--start", "2024-01-01", "--end", "2024-02-01"])
    assert args.command == "backfill"
    assert args.start == date(2024, 1, 1)
    assert args.end == date(2024, 2, 1)


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        maintenance.build_parser().parse_args([])


@pytest.mark.usefixtures("maintenance_sessions")
async def test_backfill_command(make_rate, make_timesheet, caplog: pytest.LogCaptureFixture) -> None:
    await make_rate("emp-a", datetime(2023, 6, 1, tzinfo=UTC), rate_type="hourly", hourly_rate=20)
    await make_timesheet("emp-a", datetime(2024, 1, 10, tzinfo=UTC), hours=2)

    caplog.set_level(logging.INFO, logger="cleanpay.maintenance")
    args = maintenance.build_parser().parse_args(["backfill", "--start", "2024-01-01", "--end", "2024-02-01"])
    assert await maintenance._dispatch(args) == 0
    assert "updated=1 skipped=0 errors=0 total=1" in caplog.text


@pytest.mark.usefixtures("maintenance_sessions")
async def test_recalc_command(db_session: AsyncSession, caplog: pytest.LogCaptureFixture) -> None:
    run = PayrollRun(
        period_start=datetime(2024, 1, 1, tzinfo=UTC),
        period_end=datetime(2024, 1, 16, tzinfo=UTC),
        created_by="admin-1",
    )
    db_session.add(run)
    await db_session.commit()

    caplog.set_level(logging.INFO, logger="cleanpay.maintenance")
    args = maintenance.build_parser().parse_args(["recalc", "--run-id", run.id])
    assert await maintenance._dispatch(args) == 0
    assert f"run={run.id} version=1" in caplog.text


@pytest.mark.usefixtures("maintenance_sessions")
async def test_unknown_run_exits_with_error() -> None:
    args = maintenance.build_parser().parse_args(["recalc", "--run-id", "missing"])
    assert await maintenance._dispatch(args) == 2
