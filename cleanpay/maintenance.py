"""Operator commands that run payroll procedures directly against the database.

    python -m cleanpay.maintenance backfill --start 2024-01-01 --end 2024-02-01
    python -m cleanpay.maintenance recalc --run-id <run id>

Commands run as the trusted ``system:maintenance`` actor and skip caller
authorization. Dates are interpreted in the payroll timezone.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import date, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from cleanpay.config import get_settings
from cleanpay.db import dispose_engine, get_session_factory
from cleanpay.exceptions import AppError
from cleanpay.logging_config import configure_logging
from cleanpay.services.aggregator import RunAggregator
from cleanpay.services.backfill import SnapshotBackfiller
from cleanpay.services.rates import RateCache, RateResolver

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

MAINTENANCE_ACTOR = "system:maintenance"


def _local_midnight(value: date) -> datetime:
    tz = ZoneInfo(get_settings().payroll_timezone)
    return datetime(value.year, value.month, value.day, tzinfo=tz)


async def run_backfill(start: date, end: date) -> int:
    """Backfill rate snapshots for timesheets starting in ``[start, end)``."""
    async with get_session_factory()() as session:
        backfiller = SnapshotBackfiller(session, RateResolver(session, RateCache()))
        result = await backfiller.backfill(_local_midnight(start), _local_midnight(end), actor=MAINTENANCE_ACTOR)
    logger.info(
        "Backfill %s..%s complete: updated=%d skipped=%d errors=%d total=%d",
        start,
        end,
        result.updated,
        result.skipped,
        result.errors,
        result.total,
    )
    return 1 if result.errors else 0


async def run_recalc(run_id: str) -> int:
    """Recalculate one payroll run."""
    async with get_session_factory()() as session:
        aggregator = RunAggregator(session, RateResolver(session, RateCache()))
        result = await aggregator.recalc(run_id, actor=MAINTENANCE_ACTOR)
    computation = result.computation
    logger.info(
        "Recalc complete: run=%s version=%d totalHours=%.2f totalEarnings=%.2f missingRates=%d",
        result.run_id,
        result.version,
        computation.total_hours,
        computation.total_earnings,
        len(computation.missing_rate_timesheet_ids),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cleanpay.maintenance", description="CleanPay payroll maintenance")
    commands = parser.add_subparsers(dest="command", required=True)

    backfill = commands.add_parser("backfill", help="attach missing rate snapshots to timesheets")
    backfill.add_argument("--start", type=date.fromisoformat, required=True, help="first day (YYYY-MM-DD)")
    backfill.add_argument("--end", type=date.fromisoformat, required=True, help="day after the last (YYYY-MM-DD)")

    recalc = commands.add_parser("recalc", help="recalculate a payroll run's totals")
    recalc.add_argument("--run-id", required=True)
    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    try:
        if args.command == "backfill":
            return await run_backfill(args.start, args.end)
        return await run_recalc(args.run_id)
    except AppError as exc:
        logger.error("%s failed: %s", args.command, exc.message)
        return 2
    finally:
        await dispose_engine()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the maintenance command."""
    configure_logging(get_settings())
    args = build_parser().parse_args(argv)
    return asyncio.run(_dispatch(args))


if __name__ == "__main__":
    raise SystemExit(main())
