# ruff: noqa: TC003
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from cleanpay.exceptions import InvalidArgumentError
from cleanpay.models.base import now_utc
from cleanpay.models.enums import AuditAction, AuditEntityType
from cleanpay.models.timesheet import Timesheet
from cleanpay.schemas.rates import snapshot_to_document
from cleanpay.services.audit import write_audit_log
from cleanpay.services.timeutil import ensure_utc, period_id_for

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cleanpay.services.rates import RateResolver

logger = logging.getLogger(__name__)


@dataclass
class BackfillResult:
    """Outcome of a snapshot backfill."""

    updated: int = 0
    skipped: int = 0
    errors: int = 0
    total: int = 0


class SnapshotBackfiller:
    """Attaches rate snapshots to historical timesheets that lack one.

    Existing snapshots are never replaced. Each timesheet is resolved and
    written inside its own savepoint; a failure rolls back only that
    timesheet, is counted, and the run continues. Surviving updates commit
    together at the end.
    """

    def __init__(self, session: AsyncSession, resolver: RateResolver) -> None:
        self.session = session
        self.resolver = resolver

    async def backfill(self, start: datetime, end: datetime, *, actor: str) -> BackfillResult:
        start = ensure_utc(start)
        end = ensure_utc(end)
        if start >= end:
            raise InvalidArgumentError("startDate must be before endDate")

        query = (
            select(Timesheet)
            .where(col(Timesheet.start) >= start, col(Timesheet.start) < end)
            .order_by(col(Timesheet.start), col(Timesheet.id))
        )
        timesheets = list((await self.session.execute(query)).scalars().all())
        result = BackfillResult(total=len(timesheets))
        updated_ids: list[str] = []

        for timesheet in timesheets:
            if timesheet.rate_snapshot:
                result.skipped += 1
                continue
            timesheet_id = timesheet.id
            try:
                async with self.session.begin_nested():
                    snapshot = await self.resolver.resolve_rate(timesheet.employee_id, ensure_utc(timesheet.start))
                    if snapshot is None:
                        result.skipped += 1
                        continue
                    now = now_utc()
                    timesheet.rate_snapshot = snapshot_to_document(snapshot)
                    timesheet.backfilled_at = now
                    timesheet.backfilled_by = actor
                    timesheet.updated_at = now
                    self.session.add(timesheet)
                    await self.session.flush()
            except Exception:
                logger.exception("Failed to backfill rate snapshot for timesheet %s", timesheet_id)
                result.errors += 1
                continue
            updated_ids.append(timesheet_id)
            result.updated += 1

        await write_audit_log(
            self.session,
            actor_id=actor,
            entity_type=AuditEntityType.TIMESHEET_BATCH,
            entity_id=period_id_for(start, end),
            action=AuditAction.BACKFILL,
            after_json={
                "updated": result.updated,
                "skipped": result.skipped,
                "errors": result.errors,
                "total": result.total,
                "timesheet_ids": updated_ids,
            },
        )
        await self.session.commit()

        logger.info(
            "Backfill complete: %d updated, %d skipped, %d errors of %d timesheets",
            result.updated,
            result.skipped,
            result.errors,
            result.total,
        )
        return result
