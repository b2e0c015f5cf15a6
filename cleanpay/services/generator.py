from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from cleanpay.exceptions import InvalidArgumentError
from cleanpay.models.enums import AuditAction, AuditEntityType, RateType, TimesheetSource
from cleanpay.models.timesheet import Timesheet
from cleanpay.schemas.rates import snapshot_to_document, snapshot_type
from cleanpay.services.audit import write_audit_log
from cleanpay.services.timeutil import ensure_utc

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from cleanpay.services.scanner import DraftTimesheet

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    created: int = 0
    skipped: int = 0


def _validate_drafts(drafts: Sequence[DraftTimesheet]) -> None:
    for draft in drafts:
        if draft.rate_snapshot is None:
            msg = f"Draft for employee {draft.employee_id} on job {draft.job_id} has no rate snapshot"
            raise InvalidArgumentError(msg)
        if snapshot_type(draft.rate_snapshot) == RateType.MONTHLY:
            msg = (
                f"Draft for employee {draft.employee_id} on job {draft.job_id} has a monthly rate; "
                "monthly assignments cannot be generated as timesheets"
            )
            raise InvalidArgumentError(msg)


class TimesheetGenerator:
    """Persists draft timesheets produced by a period scan.

    Generation is keyed by ``(employee_id, job_id)``: a pair that already has a
    ``payroll_prep`` timesheet is skipped, so re-running a scan over an
    overlapping period never duplicates pay.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def generate(
        self,
        drafts: Sequence[DraftTimesheet],
        *,
        actor: str,
        period_id: str | None = None,
    ) -> GenerationResult:
        _validate_drafts(drafts)
        result = GenerationResult()
        if not drafts:
            return result

        existing = await self._existing_keys(drafts)
        created_ids: list[str] = []

        try:
            for draft in drafts:
                key = (draft.employee_id, draft.job_id)
                if key in existing:
                    logger.warning(
                        "Timesheet already generated for employee %s on job %s, skipping",
                        draft.employee_id,
                        draft.job_id,
                    )
                    result.skipped += 1
                    continue
                existing.add(key)

                start = ensure_utc(draft.service_date)
                end = start + timedelta(hours=draft.hours) if draft.hours else start
                timesheet = Timesheet(
                    employee_id=draft.employee_id,
                    job_id=draft.job_id,
                    start=start,
                    end=end,
                    hours=draft.hours,
                    units=draft.units,
                    rate_snapshot=snapshot_to_document(draft.rate_snapshot),
                    approved_in_run_id=None,
                    source=TimesheetSource.PAYROLL_PREP.value,
                    period_id=period_id,
                )
                self.session.add(timesheet)
                created_ids.append(timesheet.id)
                result.created += 1

            await self.session.flush()
            await write_audit_log(
                self.session,
                actor_id=actor,
                entity_type=AuditEntityType.TIMESHEET_BATCH,
                entity_id=period_id or "adhoc",
                action=AuditAction.GENERATE,
                after_json={
                    "created": result.created,
                    "skipped": result.skipped,
                    "timesheet_ids": created_ids,
                },
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Generated %d timesheets (%d skipped) for period %s", result.created, result.skipped, period_id)
        return result

    async def _existing_keys(self, drafts: Sequence[DraftTimesheet]) -> set[tuple[str, str]]:
        job_ids = sorted({draft.job_id for draft in drafts})
        query = select(Timesheet.employee_id, Timesheet.job_id).where(
            col(Timesheet.source) == TimesheetSource.PAYROLL_PREP.value,
            col(Timesheet.job_id).in_(job_ids),
        )
        rows = await self.session.execute(query)
        return {(employee_id, job_id) for employee_id, job_id in rows.all()}
