# ruff: noqa: TC003
"""Period scanning: turn completed jobs of a period into draft timesheets."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from cleanpay.config import Settings, get_settings
from cleanpay.exceptions import InvalidArgumentError
from cleanpay.models.enums import RateType
from cleanpay.models.job import ServiceJob
from cleanpay.models.user import UserProfile
from cleanpay.schemas.rates import RateSnapshot, snapshot_type
from cleanpay.services.money import round2
from cleanpay.services.timeutil import ensure_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cleanpay.services.rates import RateResolver

logger = logging.getLogger(__name__)

OWNER_ROLE = "owner"


@dataclass
class DraftTimesheet:
    """A timesheet candidate for one employee on one job."""

    employee_id: str
    job_id: str
    service_date: datetime
    rate_snapshot: RateSnapshot
    hours: float | None = None
    units: float | None = None
    location_id: str | None = None


@dataclass
class MissingRate:
    employee_id: str
    job_id: str
    location_id: str | None = None


@dataclass
class ScanResult:
    """Outcome of scanning one period. Never persisted."""

    jobs: list[str] = field(default_factory=list)
    drafts: list[DraftTimesheet] = field(default_factory=list)
    total_jobs: int = 0
    total_assignments: int = 0
    missing_rates: list[MissingRate] = field(default_factory=list)


def job_status(job: ServiceJob) -> str:
    """Lowercased status, falling back to the legacy status column."""
    return (job.status or job.status_legacy or "").strip().lower()


def assigned_employee_ids(job: ServiceJob) -> list[str]:
    """Employee ids assigned to a job, de-duplicated in assignment order."""
    if job.assigned_employees:
        raw = list(job.assigned_employees)
    else:
        raw = [entry.get("uid") for entry in job.employee_assignments or [] if isinstance(entry, dict)]

    seen: set[str] = set()
    ids: list[str] = []
    for employee_id in raw:
        if isinstance(employee_id, str) and employee_id and employee_id not in seen:
            seen.add(employee_id)
            ids.append(employee_id)
    return ids


def job_hours(job: ServiceJob) -> float:
    minutes = job.duration_minutes or job.estimated_duration_minutes or 0
    if minutes <= 0:
        return 0.0
    return round2(minutes / 60)


async def is_owner(session: AsyncSession, employee_id: str) -> bool:
    """Owners are paid outside automated payroll."""
    result = await session.execute(select(UserProfile.role).where(col(UserProfile.id) == employee_id))
    return (result.scalar_one_or_none() or "").lower() == OWNER_ROLE


class PeriodScanner:
    """Read-only scan of a pay period's completed jobs."""

    def __init__(self, session: AsyncSession, resolver: RateResolver, settings: Settings | None = None) -> None:
        self.session = session
        self.resolver = resolver
        self.settings = settings or get_settings()
        self._owner_cache: dict[str, bool] = {}

    async def scan(self, period_start: datetime, period_end: datetime) -> ScanResult:
        period_start = ensure_utc(period_start)
        period_end = ensure_utc(period_end)
        if period_start >= period_end:
            raise InvalidArgumentError("periodStart must be before periodEnd")

        statuses = {status.lower() for status in self.settings.payroll_job_statuses}
        result = ScanResult()

        for job in await self._jobs_in_period(period_start, period_end):
            if job_status(job) not in statuses:
                continue
            result.jobs.append(job.id)
            result.total_jobs += 1

            for employee_id in assigned_employee_ids(job):
                if self.settings.exclude_owner_assignments and await self._is_owner(employee_id):
                    logger.debug("Skipping owner %s on job %s", employee_id, job.id)
                    continue
                if await self._classify(result, job, employee_id):
                    result.total_assignments += 1

        logger.info(
            "Scanned %d jobs (%d assignments): %d drafts, %d missing rates",
            result.total_jobs,
            result.total_assignments,
            len(result.drafts),
            len(result.missing_rates),
        )
        return result

    async def _jobs_in_period(self, period_start: datetime, period_end: datetime) -> list[ServiceJob]:
        query = (
            select(ServiceJob)
            .where(
                col(ServiceJob.service_date) >= period_start,
                col(ServiceJob.service_date) < period_end,
            )
            .order_by(col(ServiceJob.service_date), col(ServiceJob.id))
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _classify(self, result: ScanResult, job: ServiceJob, employee_id: str) -> bool:
        """Add a draft or a missing rate for the assignment.

        Returns False for an hourly assignment on a job with no positive
        duration, which is neither drafted nor counted.
        """
        service_date = ensure_utc(job.service_date)
        snapshot = await self.resolver.resolve_rate(
            employee_id,
            service_date,
            location_id=job.location_id,
            client_profile_id=job.client_profile_id,
        )
        if snapshot is None:
            result.missing_rates.append(
                MissingRate(employee_id=employee_id, job_id=job.id, location_id=job.location_id)
            )
            return True

        draft = DraftTimesheet(
            employee_id=employee_id,
            job_id=job.id,
            service_date=service_date,
            rate_snapshot=snapshot,
            location_id=job.location_id,
        )
        match snapshot_type(snapshot):
            case RateType.HOURLY:
                draft.hours = job_hours(job)
                if draft.hours <= 0:
                    logger.warning("Skipping employee %s on job %s: no positive duration", employee_id, job.id)
                    return False
            case RateType.PER_VISIT:
                draft.units = 1
        result.drafts.append(draft)
        return True

    async def _is_owner(self, employee_id: str) -> bool:
        if employee_id not in self._owner_cache:
            self._owner_cache[employee_id] = await is_owner(self.session, employee_id)
        return self._owner_cache[employee_id]
