"""Salaried pay for semi-monthly periods.

Employees on a monthly rate never get generated timesheets. Instead, each
period gets a base earning of half the monthly amount, reduced by a missed-day
deduction when scheduled workdays in the period were not completed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from sqlalchemy import delete, select
from sqlmodel import col

from cleanpay.config import Settings, get_settings
from cleanpay.models.enums import (
    AuditAction,
    AuditEntityType,
    PayrollEntryCategory,
    PayrollEntrySource,
    PayrollEntryType,
    RateType,
)
from cleanpay.models.job import ServiceJob
from cleanpay.models.payroll_entry import PayrollEntry
from cleanpay.schemas.rates import snapshot_type
from cleanpay.services.audit import write_audit_log
from cleanpay.services.money import round2
from cleanpay.services.scanner import assigned_employee_ids, is_owner, job_status
from cleanpay.services.timeutil import ensure_utc

if TYPE_CHECKING:
    from datetime import date

    from sqlalchemy.ext.asyncio import AsyncSession

    from cleanpay.services.periods import SemiMonthlyPeriod
    from cleanpay.services.rates import RateResolver

logger = logging.getLogger(__name__)

AUTOMATIC_SOURCES = (PayrollEntrySource.MONTHLY_BASE.value, PayrollEntrySource.MISSED_DAY.value)


@dataclass
class Attendance:
    """Scheduled and completed workdays of one salaried employee in a period."""

    monthly_amount: float
    scheduled_days: set[date] = field(default_factory=set)
    completed_days: set[date] = field(default_factory=set)

    @property
    def missed(self) -> int:
        return len(self.scheduled_days - self.completed_days)


@dataclass
class MonthlySyncResult:
    period_id: str
    created: int = 0
    removed: int = 0
    employee_ids: list[str] = field(default_factory=list)


class MonthlySalarySync:
    """Rebuilds the automatic salary entries of one semi-monthly period.

    Previous automatic entries of the period are deleted first, so running the
    sync again replaces rather than duplicates. Manual entries are untouched.
    """

    def __init__(self, session: AsyncSession, resolver: RateResolver, settings: Settings | None = None) -> None:
        self.session = session
        self.resolver = resolver
        self.settings = settings or get_settings()
        self._owner_cache: dict[str, bool] = {}

    async def sync(self, period: SemiMonthlyPeriod, *, actor: str) -> MonthlySyncResult:
        result = MonthlySyncResult(period_id=period.period_id)
        try:
            result.removed = await self._remove_automatic_entries(period.period_id)
            attendance = await self.collect_attendance(period)
            for employee_id, record in attendance.items():
                created = self._add_entries(period.period_id, employee_id, record)
                if created:
                    result.created += created
                    result.employee_ids.append(employee_id)
            await self.session.flush()

            await write_audit_log(
                self.session,
                actor_id=actor,
                entity_type=AuditEntityType.PAYROLL_PERIOD,
                entity_id=period.period_id,
                action=AuditAction.SYNC_MONTHLY,
                after_json={
                    "created": result.created,
                    "removed": result.removed,
                    "employee_ids": result.employee_ids,
                },
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Synced monthly salaries for period %s: %d entries created, %d replaced",
            period.period_id,
            result.created,
            result.removed,
        )
        return result

    async def collect_attendance(self, period: SemiMonthlyPeriod) -> dict[str, Attendance]:
        """Group the period's jobs by salaried assignee.

        Every assigned job counts as a scheduled workday; jobs with a payable
        status also count as completed. Days are local to the payroll timezone.
        """
        tz = ZoneInfo(self.settings.payroll_timezone)
        completed_statuses = {status.lower() for status in self.settings.payroll_job_statuses}
        query = (
            select(ServiceJob)
            .where(
                col(ServiceJob.service_date) >= ensure_utc(period.period_start),
                col(ServiceJob.service_date) < ensure_utc(period.period_end),
            )
            .order_by(col(ServiceJob.service_date), col(ServiceJob.id))
        )
        jobs = (await self.session.execute(query)).scalars().all()

        attendance: dict[str, Attendance] = {}
        for job in jobs:
            service_date = ensure_utc(job.service_date)
            day = service_date.astimezone(tz).date()
            completed = job_status(job) in completed_statuses

            for employee_id in assigned_employee_ids(job):
                if self.settings.exclude_owner_assignments and await self._is_owner(employee_id):
                    continue
                snapshot = await self.resolver.resolve_rate(
                    employee_id,
                    service_date,
                    location_id=job.location_id,
                    client_profile_id=job.client_profile_id,
                )
                if snapshot is None or snapshot_type(snapshot) != RateType.MONTHLY:
                    continue

                record = attendance.setdefault(employee_id, Attendance(monthly_amount=snapshot.amount))
                record.monthly_amount = max(record.monthly_amount, snapshot.amount)
                record.scheduled_days.add(day)
                if completed:
                    record.completed_days.add(day)
        return attendance

    def _add_entries(self, period_id: str, employee_id: str, record: Attendance) -> int:
        base = round2(record.monthly_amount / 2)
        if base <= 0:
            return 0

        self.session.add(
            PayrollEntry(
                period_id=period_id,
                employee_id=employee_id,
                type=PayrollEntryType.EARNING.value,
                category=PayrollEntryCategory.MONTHLY.value,
                amount=base,
                description="Base monthly salary for period",
                source=PayrollEntrySource.MONTHLY_BASE.value,
            )
        )

        scheduled = len(record.scheduled_days)
        missed = record.missed
        if scheduled == 0 or missed <= 0:
            return 1
        deduction = round2(base / scheduled * missed)
        if deduction <= 0:
            return 1

        completed = scheduled - missed
        plural = "" if missed == 1 else "s"
        self.session.add(
            PayrollEntry(
                period_id=period_id,
                employee_id=employee_id,
                type=PayrollEntryType.DEDUCTION.value,
                category=PayrollEntryCategory.MISSED_DAY.value,
                amount=-deduction,
                description=f"Missed {missed} scheduled workday{plural} ({completed}/{scheduled} completed)",
                source=PayrollEntrySource.MISSED_DAY.value,
            )
        )
        return 2

    async def _remove_automatic_entries(self, period_id: str) -> int:
        result = await self.session.execute(
            delete(PayrollEntry)
            .where(col(PayrollEntry.period_id) == period_id, col(PayrollEntry.source).in_(AUTOMATIC_SOURCES))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def _is_owner(self, employee_id: str) -> bool:
        if employee_id not in self._owner_cache:
            self._owner_cache[employee_id] = await is_owner(self.session, employee_id)
        return self._owner_cache[employee_id]
