# ruff: noqa: TC003
"""Effective-rate resolution.

The effective rate of an employee at instant T is the newest rate record whose
``effective_date`` does not exceed T. Rate records are read exactly once per
``(employee, second, scope)`` within one invocation through :class:`RateCache`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from cleanpay.config import Settings, get_settings
from cleanpay.exceptions import InvalidArgumentError
from cleanpay.models.enums import RateType
from cleanpay.models.rate import EmployeeRate
from cleanpay.schemas.rates import HourlyRate, MonthlyRate, PerVisitRate, RateSnapshot
from cleanpay.services.timeutil import ensure_utc, epoch_seconds

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql import Select

logger = logging.getLogger(__name__)

RateCacheKey = tuple[str, int, str | None, str | None]


def _positive(value: float | None) -> float | None:
    if value is None or value <= 0:
        return None
    return float(value)


def normalize_rate_record(rate: EmployeeRate) -> RateSnapshot | None:
    """Map a stored rate record to a :data:`RateSnapshot`.

    Records without ``rate_type`` predate rate types and are hourly when they
    carry an ``hourly_rate``. A record whose amount for its type is missing or
    zero yields ``None``.
    """
    if rate.rate_type is None:
        amount = _positive(rate.hourly_rate)
        return HourlyRate(amount=amount) if amount is not None else None

    match rate.rate_type:
        case RateType.HOURLY:
            amount = _positive(rate.hourly_rate)
            return HourlyRate(amount=amount) if amount is not None else None
        case RateType.PER_VISIT:
            amount = _positive(rate.per_visit_rate)
            return PerVisitRate(amount=amount) if amount is not None else None
        case RateType.MONTHLY:
            amount = _positive(rate.monthly_rate)
            if amount is None:
                return None
            pay_day = rate.monthly_pay_day if rate.monthly_pay_day and 1 <= rate.monthly_pay_day <= 31 else None
            return MonthlyRate(amount=amount, monthly_pay_day=pay_day)
        case _:
            logger.warning("Rate %s has unknown rate type %r", rate.id, rate.rate_type)
            return None


class RateCache:
    """Memo of resolved rates for one invocation. Misses are cached too."""

    def __init__(self) -> None:
        self._entries: dict[RateCacheKey, RateSnapshot | None] = {}

    def __contains__(self, key: RateCacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: RateCacheKey) -> RateSnapshot | None:
        return self._entries.get(key)

    def put(self, key: RateCacheKey, snapshot: RateSnapshot | None) -> None:
        self._entries[key] = snapshot


class RateResolver:
    """Resolves the effective rate of an employee at an instant."""

    def __init__(
        self,
        session: AsyncSession,
        cache: RateCache | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.cache = cache if cache is not None else RateCache()
        self.settings = settings or get_settings()

    async def resolve_rate(
        self,
        employee_id: str,
        as_of: datetime,
        *,
        location_id: str | None = None,
        client_profile_id: str | None = None,
    ) -> RateSnapshot | None:
        if not employee_id:
            raise InvalidArgumentError("employeeId is required to resolve a rate")

        as_of = ensure_utc(as_of)
        key: RateCacheKey = (employee_id, epoch_seconds(as_of), location_id, client_profile_id)
        if key in self.cache:
            return self.cache.get(key)

        record = await self._find_effective_record(employee_id, as_of, location_id, client_profile_id)
        snapshot = normalize_rate_record(record) if record is not None else None
        if snapshot is not None:
            self._warn_if_low(employee_id, snapshot)
        self.cache.put(key, snapshot)
        return snapshot

    async def _find_effective_record(
        self,
        employee_id: str,
        as_of: datetime,
        location_id: str | None,
        client_profile_id: str | None,
    ) -> EmployeeRate | None:
        """Try location scope, then client scope, then any rate of the employee.

        Dated records are searched across every scope before legacy undated ones.
        """
        base = select(EmployeeRate).where(col(EmployeeRate.employee_id) == employee_id)
        scopes: list[Select] = []
        if location_id:
            scopes.append(base.where(col(EmployeeRate.location_id) == location_id))
        if client_profile_id:
            scopes.append(base.where(col(EmployeeRate.client_profile_id) == client_profile_id))
        scopes.append(base)

        for query in scopes:
            record = await self._first(self._dated(query, as_of))
            if record is not None:
                return record
        for query in scopes:
            record = await self._first(self._legacy(query, as_of))
            if record is not None:
                return record
        return None

    @staticmethod
    def _dated(query: Select, as_of: datetime) -> Select:
        return query.where(
            col(EmployeeRate.effective_date).is_not(None),
            col(EmployeeRate.effective_date) <= as_of,
        ).order_by(
            col(EmployeeRate.effective_date).desc(),
            col(EmployeeRate.created_at).desc(),
            col(EmployeeRate.id).desc(),
        )

    @staticmethod
    def _legacy(query: Select, as_of: datetime) -> Select:
        # Records created before effective dates existed take effect at creation.
        return query.where(
            col(EmployeeRate.effective_date).is_(None),
            col(EmployeeRate.created_at) <= as_of,
        ).order_by(col(EmployeeRate.created_at).desc(), col(EmployeeRate.id).desc())

    async def _first(self, query: Select) -> EmployeeRate | None:
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    def _warn_if_low(self, employee_id: str, snapshot: RateSnapshot) -> None:
        minimum = self.settings.min_expected_rates.get(snapshot.type)
        if minimum is not None and snapshot.amount < minimum:
            logger.warning(
                "Rate for employee %s is unusually low: %s %.2f (expected at least %.2f)",
                employee_id,
                snapshot.type,
                snapshot.amount,
                minimum,
            )
