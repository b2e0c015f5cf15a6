# ruff: noqa: TC003
"""Semi-monthly pay periods.

Work from the 1st to the 15th is paid on the 15th; work from the 16th to the
end of the month is paid on the 1st of the following month. Period bounds are
half-open instants in the payroll timezone, and a period is identified by its
pay date (``YYYY-MM-DD``).
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from cleanpay.config import get_settings
from cleanpay.exceptions import InvalidArgumentError

_MID_MONTH_DAY = 15


@dataclass(frozen=True)
class SemiMonthlyPeriod:
    period_id: str
    period_start: datetime
    period_end: datetime
    pay_date: date


def _payroll_tz(tz_name: str | None) -> ZoneInfo:
    return ZoneInfo(tz_name or get_settings().payroll_timezone)


def _local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def _first_of_next_month(day: date) -> date:
    last = calendar.monthrange(day.year, day.month)[1]
    return date(day.year, day.month, last) + timedelta(days=1)


def _first_of_previous_month(day: date) -> date:
    return (day.replace(day=1) - timedelta(days=1)).replace(day=1)


def _build(first_day: date, last_day: date, pay_date: date, tz: ZoneInfo) -> SemiMonthlyPeriod:
    return SemiMonthlyPeriod(
        period_id=pay_date.isoformat(),
        period_start=_local_midnight(first_day, tz),
        period_end=_local_midnight(last_day + timedelta(days=1), tz),
        pay_date=pay_date,
    )


def period_for_work_date(work_date: date, tz_name: str | None = None) -> SemiMonthlyPeriod:
    """Return the semi-monthly period that contains ``work_date``."""
    tz = _payroll_tz(tz_name)
    if work_date.day <= _MID_MONTH_DAY:
        first_day = work_date.replace(day=1)
        mid = work_date.replace(day=_MID_MONTH_DAY)
        return _build(first_day, mid, mid, tz)

    first_day = work_date.replace(day=_MID_MONTH_DAY + 1)
    next_month = _first_of_next_month(work_date)
    return _build(first_day, next_month - timedelta(days=1), next_month, tz)


def period_for_pay_date(pay_date: date, tz_name: str | None = None) -> SemiMonthlyPeriod:
    """Return the period paid on ``pay_date``, which must be the 1st or the 15th."""
    tz = _payroll_tz(tz_name)
    if pay_date.day == _MID_MONTH_DAY:
        return _build(pay_date.replace(day=1), pay_date, pay_date, tz)
    if pay_date.day == 1:
        previous = _first_of_previous_month(pay_date)
        return _build(previous.replace(day=_MID_MONTH_DAY + 1), pay_date - timedelta(days=1), pay_date, tz)

    msg = f"Invalid pay date {pay_date.isoformat()}: semi-monthly pay dates must be the 1st or 15th"
    raise InvalidArgumentError(msg)


def previous_period(period: SemiMonthlyPeriod, tz_name: str | None = None) -> SemiMonthlyPeriod:
    if period.pay_date.day == _MID_MONTH_DAY:
        return period_for_pay_date(period.pay_date.replace(day=1), tz_name)
    previous = _first_of_previous_month(period.pay_date)
    return period_for_pay_date(previous.replace(day=_MID_MONTH_DAY), tz_name)


def next_period(period: SemiMonthlyPeriod, tz_name: str | None = None) -> SemiMonthlyPeriod:
    if period.pay_date.day == _MID_MONTH_DAY:
        return period_for_pay_date(_first_of_next_month(period.pay_date), tz_name)
    return period_for_pay_date(period.pay_date.replace(day=_MID_MONTH_DAY), tz_name)
