# ruff: noqa: B008, TC003
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Query

from cleanpay.schemas.payroll import SemiMonthlyPeriodResponse
from cleanpay.services import periods as periods_service
from cleanpay.services.timeutil import to_epoch_ms

periods_router = APIRouter(prefix="/payroll/periods", tags=["periods"])


def _build_period_response(period: periods_service.SemiMonthlyPeriod) -> SemiMonthlyPeriodResponse:
    return SemiMonthlyPeriodResponse(
        period_id=period.period_id,
        period_start=to_epoch_ms(period.period_start),
        period_end=to_epoch_ms(period.period_end),
        pay_date=period.pay_date,
    )


@periods_router.get("/semi-monthly", response_model=SemiMonthlyPeriodResponse)
async def get_semi_monthly_period(
    work_date: date | None = Query(default=None, alias="workDate"),
    pay_date: date | None = Query(default=None, alias="payDate"),
) -> SemiMonthlyPeriodResponse:
    """Return the semi-monthly period containing ``workDate`` or paid on ``payDate``.

    Defaults to the period containing today.
    """
    if pay_date is not None:
        period = periods_service.period_for_pay_date(pay_date)
    else:
        period = periods_service.period_for_work_date(work_date or date.today())
    return _build_period_response(period)
