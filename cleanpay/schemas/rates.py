"""Rate snapshot variants embedded in timesheets and scan drafts."""

from __future__ import annotations

import math
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cleanpay.models.enums import RateType


class _SnapshotBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    amount: float = Field(ge=0)


class HourlyRate(_SnapshotBase):
    """Paid per hour worked."""

    type: Literal["hourly"] = "hourly"


class PerVisitRate(_SnapshotBase):
    """Paid a flat amount per visit (unit)."""

    type: Literal["per_visit"] = "per_visit"


class MonthlyRate(_SnapshotBase):
    """Salaried; cannot be turned into a discrete timesheet."""

    type: Literal["monthly"] = "monthly"
    monthly_pay_day: int | None = Field(default=None, ge=1, le=31)


RateSnapshot = Annotated[HourlyRate | PerVisitRate | MonthlyRate, Field(discriminator="type")]


def snapshot_type(snapshot: RateSnapshot) -> RateType:
    return RateType(snapshot.type)


def snapshot_to_document(snapshot: RateSnapshot) -> dict[str, Any]:
    """Serialize a snapshot to the stored ``{type, amount, monthlyPayDay?}`` shape."""
    return snapshot.model_dump(by_alias=True, exclude_none=True)


def _snapshot_amount(raw: dict[str, Any]) -> float | None:
    value = raw.get("amount") or raw.get("hourlyRate")
    if isinstance(value, bool) or not isinstance(value, int | float | str):
        return None
    try:
        amount = float(value)
    except ValueError:
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def parse_rate_snapshot(raw: dict[str, Any] | None) -> RateSnapshot | None:
    """Parse a stored snapshot, or return ``None`` if it carries no usable rate.

    The amount is read from ``amount`` and falls back to ``hourlyRate``, the
    only field of snapshots written before rate types existed. Types other
    than ``per_visit`` and ``monthly`` are read as hourly.
    """
    if not raw:
        return None
    amount = _snapshot_amount(raw)
    if amount is None:
        return None

    match raw.get("type"):
        case RateType.PER_VISIT:
            return PerVisitRate(amount=amount)
        case RateType.MONTHLY:
            pay_day = raw.get("monthlyPayDay")
            if not isinstance(pay_day, int) or isinstance(pay_day, bool) or not 1 <= pay_day <= 31:
                pay_day = None
            return MonthlyRate(amount=amount, monthly_pay_day=pay_day)
        case _:
            return HourlyRate(amount=amount)
