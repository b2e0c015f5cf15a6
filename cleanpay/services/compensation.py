from __future__ import annotations

from dataclasses import dataclass

from cleanpay.models.enums import RateType
from cleanpay.schemas.rates import RateSnapshot, snapshot_type
from cleanpay.services.money import round2


@dataclass(frozen=True)
class Compensation:
    """Pay for one timesheet (or draft) under a single rate."""

    hours: float
    earnings: float
    applied_rate: float


def positive_quantity(value: float | None) -> float:
    """Absent or non-positive quantities count as zero."""
    if value is None or value <= 0:
        return 0.0
    return float(value)


def compute_compensation(snapshot: RateSnapshot, hours: float | None, units: float | None) -> Compensation | None:
    """Compute earnings for the given quantities.

    Returns ``None`` when the work contributes nothing: neither hours nor units
    are positive, or an hourly rate meets zero hours.
    """
    worked_hours = positive_quantity(hours)
    worked_units = positive_quantity(units)
    if worked_hours <= 0 and worked_units <= 0:
        return None

    amount = snapshot.amount
    match snapshot_type(snapshot):
        case RateType.PER_VISIT:
            earnings = round2(amount * (worked_units or 1))
        case RateType.MONTHLY:
            earnings = round2(amount)
        case _:
            if worked_hours <= 0:
                return None
            earnings = round2(worked_hours * amount)

    return Compensation(hours=worked_hours, earnings=earnings, applied_rate=amount)
