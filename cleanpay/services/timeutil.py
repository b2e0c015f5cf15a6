from __future__ import annotations

from datetime import UTC, datetime, timedelta

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def from_epoch_ms(millis: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=millis)


def to_epoch_ms(value: datetime) -> int:
    return (ensure_utc(value) - _EPOCH) // timedelta(milliseconds=1)


def epoch_seconds(value: datetime) -> int:
    """Whole seconds since the epoch, truncated toward the past."""
    return (ensure_utc(value) - _EPOCH) // timedelta(seconds=1)


def period_id_for(start: datetime, end: datetime) -> str:
    """Default id for an ad-hoc period: ``"<startMs>-<endMs>"``."""
    return f"{to_epoch_ms(start)}-{to_epoch_ms(end)}"
