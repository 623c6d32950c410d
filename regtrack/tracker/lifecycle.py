"""
Expiry window arithmetic for pending registrations.

A registration that is still pending 15 days after it was created is
considered expired. During the last 5 days before that point it is
"expiring soon" and operators should act on it.

Elapsed time is counted in whole days, rounding partial days up: a record
created two hours ago has already used one day of its window.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from regtrack.errors import InvalidTimestamp


EXPIRY_WINDOW_DAYS = 15
EXPIRING_SOON_DAYS = 5

_ONE_DAY = timedelta(days=1)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time as a timezone-aware UTC datetime."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """A clock frozen at a given instant. Used by tests and replays."""

    def __init__(self, instant: datetime) -> None:
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, **delta: float) -> None:
        self.instant = self.instant + timedelta(**delta)


class ExpiryBucket(enum.Enum):
    NORMAL = "normal"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Classification:
    """Where a pending registration sits inside its expiry window."""

    days_elapsed: int
    days_remaining: int
    days_expired_by: int
    bucket: ExpiryBucket

    def to_dict(self) -> dict:
        return {
            "days_elapsed": self.days_elapsed,
            "days_remaining": self.days_remaining,
            "days_expired_by": self.days_expired_by,
            "bucket": self.bucket.value,
        }


def days_elapsed(created_at: Optional[datetime], now: datetime) -> int:
    """Whole days since ``created_at``, partial days rounded up."""
    if created_at is None:
        raise InvalidTimestamp("created_at is required.")
    if not isinstance(created_at, datetime):
        raise InvalidTimestamp(f"created_at must be a datetime, got {type(created_at).__name__}.")
    try:
        delta = now - created_at
    except TypeError:
        # naive vs aware
        raise InvalidTimestamp(
            f"created_at {created_at.isoformat()} is not comparable with {now.isoformat()}."
        )
    if delta < timedelta(0):
        raise InvalidTimestamp(
            f"created_at {created_at.isoformat()} is later than {now.isoformat()}."
        )
    return math.ceil(delta / _ONE_DAY)


def classify(created_at: Optional[datetime], now: datetime) -> Classification:
    """
    Classify a pending registration by the time elapsed since creation.

    Boundaries:
        days_elapsed == 15 -> NORMAL (no days remain, but not yet past the window)
        days_elapsed == 16 -> EXPIRED
        days_remaining in 1..5 -> EXPIRING_SOON
    """
    elapsed = days_elapsed(created_at, now)
    remaining = max(0, EXPIRY_WINDOW_DAYS - elapsed)
    expired_by = max(0, elapsed - EXPIRY_WINDOW_DAYS)

    if elapsed > EXPIRY_WINDOW_DAYS:
        bucket = ExpiryBucket.EXPIRED
    elif 0 < remaining <= EXPIRING_SOON_DAYS:
        bucket = ExpiryBucket.EXPIRING_SOON
    else:
        bucket = ExpiryBucket.NORMAL

    return Classification(
        days_elapsed=elapsed,
        days_remaining=remaining,
        days_expired_by=expired_by,
        bucket=bucket,
    )


def expiry_date(created_at: datetime) -> datetime:
    """The instant a registration's window closes."""
    return created_at + timedelta(days=EXPIRY_WINDOW_DAYS)
