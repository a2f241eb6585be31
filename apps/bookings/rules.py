"""Time-relative booking rules."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from shared.domain.exceptions import WindowViolationError
from shared.infrastructure.settings import engine_setting


def ensure_advance_buffer(start: datetime, now: datetime) -> None:
    """A booking must start at least ADVANCE_BOOKING_MINUTES from now."""
    minutes = int(engine_setting("ADVANCE_BOOKING_MINUTES"))
    earliest = now + timedelta(minutes=minutes)
    if start < earliest:
        raise WindowViolationError(
            f"Bookings must start at least {minutes} minutes from now",
            start=start,
            earliest_start=earliest,
        )


def is_within_change_window(start: datetime, now: datetime) -> bool:
    return start - now >= timedelta(hours=int(engine_setting("CHANGE_CUTOFF_HOURS")))


def ensure_change_window(start: datetime, now: datetime, action: str) -> None:
    if not is_within_change_window(start, now):
        hours = int(engine_setting("CHANGE_CUTOFF_HOURS"))
        raise WindowViolationError(
            f"Bookings cannot be {action} less than {hours} hours before start",
            start=start,
            cutoff_hours=hours,
        )


def refund_fraction(start: datetime, now: datetime) -> Decimal:
    """Share of the paid amount returned on cancellation."""
    if start - now >= timedelta(hours=int(engine_setting("FULL_REFUND_HOURS"))):
        return Decimal("1")
    return Decimal(str(engine_setting("PARTIAL_REFUND_RATE")))
