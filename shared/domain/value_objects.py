"""
Common Value Objects

Value objects used across multiple apps:
- TimeRange: A half-open [start, end) interval on a court
- quantize_money: Rounding to the currency's minor unit
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from shared.domain.base import ValueObject

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def quantize_money(value) -> Decimal:
    """Round a monetary amount to two decimal places (half up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TimeRange(ValueObject):
    """
    Time range value object

    Represents the interval from start (inclusive) to end (exclusive).
    Used for reservations and availability checks.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start ({self.start}) must be before end ({self.end})")

    @classmethod
    def from_duration(cls, start: datetime, hours: int) -> 'TimeRange':
        return cls(start, start + timedelta(hours=hours))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def __str__(self):
        return f"{self.start.isoformat()} - {self.end.isoformat()}"

    def __repr__(self):
        return f"TimeRange({self.start!r}, {self.end!r})"
