"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class BookingCreated(DomainEvent):
    """
    Event: A new booking was created

    Triggers:
    - Booking points and milestone tasks (after commit, best effort)
    - Court availability broadcast
    """
    booking_id: str
    account_id: str
    court_id: str
    start_at: datetime
    end_at: datetime
    amount_due: Decimal
    payment_method: str


@dataclass(kw_only=True)
class BookingModified(DomainEvent):
    booking_id: str
    account_id: str
    court_id: str
    previous_court_id: str
    start_at: datetime
    end_at: datetime
    amount_due: Decimal
    modification_count: int


@dataclass(kw_only=True)
class BookingConfirmed(DomainEvent):
    """
    Event: Booking confirmed (PENDING -> CONFIRMED)

    Triggers:
    - Confirmation cashback in credits
    """
    booking_id: str
    account_id: str
    court_id: str
    amount_due: Decimal


@dataclass(kw_only=True)
class BookingCancelled(DomainEvent):
    booking_id: str
    account_id: str
    court_id: str
    refund_amount: Decimal
    old_status: str  # Status before cancellation


@dataclass(kw_only=True)
class BookingCompleted(DomainEvent):
    booking_id: str
    account_id: str
    court_id: str
