"""Domain services for booking workflows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from django.db.models import Q  # type: ignore

from shared.infrastructure.locks import lock_queryset_if_possible

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .models import Booking


@dataclass(frozen=True)
class ConflictReport:
    conflict: bool
    conflicting_bookings: list["Booking"] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return not self.conflict

    def owned_by(self, account_id: str) -> bool:
        """True if any conflicting booking belongs to ``account_id``."""
        return any(booking.account_id == account_id for booking in self.conflicting_bookings)


def check_conflict(
    court_id: str,
    start: datetime,
    end: datetime,
    *,
    exclude_booking_id: str | None = None,
) -> ConflictReport:
    """
    Find active bookings on the court overlapping ``[start, end)``.

    Touching intervals do not overlap. Inside a transaction the matching rows
    are locked; callers that write afterwards must hold the court lock.
    """

    from .models import Booking  # Local import to prevent circular dependency

    overlapping_filter = Q(start_at__lt=end) & Q(end_at__gt=start)

    bookings_qs = Booking.objects.filter(
        court_id=court_id,
        status__in=Booking.ACTIVE_STATUSES,
    ).filter(overlapping_filter)

    if exclude_booking_id is not None:
        bookings_qs = bookings_qs.exclude(pk=exclude_booking_id)

    conflicting = list(lock_queryset_if_possible(bookings_qs).order_by("start_at"))
    return ConflictReport(conflict=bool(conflicting), conflicting_bookings=conflicting)
