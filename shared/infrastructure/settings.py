"""Access to the ``COURTSIDE`` engine settings with defaults."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.conf import settings  # type: ignore

DEFAULTS: dict[str, Any] = {
    "ADVANCE_BOOKING_MINUTES": 30,
    "CHANGE_CUTOFF_HOURS": 2,
    "FULL_REFUND_HOURS": 24,
    "PARTIAL_REFUND_RATE": Decimal("0.5"),
    "MAX_BOOKING_HOURS": 8,
    "MAX_COURTS_PER_BOOKING": 4,
    "LOCK_TIMEOUT_SECONDS": 5.0,
    "STATEMENT_TIMEOUT_MS": 10_000,
    "MAX_LOCK_ATTEMPTS": 3,
    "CONFIRMATION_CASHBACK_RATE": Decimal("0.08"),
    "CURRENCY": "USD",
    # (minimum purchase amount, bonus points), highest tier first
    "PURCHASE_BONUS_TIERS": [
        (Decimal("50"), 100),
        (Decimal("25"), 50),
        (Decimal("10"), 25),
    ],
    # booking count -> milestone task id
    "BOOKING_MILESTONES": {
        5: "multiple-bookings",
        10: "booking-master",
        25: "booking-expert",
    },
    "FIRST_BOOKING_TASK": "first-booking",
    "REPEAT_BOOKING_TASK": "complete-booking",
    "FIRST_CREDIT_PURCHASE_TASK": "credit-purchase",
    "EARLY_BIRD_TASK": "early-booking",
    "EARLY_BIRD_HOURS": (6, 9),
    "PEAK_HOUR_TASK": "peak-booking",
    "PEAK_HOURS": (18, 21),
}


def engine_setting(name: str) -> Any:
    overrides = getattr(settings, "COURTSIDE", {}) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
