"""Booking price calculation."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from apps.promotions.models import PromoCode
from apps.promotions.services import compute_discount
from shared.domain.value_objects import ZERO, quantize_money


@dataclass(frozen=True)
class Quote:
    amount: Decimal
    discount_amount: Decimal = ZERO

    @property
    def amount_due(self) -> Decimal:
        return max(self.amount - self.discount_amount, ZERO)


def price(rate: Decimal, duration_hours: int, court_count: int = 1) -> Decimal:
    """``rate * hours * courts`` rounded to cents."""
    return quantize_money(Decimal(rate) * Decimal(duration_hours) * Decimal(court_count))


def quote(rate: Decimal, duration_hours: int, court_count: int = 1, promo: PromoCode | None = None) -> Quote:
    amount = price(rate, duration_hours, court_count)
    discount = compute_discount(promo, amount) if promo is not None else ZERO
    return Quote(amount=amount, discount_amount=discount)
