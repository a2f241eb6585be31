"""Promo code lookup, discount calculation and usage accounting."""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.db.models import F  # type: ignore

from shared.domain.exceptions import ValidationError
from shared.domain.value_objects import ZERO, quantize_money
from shared.infrastructure.locks import lock_queryset_if_possible

from .models import PromoCode

logger = structlog.get_logger(__name__)


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def get_valid_promo(code: str, now, *, lock: bool = False) -> PromoCode:
    """
    Return the promo code if it can be applied at ``now``.

    Raises ValidationError for unknown, inactive, expired or exhausted codes.
    With ``lock=True`` the row is locked for the rest of the transaction.
    """
    normalized = normalize_code(code)
    if not normalized:
        raise ValidationError("Promo code is required", field="promo_code")

    queryset = PromoCode.objects.filter(code=normalized)
    if lock:
        queryset = lock_queryset_if_possible(queryset)
    promo = queryset.first()
    if promo is None or not promo.is_valid_at(now):
        logger.info("promo_code_rejected", code=normalized)
        raise ValidationError("This promo code is invalid or has expired", code=normalized)
    return promo


def compute_discount(promo: PromoCode, price: Decimal) -> Decimal:
    """Discount for ``price``, never more than the price itself."""
    price = quantize_money(price)
    if promo.discount_type == PromoCode.DiscountType.PERCENTAGE:
        discount = price * promo.discount_value / Decimal("100")
    else:
        discount = promo.discount_value
    return quantize_money(min(max(discount, ZERO), price))


def record_promo_use(promo: PromoCode) -> None:
    """Consume one use; must run inside the booking creation transaction."""
    PromoCode.objects.filter(pk=promo.pk).update(used_count=F("used_count") + 1)
    promo.refresh_from_db(fields=["used_count"])
    logger.info("promo_code_used", code=promo.code, used_count=promo.used_count)
