"""Tests for promo code validation and discounts."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase

from apps.promotions.models import PromoCode
from apps.promotions.services import compute_discount, get_valid_promo, record_promo_use
from shared.domain.exceptions import ValidationError
from shared.infrastructure.clock import FixedClock


class PromoCodeTests(TestCase):
    def setUp(self) -> None:
        self.clock = FixedClock()
        self.now = self.clock.now()

    def _promo(self, **overrides) -> PromoCode:
        fields = {
            "code": "summer10",
            "discount_type": PromoCode.DiscountType.PERCENTAGE,
            "discount_value": Decimal("10"),
        }
        fields.update(overrides)
        return PromoCode.objects.create(**fields)

    def test_codes_are_case_insensitive(self) -> None:
        self._promo()
        self.assertEqual(get_valid_promo(" Summer10 ", self.now).code, "SUMMER10")

    def test_percentage_and_fixed_discounts(self) -> None:
        percentage = self._promo()
        fixed = self._promo(code="FLAT5", discount_type=PromoCode.DiscountType.FIXED, discount_value=Decimal("5"))

        self.assertEqual(compute_discount(percentage, Decimal("24.00")), Decimal("2.40"))
        self.assertEqual(compute_discount(fixed, Decimal("24.00")), Decimal("5.00"))

    def test_discount_is_capped_at_price(self) -> None:
        fixed = self._promo(code="BIG", discount_type=PromoCode.DiscountType.FIXED, discount_value=Decimal("50"))
        self.assertEqual(compute_discount(fixed, Decimal("24.00")), Decimal("24.00"))

    def test_invalid_codes_are_rejected(self) -> None:
        self._promo(code="OFF", is_active=False)
        self._promo(code="LATE", ends_at=self.now - timedelta(days=1))
        self._promo(code="EARLY", starts_at=self.now + timedelta(days=1))
        self._promo(code="USEDUP", max_uses=1, used_count=1)

        for code in ("OFF", "LATE", "EARLY", "USEDUP", "MISSING", ""):
            with self.subTest(code=code), self.assertRaises(ValidationError):
                get_valid_promo(code, self.now)

    def test_recording_a_use_exhausts_limited_code(self) -> None:
        promo = self._promo(max_uses=1)
        record_promo_use(promo)

        self.assertEqual(promo.used_count, 1)
        with self.assertRaises(ValidationError):
            get_valid_promo("SUMMER10", self.now)
