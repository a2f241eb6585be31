"""Booking domain models for Courtside."""

from __future__ import annotations

from decimal import Decimal

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.value_objects import ZERO

MAX_MODIFICATIONS = 2


class Booking(models.Model):
    """A claimed time interval on a court."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        CONFIRMED = "confirmed", _("Confirmed")
        CANCELLED = "cancelled", _("Cancelled")
        COMPLETED = "completed", _("Completed")

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", _("Awaiting payment")
        PAID = "paid", _("Paid")
        FAILED = "failed", _("Payment failed")
        REFUNDED = "refunded", _("Refunded")

    ACTIVE_STATUSES = (Status.PENDING, Status.CONFIRMED)

    id = models.CharField(primary_key=True, max_length=26, editable=False)
    account = models.ForeignKey(
        "accounts.Account",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    court = models.ForeignKey(
        "courts.Court",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    start_at = models.DateTimeField()
    end_at = models.DateTimeField()
    duration_hours = models.PositiveSmallIntegerField()
    court_count = models.PositiveSmallIntegerField(default=1)
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text=_("Price at the last price-affecting change, before discount."),
    )
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    promo_code = models.ForeignKey(
        "promotions.PromoCode",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="bookings",
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    modification_count = models.PositiveSmallIntegerField(default=0)
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    cancelled_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-start_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_at__gt=models.F("start_at")),
                name="booking_valid_interval",
            ),
            models.CheckConstraint(
                condition=models.Q(modification_count__lte=MAX_MODIFICATIONS),
                name="booking_modification_count_max_2",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gte=0) & models.Q(discount_amount__gte=0),
                name="booking_amounts_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["court", "start_at", "end_at"], name="booking_court_interval"),
            models.Index(fields=["account", "status"], name="booking_account_status"),
            models.Index(fields=["status", "end_at"], name="booking_status_end"),
        ]

    def __str__(self) -> str:
        return f"Booking {self.id} on {self.court_id} at {self.start_at:%Y-%m-%d %H:%M}"

    @property
    def amount_due(self) -> Decimal:
        return max(self.amount - self.discount_amount, ZERO)

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES
