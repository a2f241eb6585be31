"""Financial domain models for Courtside."""

from __future__ import annotations

from decimal import Decimal

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.value_objects import ZERO


class Payment(models.Model):
    """Payment record attached to a booking."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Awaiting payment")
        COMPLETED = "completed", _("Completed")
        FAILED = "failed", _("Failed")
        REFUNDED = "refunded", _("Refunded")

    class Method(models.TextChoices):
        INTERNAL_BALANCE = "internal_balance", _("Credits balance")
        EXTERNAL_PROOF = "external_proof", _("Bank transfer with proof")

    id = models.CharField(primary_key=True, max_length=26, editable=False)
    booking = models.OneToOneField(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payment",
    )
    account = models.ForeignKey(
        "accounts.Account",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    method = models.CharField(max_length=20, choices=Method.choices)
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Current amount due for the booking."),
    )
    settled_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Money received or debited, net of refunds."),
    )
    refunded_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="USD")
    proof_reference = models.CharField(max_length=255, null=True, blank=True)
    review_note = models.TextField(blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Payment")
        verbose_name_plural = _("Payments")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(settled_amount__gte=0) & models.Q(refunded_amount__gte=0),
                name="payment_amounts_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment {self.id} for booking {self.booking_id} ({self.status})"

    @property
    def outstanding_amount(self) -> Decimal:
        return max(self.amount - self.settled_amount, ZERO)

    @property
    def is_external(self) -> bool:
        return self.method == self.Method.EXTERNAL_PROOF


class PaymentEvent(models.Model):
    """Append-only audit of money movements on a payment."""

    class Kind(models.TextChoices):
        CHARGE = "charge", _("Charge")
        DELTA_CHARGE = "delta_charge", _("Modification charge")
        DELTA_REFUND = "delta_refund", _("Modification refund")
        PROOF_SUBMITTED = "proof_submitted", _("Proof submitted")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")
        REFUND = "refund", _("Cancellation refund")

    payment = models.ForeignKey(
        Payment,
        on_delete=models.PROTECT,
        related_name="events",
    )
    event = models.CharField(max_length=20, choices=Kind.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    payload = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Payment event")
        verbose_name_plural = _("Payment events")
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.event} for payment {self.payment_id}"


class CreditPackage(models.Model):
    """Bundle of credits sold for an external bank transfer."""

    id = models.SlugField(primary_key=True, max_length=64)
    name = models.CharField(max_length=120)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    credits = models.DecimalField(max_digits=12, decimal_places=2)
    bonus_credits = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveSmallIntegerField(default=0)

    class Meta:
        verbose_name = _("Credit package")
        verbose_name_plural = _("Credit packages")
        ordering = ["sort_order", "price"]

    def __str__(self) -> str:
        return self.name


class CreditPurchase(models.Model):
    """A credit package purchase awaiting or past administrative review."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending review")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")

    id = models.CharField(primary_key=True, max_length=26, editable=False)
    account = models.ForeignKey(
        "accounts.Account",
        on_delete=models.PROTECT,
        related_name="credit_purchases",
    )
    package = models.ForeignKey(
        CreditPackage,
        on_delete=models.PROTECT,
        related_name="purchases",
    )
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2)
    credits_amount = models.DecimalField(max_digits=12, decimal_places=2)
    bonus_credits = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    proof_reference = models.CharField(max_length=255)
    admin_notes = models.TextField(blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Credit purchase")
        verbose_name_plural = _("Credit purchases")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Purchase {self.id} of {self.package_id} by {self.account_id} ({self.status})"

    @property
    def total_credits(self) -> Decimal:
        return self.credits_amount + self.bonus_credits
