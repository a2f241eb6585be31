"""Account and ledger models for Courtside."""

from __future__ import annotations

from decimal import Decimal

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Account(models.Model):
    """Cached credit and points balances of one account."""

    id = models.CharField(primary_key=True, max_length=64)
    credit_balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    points_balance = models.IntegerField(default=0)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Account")
        verbose_name_plural = _("Accounts")
        constraints = [
            models.CheckConstraint(
                condition=models.Q(credit_balance__gte=0),
                name="account_credit_balance_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(points_balance__gte=0),
                name="account_points_balance_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Account {self.id} ({self.credit_balance} credits, {self.points_balance} points)"


class EntryType(models.TextChoices):
    EARNED = "earned", _("Earned")
    SPENT = "spent", _("Spent")
    BONUS = "bonus", _("Bonus")
    PENALTY = "penalty", _("Penalty")
    REFUND = "refund", _("Refund")
    PURCHASE = "purchase", _("Purchase")


class EntrySource(models.TextChoices):
    BOOKING = "booking", _("Booking payment")
    BOOKING_MODIFICATION = "booking_modification", _("Booking modification")
    BOOKING_CANCELLATION = "booking_cancellation", _("Booking cancellation")
    BOOKING_CASHBACK = "booking_cashback", _("Booking cashback")
    TASK_COMPLETION = "task_completion", _("Task completion")
    REWARD_REDEMPTION = "reward_redemption", _("Reward redemption")
    CREDIT_PURCHASE = "credit_purchase", _("Credit purchase")
    CREDIT_PURCHASE_BONUS = "credit_purchase_bonus", _("Credit purchase bonus")
    PAYMENT_BONUS = "payment_bonus", _("Payment bonus")
    ADMIN_ADJUSTMENT = "admin_adjustment", _("Admin adjustment")


class LedgerEntryQuerySet(models.QuerySet):
    def delete(self):  # type: ignore[override]
        raise TypeError("Ledger entries are append-only")

    def update(self, **kwargs):  # type: ignore[override]
        raise TypeError("Ledger entries are append-only")


class LedgerEntry(models.Model):
    """Fields shared by both ledgers. Entries are immutable once written."""

    id = models.CharField(primary_key=True, max_length=26, editable=False)
    entry_type = models.CharField(max_length=20, choices=EntryType.choices)
    source = models.CharField(max_length=32, choices=EntrySource.choices)
    reference_id = models.CharField(max_length=64, blank=True, db_index=True)
    description = models.CharField(max_length=255)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField()

    objects = LedgerEntryQuerySet.as_manager()

    class Meta:
        abstract = True
        ordering = ["-created_at", "-id"]

    def save(self, *args, **kwargs):  # type: ignore
        if not self._state.adding:
            raise TypeError("Ledger entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):  # type: ignore
        raise TypeError("Ledger entries are append-only")


class CreditEntry(LedgerEntry):
    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="credit_entries")
    amount = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta(LedgerEntry.Meta):
        verbose_name = _("Credit entry")
        verbose_name_plural = _("Credit entries")
        indexes = [
            models.Index(fields=["account", "created_at"], name="credit_entry_account_created"),
            models.Index(fields=["source", "reference_id"], name="credit_entry_source_ref"),
        ]

    def __str__(self) -> str:
        return f"{self.entry_type} {self.amount} credits for {self.account_id}"


class PointsEntry(LedgerEntry):
    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="points_entries")
    amount = models.IntegerField()

    class Meta(LedgerEntry.Meta):
        verbose_name = _("Points entry")
        verbose_name_plural = _("Points entries")
        indexes = [
            models.Index(fields=["account", "created_at"], name="points_entry_account_created"),
            models.Index(fields=["source", "reference_id"], name="points_entry_source_ref"),
        ]

    def __str__(self) -> str:
        return f"{self.entry_type} {self.amount} points for {self.account_id}"
