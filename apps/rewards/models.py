"""Task and reward models for Courtside."""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Task(models.Model):
    """Action that earns points when completed."""

    class TaskType(models.TextChoices):
        ONE_TIME = "one-time", _("One-time")
        REPEATABLE = "repeatable", _("Repeatable")
        DAILY = "daily", _("Daily")
        WEEKLY = "weekly", _("Weekly")

    id = models.SlugField(primary_key=True, max_length=64)
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=32)
    points_reward = models.PositiveIntegerField()
    task_type = models.CharField(max_length=20, choices=TaskType.choices)
    max_completions = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text=_("Completions allowed per window; empty for unlimited."),
    )
    is_active = models.BooleanField(default=True)
    order_priority = models.IntegerField(default=0)

    class Meta:
        verbose_name = _("Task")
        verbose_name_plural = _("Tasks")
        ordering = ["order_priority", "id"]

    def __str__(self) -> str:
        return self.name

    @property
    def completion_limit(self) -> int | None:
        if self.task_type == self.TaskType.ONE_TIME:
            return 1
        return self.max_completions


class TaskCompletion(models.Model):
    """Completion counter of one task for one account within one window."""

    account = models.ForeignKey(
        "accounts.Account",
        on_delete=models.PROTECT,
        related_name="task_completions",
    )
    task = models.ForeignKey(Task, on_delete=models.PROTECT, related_name="completions")
    window_key = models.CharField(max_length=16)
    completion_count = models.PositiveIntegerField(default=0)
    points_earned = models.PositiveIntegerField(default=0)
    first_completed_at = models.DateTimeField()
    last_completed_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Task completion")
        verbose_name_plural = _("Task completions")
        constraints = [
            models.UniqueConstraint(
                fields=["account", "task", "window_key"],
                name="task_completion_unique_window",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.task_id} x{self.completion_count} for {self.account_id} ({self.window_key})"


class TaskClaim(models.Model):
    """Reference supplied with a completion; makes resubmission idempotent."""

    account = models.ForeignKey(
        "accounts.Account",
        on_delete=models.PROTECT,
        related_name="task_claims",
    )
    task = models.ForeignKey(Task, on_delete=models.PROTECT, related_name="claims")
    reference = models.CharField(max_length=128)
    points_awarded = models.PositiveIntegerField()
    created_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Task claim")
        verbose_name_plural = _("Task claims")
        constraints = [
            models.UniqueConstraint(
                fields=["account", "task", "reference"],
                name="task_claim_unique_reference",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.task_id}:{self.reference} for {self.account_id}"


class Reward(models.Model):
    """Catalogue item bought with points."""

    class RewardType(models.TextChoices):
        DISCOUNT = "discount", _("Discount")
        VOUCHER = "voucher", _("Voucher")
        FEATURE = "feature", _("Feature")
        SERVICE = "service", _("Service")
        MERCHANDISE = "merchandise", _("Merchandise")

    id = models.SlugField(primary_key=True, max_length=64)
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=32)
    reward_type = models.CharField(max_length=20, choices=RewardType.choices)
    reward_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    points_cost = models.PositiveIntegerField()
    stock_quantity = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text=_("Remaining stock; empty for unlimited."),
    )
    duration_days = models.PositiveIntegerField(null=True, blank=True)
    available_until = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    order_priority = models.IntegerField(default=0)

    class Meta:
        verbose_name = _("Reward")
        verbose_name_plural = _("Rewards")
        ordering = ["order_priority", "id"]

    def __str__(self) -> str:
        return f"{self.name} ({self.points_cost} points)"

    def is_available_at(self, moment) -> bool:
        if not self.is_active:
            return False
        return self.available_until is None or moment <= self.available_until


class RewardRedemption(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        USED = "used", _("Used")
        EXPIRED = "expired", _("Expired")
        REFUNDED = "refunded", _("Refunded")

    id = models.CharField(primary_key=True, max_length=26, editable=False)
    account = models.ForeignKey(
        "accounts.Account",
        on_delete=models.PROTECT,
        related_name="redemptions",
    )
    reward = models.ForeignKey(Reward, on_delete=models.PROTECT, related_name="redemptions")
    points_spent = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    expires_at = models.DateTimeField(null=True, blank=True)
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Reward redemption")
        verbose_name_plural = _("Reward redemptions")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "expires_at"], name="redemption_status_expiry"),
        ]

    def __str__(self) -> str:
        return f"{self.reward_id} for {self.account_id} ({self.status})"
