"""Reward and task engine.

Task completions and reward redemptions move points through the ledger
store inside one unit of work per operation, locked on the account (and the
reward for finite stock). Automatic awards for bookings and purchases run
after the primary operation has committed and are idempotent by reference.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

import structlog
from django.utils import timezone  # type: ignore

from apps.accounts.ledger import POINTS, LedgerStore
from apps.accounts.models import EntrySource, EntryType
from apps.bookings.models import Booking
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    OutOfStockError,
    TaskLimitReachedError,
    ValidationError,
    WindowViolationError,
)
from shared.infrastructure.clock import Clock, IdGenerator, SystemClock, UlidGenerator
from shared.infrastructure.locks import account_key, lock_queryset_if_possible, reward_key
from shared.infrastructure.settings import engine_setting

from .events import RewardRedeemed, TaskCompleted
from .models import Reward, RewardRedemption, Task, TaskClaim, TaskCompletion

logger = structlog.get_logger(__name__)

LIFETIME_WINDOW = "lifetime"


@dataclass(frozen=True)
class TaskOutcome:
    task_id: str
    points_earned: int
    completion_count: int
    replayed: bool = False


@dataclass(frozen=True)
class RedemptionOutcome:
    redemption_id: str
    reward_id: str
    points_spent: int
    expires_at: datetime | None


def window_key(task_type: str, moment: datetime) -> str:
    """Counting window of a task type at ``moment`` (local calendar)."""
    local = timezone.localtime(moment)
    if task_type == Task.TaskType.DAILY:
        return local.date().isoformat()
    if task_type == Task.TaskType.WEEKLY:
        year, week, _ = local.isocalendar()
        return f"{year}-W{week:02d}"
    return LIFETIME_WINDOW


def purchase_bonus_points(amount: Decimal) -> int:
    """Bonus points for a purchase of ``amount``, by the highest tier reached."""
    for minimum, points in engine_setting("PURCHASE_BONUS_TIERS"):
        if amount >= Decimal(str(minimum)):
            return int(points)
    return 0


class RewardEngine:
    def __init__(
        self,
        ledger: LedgerStore | None = None,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
    ):
        self.clock = clock or SystemClock()
        self.ids = ids or UlidGenerator()
        self.ledger = ledger or LedgerStore(clock=self.clock, ids=self.ids)

    # ----- tasks -----

    def complete_task(self, account_id: str, task_id: str, metadata: dict | None = None) -> TaskOutcome:
        """
        Record a completion and award the task's points.

        With ``metadata["reference"]`` a repeated submission returns the
        original award flagged ``replayed`` instead of awarding again.
        """
        task = Task.objects.filter(pk=task_id, is_active=True).first()
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", task_id=task_id)
        metadata = dict(metadata or {})
        reference = str(metadata.get("reference") or "")

        with DjangoUnitOfWork(lock_keys=[account_key(account_id)]) as uow:
            account = self.ledger.lock_account(account_id)
            now = self.clock.now()
            key = window_key(task.task_type, now)

            if reference:
                claim = TaskClaim.objects.filter(account=account, task=task, reference=reference).first()
                if claim is not None:
                    completion = TaskCompletion.objects.filter(account=account, task=task).order_by(
                        "-last_completed_at"
                    ).first()
                    logger.info("task_completion_replayed", account_id=account_id, task_id=task_id,
                                reference=reference)
                    return TaskOutcome(
                        task_id=task.pk,
                        points_earned=claim.points_awarded,
                        completion_count=completion.completion_count if completion else 0,
                        replayed=True,
                    )

            completion = lock_queryset_if_possible(
                TaskCompletion.objects.filter(account=account, task=task, window_key=key)
            ).first()
            done = completion.completion_count if completion else 0
            limit = task.completion_limit
            if limit is not None and done >= limit:
                raise TaskLimitReachedError(
                    f"Task {task.pk} can only be completed {limit} time(s)",
                    task_id=task.pk,
                    limit=limit,
                    window=key,
                )

            if completion is None:
                completion = TaskCompletion(
                    account=account,
                    task=task,
                    window_key=key,
                    first_completed_at=now,
                )
            completion.completion_count = done + 1
            completion.points_earned += task.points_reward
            completion.last_completed_at = now
            completion.save()

            if task.points_reward > 0:
                self.ledger.add_points(
                    account,
                    task.points_reward,
                    EntryType.EARNED,
                    EntrySource.TASK_COMPLETION,
                    reference_id=reference or f"{task.pk}:{key}:{completion.completion_count}",
                    description=f"Completed: {task.name}",
                    metadata={"task_id": task.pk, **metadata},
                )
            if reference:
                TaskClaim.objects.create(
                    account=account,
                    task=task,
                    reference=reference,
                    points_awarded=task.points_reward,
                    created_at=now,
                )

            uow.add_event(TaskCompleted(
                aggregate_id=account.pk,
                account_id=account.pk,
                task_id=task.pk,
                points_earned=task.points_reward,
                completion_count=completion.completion_count,
            ))

        logger.info("task_completed", account_id=account_id, task_id=task_id, points=task.points_reward)
        return TaskOutcome(
            task_id=task.pk,
            points_earned=task.points_reward,
            completion_count=completion.completion_count,
        )

    # ----- rewards -----

    def redeem_reward(self, account_id: str, reward_id: str) -> RedemptionOutcome:
        """Spend points on a catalogue reward, consuming one unit of finite stock."""
        if not Reward.objects.filter(pk=reward_id).exists():
            raise NotFoundError(f"Reward {reward_id} not found", reward_id=reward_id)

        with DjangoUnitOfWork(lock_keys=[account_key(account_id), reward_key(reward_id)]) as uow:
            reward = lock_queryset_if_possible(Reward.objects.filter(pk=reward_id)).get()
            now = self.clock.now()
            if not reward.is_available_at(now):
                raise NotFoundError(f"Reward {reward_id} is not available", reward_id=reward_id)
            if reward.stock_quantity is not None and reward.stock_quantity <= 0:
                raise OutOfStockError(f"Reward {reward_id} is out of stock", reward_id=reward_id)

            account = self.ledger.lock_account(account_id)
            redemption_id = self.ids.new_id()
            if reward.points_cost > 0:
                self.ledger.spend_points(
                    account,
                    reward.points_cost,
                    EntrySource.REWARD_REDEMPTION,
                    reference_id=redemption_id,
                    description=f"Redeemed: {reward.name}",
                    metadata={"reward_id": reward.pk},
                )
            if reward.stock_quantity is not None:
                reward.stock_quantity -= 1
                reward.save(update_fields=["stock_quantity"])

            expires_at = now + timedelta(days=reward.duration_days) if reward.duration_days else None
            RewardRedemption.objects.create(
                id=redemption_id,
                account=account,
                reward=reward,
                points_spent=reward.points_cost,
                expires_at=expires_at,
                created_at=now,
            )
            uow.add_event(RewardRedeemed(
                aggregate_id=redemption_id,
                redemption_id=redemption_id,
                account_id=account.pk,
                reward_id=reward.pk,
                points_spent=reward.points_cost,
                expires_at=expires_at,
            ))

        logger.info("reward_redeemed", account_id=account_id, reward_id=reward_id, points=reward.points_cost)
        return RedemptionOutcome(
            redemption_id=redemption_id,
            reward_id=reward.pk,
            points_spent=reward.points_cost,
            expires_at=expires_at,
        )

    def use_redemption(self, account_id: str, redemption_id: str) -> RewardRedemption:
        if not RewardRedemption.objects.filter(pk=redemption_id, account_id=account_id).exists():
            raise NotFoundError(f"Redemption {redemption_id} not found", redemption_id=redemption_id)

        with DjangoUnitOfWork(lock_keys=[account_key(account_id)]):
            redemption = lock_queryset_if_possible(RewardRedemption.objects.filter(pk=redemption_id)).get()
            now = self.clock.now()
            if redemption.status != RewardRedemption.Status.ACTIVE:
                raise InvalidTransitionError(
                    f"Redemption is {redemption.status}",
                    redemption_id=redemption_id,
                    status=redemption.status,
                )
            if redemption.expires_at is not None and redemption.expires_at <= now:
                raise WindowViolationError(
                    "Redemption has expired",
                    redemption_id=redemption_id,
                    expires_at=redemption.expires_at,
                )
            redemption.status = RewardRedemption.Status.USED
            redemption.used_at = now
            redemption.save(update_fields=["status", "used_at"])
        return redemption

    def expire_redemptions(self) -> int:
        """Mark active redemptions past their expiry as expired."""
        now = self.clock.now()
        expired = RewardRedemption.objects.filter(
            status=RewardRedemption.Status.ACTIVE,
            expires_at__isnull=False,
            expires_at__lte=now,
        ).update(status=RewardRedemption.Status.EXPIRED)
        if expired:
            logger.info("redemptions_expired", count=expired)
        return expired

    # ----- bonuses -----

    def award_bonus_points(self, account_id: str, points: int, reason: str, *,
                           source: str = EntrySource.ADMIN_ADJUSTMENT,
                           reference: str = "", metadata: dict | None = None) -> int:
        """
        Grant ``points`` as a ``bonus`` entry.

        With a ``reference`` the grant happens at most once; a repeat returns 0.
        """
        if int(points) <= 0:
            raise ValidationError("Bonus points must be positive", points=points)

        with DjangoUnitOfWork(lock_keys=[account_key(account_id)]):
            account = self.ledger.lock_account(account_id)
            if reference and self.ledger.has_entry(account_id, POINTS, source, reference):
                return 0
            self.ledger.add_points(
                account,
                int(points),
                EntryType.BONUS,
                source,
                reference_id=reference,
                description=reason,
                metadata=metadata,
            )
        logger.info("bonus_points_awarded", account_id=account_id, points=points, source=source)
        return int(points)

    def award_purchase_bonus(self, account_id: str, amount: Decimal, source: str, reference: str) -> int:
        points = purchase_bonus_points(Decimal(str(amount)))
        if points <= 0:
            return 0
        return self.award_bonus_points(
            account_id,
            points,
            f"Bonus points for ${amount} purchase",
            source=source,
            reference=reference,
            metadata={"amount": str(amount)},
        )

    def award_booking_points(self, booking_id: str) -> list[TaskOutcome]:
        """
        Complete the booking tasks earned by a new booking.

        First booking, every booking, count milestones and early-bird or
        peak start hours. Tasks that are missing or already at their limit are
        skipped.
        """
        booking = Booking.objects.filter(pk=booking_id).first()
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", booking_id=booking_id)

        booking_count = Booking.objects.filter(
            account_id=booking.account_id,
            created_at__lte=booking.created_at,
        ).exclude(status=Booking.Status.CANCELLED).count()

        task_ids = [engine_setting("REPEAT_BOOKING_TASK")]
        if booking_count == 1:
            task_ids.insert(0, engine_setting("FIRST_BOOKING_TASK"))
        milestone = engine_setting("BOOKING_MILESTONES").get(booking_count)
        if milestone:
            task_ids.append(milestone)

        start_hour = timezone.localtime(booking.start_at).hour
        early_from, early_to = engine_setting("EARLY_BIRD_HOURS")
        peak_from, peak_to = engine_setting("PEAK_HOURS")
        if early_from <= start_hour < early_to:
            task_ids.append(engine_setting("EARLY_BIRD_TASK"))
        if peak_from <= start_hour < peak_to:
            task_ids.append(engine_setting("PEAK_HOUR_TASK"))

        return self._complete_automatic(booking.account_id, task_ids, f"booking:{booking.pk}")

    def award_first_credit_purchase(self, account_id: str, purchase_id: str) -> list[TaskOutcome]:
        return self._complete_automatic(
            account_id,
            [engine_setting("FIRST_CREDIT_PURCHASE_TASK")],
            f"purchase:{purchase_id}",
        )

    def _complete_automatic(self, account_id: str, task_ids: list[str], reference: str) -> list[TaskOutcome]:
        outcomes = []
        for task_id in task_ids:
            try:
                outcomes.append(self.complete_task(account_id, task_id, {"reference": reference}))
            except (NotFoundError, TaskLimitReachedError) as exc:
                logger.info("automatic_task_skipped", account_id=account_id, task_id=task_id, reason=exc.kind)
        return outcomes
