"""Celery tasks for points awards and redemption upkeep."""

from __future__ import annotations

import logging
from decimal import Decimal

from celery import shared_task  # type: ignore

from shared.domain.exceptions import TransientStoreError

from .services import RewardEngine

logger = logging.getLogger(__name__)


@shared_task(
    name="rewards.award_booking_points",
    autoretry_for=(TransientStoreError,),
    retry_backoff=True,
    max_retries=3,
)
def award_booking_points(booking_id: str) -> dict[str, int]:
    """Booking tasks (first booking, milestones, early bird, peak hour)."""
    outcomes = RewardEngine().award_booking_points(booking_id)
    points = sum(outcome.points_earned for outcome in outcomes if not outcome.replayed)
    logger.info(f"Booking {booking_id} earned {points} points over {len(outcomes)} task(s)")
    return {"points": points, "tasks": len(outcomes)}


@shared_task(
    name="rewards.award_purchase_bonus",
    autoretry_for=(TransientStoreError,),
    retry_backoff=True,
    max_retries=3,
)
def award_purchase_bonus(account_id: str, amount: str, source: str, reference: str) -> dict[str, int]:
    points = RewardEngine().award_purchase_bonus(account_id, Decimal(amount), source, reference)
    return {"points": points}


@shared_task(
    name="rewards.award_first_credit_purchase",
    autoretry_for=(TransientStoreError,),
    retry_backoff=True,
    max_retries=3,
)
def award_first_credit_purchase(account_id: str, purchase_id: str) -> dict[str, int]:
    outcomes = RewardEngine().award_first_credit_purchase(account_id, purchase_id)
    return {"points": sum(outcome.points_earned for outcome in outcomes if not outcome.replayed)}


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="rewards.expire_redemptions")
def expire_redemptions() -> dict[str, int]:
    """
    Expire active redemptions whose validity has passed.

    Runs hourly through Celery Beat.
    """
    return {"expired": RewardEngine().expire_redemptions()}
