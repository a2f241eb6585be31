"""Celery tasks for the finances domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from shared.domain.exceptions import TransientStoreError

from .services import PaymentCoordinator

logger = logging.getLogger(__name__)


@shared_task(
    name="finances.grant_confirmation_cashback",
    autoretry_for=(TransientStoreError,),
    retry_backoff=True,
    max_retries=3,
)
def grant_confirmation_cashback(booking_id: str) -> dict[str, str]:
    """Credits cashback for a confirmed booking, at most once."""
    cashback = PaymentCoordinator().grant_confirmation_cashback(booking_id)
    if cashback:
        logger.info(f"Granted {cashback} credits cashback for booking {booking_id}")
    return {"cashback": str(cashback)}
