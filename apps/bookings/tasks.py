"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore
from django.db.models import Q  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.exceptions import CourtsideError

from .application.command_handlers import CompleteBookingCommand, CompleteBookingHandler
from .models import Booking

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="bookings.complete_finished_bookings")
def complete_finished_bookings() -> dict[str, int]:
    """
    Complete bookings whose end time has passed.

    Confirmed bookings, and pending ones that are already paid, move to
    COMPLETED. Runs every 15 minutes through Celery Beat.

    Returns:
        dict: {"completed": number of bookings completed}
    """
    now = timezone.now()
    handler = CompleteBookingHandler()
    completed_count = 0

    finished = Booking.objects.filter(end_at__lte=now).filter(
        Q(status=Booking.Status.CONFIRMED)
        | Q(status=Booking.Status.PENDING, payment_status=Booking.PaymentStatus.PAID)
    ).values_list("pk", flat=True)

    for booking_id in list(finished):
        try:
            handler.handle(CompleteBookingCommand(booking_id=booking_id))
            completed_count += 1
        except CourtsideError as e:
            logger.warning(f"Could not complete booking {booking_id}: {e.kind}: {e.message}")

    if completed_count > 0:
        logger.info(f"Completed {completed_count} finished bookings")

    return {"completed": completed_count}
