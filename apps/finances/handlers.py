"""Message bus subscribers of the finances domain."""

from apps.bookings.domain.events import BookingConfirmed
from shared.application.message_bus import message_bus

from . import tasks
from .events import ExternalPaymentApproved


@message_bus.subscribe(BookingConfirmed)
@message_bus.subscribe(ExternalPaymentApproved)
def grant_cashback_for_confirmation(event) -> None:
    tasks.grant_confirmation_cashback.delay(event.booking_id)
