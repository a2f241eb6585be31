"""
Message bus subscribers that turn committed events into points awards.

Each handler only enqueues a Celery task; the award itself runs in its own
transaction so a failure never touches the operation that emitted the event.
"""

from apps.accounts.models import EntrySource
from apps.bookings.domain.events import BookingCreated
from apps.finances.events import CreditPurchaseApproved, ExternalPaymentApproved
from shared.application.message_bus import message_bus

from . import tasks


@message_bus.subscribe(BookingCreated)
def award_points_for_booking(event: BookingCreated) -> None:
    tasks.award_booking_points.delay(event.booking_id)


@message_bus.subscribe(ExternalPaymentApproved)
def award_bonus_for_external_payment(event: ExternalPaymentApproved) -> None:
    tasks.award_purchase_bonus.delay(
        event.account_id,
        str(event.amount),
        EntrySource.PAYMENT_BONUS,
        f"payment:{event.payment_id}",
    )


@message_bus.subscribe(CreditPurchaseApproved)
def award_bonus_for_credit_purchase(event: CreditPurchaseApproved) -> None:
    tasks.award_purchase_bonus.delay(
        event.account_id,
        str(event.amount_paid),
        EntrySource.CREDIT_PURCHASE_BONUS,
        f"purchase:{event.purchase_id}",
    )
    tasks.award_first_credit_purchase.delay(event.account_id, event.purchase_id)
