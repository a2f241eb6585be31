"""Finance domain events, published after commit."""

from dataclasses import dataclass
from decimal import Decimal

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class ExternalPaymentApproved(DomainEvent):
    """
    Event: A bank transfer for a booking was approved

    Triggers:
    - Purchase-size bonus points
    """
    payment_id: str
    booking_id: str
    account_id: str
    amount: Decimal


@dataclass(kw_only=True)
class ExternalPaymentRejected(DomainEvent):
    payment_id: str
    booking_id: str
    account_id: str
    note: str


@dataclass(kw_only=True)
class CreditPurchaseApproved(DomainEvent):
    """
    Event: A credit package purchase was approved and credited

    Triggers:
    - First credit purchase task
    - Purchase-size bonus points
    """
    purchase_id: str
    account_id: str
    amount_paid: Decimal
    credits: Decimal
