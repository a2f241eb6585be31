"""Payment coordination services.

``PaymentCoordinator`` settles booking payments against the credits ledger
or records them as awaiting external review. The ``open``/``settle``/
``refund`` methods run inside the booking operation's unit of work; the review
and purchase methods are complete operations with their own unit of work.
"""

from __future__ import annotations

import math
from decimal import Decimal

import structlog

from apps.accounts.ledger import CREDITS, LedgerStore
from apps.accounts.models import Account, EntrySource, EntryType
from apps.bookings.domain.events import BookingConfirmed
from apps.bookings.models import Booking
from apps.bookings.rules import is_within_change_window
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from shared.domain.value_objects import ZERO, quantize_money
from shared.infrastructure.clock import Clock, IdGenerator, SystemClock, UlidGenerator
from shared.infrastructure.locks import account_key, lock_queryset_if_possible
from shared.infrastructure.settings import engine_setting

from .events import CreditPurchaseApproved, ExternalPaymentApproved, ExternalPaymentRejected
from .models import CreditPackage, CreditPurchase, Payment, PaymentEvent

logger = structlog.get_logger(__name__)


class PaymentCoordinator:
    def __init__(
        self,
        ledger: LedgerStore | None = None,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
    ):
        self.clock = clock or SystemClock()
        self.ids = ids or UlidGenerator()
        self.ledger = ledger or LedgerStore(clock=self.clock, ids=self.ids)

    # ----- booking payments (inside the caller's unit of work) -----

    def open_payment(self, booking: Booking, account: Account, method: str,
                     proof_reference: str | None = None) -> Payment:
        """
        Create the payment record for a new booking.

        Internal payments debit the full amount due right away and raise
        InsufficientFundsError if the balance is short.
        """
        now = self.clock.now()
        payment = Payment(
            id=self.ids.new_id(),
            booking=booking,
            account=account,
            method=method,
            amount=booking.amount_due,
            currency=engine_setting("CURRENCY"),
            proof_reference=proof_reference or None,
            created_at=now,
            updated_at=now,
        )

        if method == Payment.Method.INTERNAL_BALANCE:
            if payment.amount > ZERO:
                self.ledger.spend_credits(
                    account,
                    payment.amount,
                    EntrySource.BOOKING,
                    reference_id=booking.pk,
                    description=f"Booking {booking.pk} on {booking.court_id}",
                )
            payment.settled_amount = payment.amount
            payment.paid_at = now
        payment.save(force_insert=True)

        if method == Payment.Method.INTERNAL_BALANCE:
            self._record(payment, PaymentEvent.Kind.CHARGE, payment.amount)
        else:
            self._record(payment, PaymentEvent.Kind.PROOF_SUBMITTED, payment.amount,
                         proof_reference=payment.proof_reference)
        self._sync_status(payment, booking)
        return payment

    def settle_modification(self, booking: Booking, account: Account, payment: Payment) -> Decimal:
        """
        Bring the payment in line with the booking's new amount due.

        A higher price is charged with the original method: credits are debited
        at once, an external payment goes back to pending review of the
        outstanding delta. A lower price refunds the overpaid part as credits
        regardless of method. Returns the signed difference settled now.
        """
        new_due = booking.amount_due
        payment.amount = new_due
        delta = ZERO

        if new_due > payment.settled_amount and payment.method == Payment.Method.INTERNAL_BALANCE:
            delta = new_due - payment.settled_amount
            self.ledger.spend_credits(
                account,
                delta,
                EntrySource.BOOKING_MODIFICATION,
                reference_id=booking.pk,
                description=f"Price increase for booking {booking.pk}",
            )
            payment.settled_amount += delta
            payment.paid_at = self.clock.now()
            self._record(payment, PaymentEvent.Kind.DELTA_CHARGE, delta)
        elif new_due > payment.settled_amount:
            self._record(payment, PaymentEvent.Kind.DELTA_CHARGE, new_due - payment.settled_amount,
                         awaiting_review=True)
        elif new_due < payment.settled_amount:
            refund = payment.settled_amount - new_due
            self.ledger.add_credits(
                account,
                refund,
                EntryType.REFUND,
                EntrySource.BOOKING_MODIFICATION,
                reference_id=booking.pk,
                description=f"Price decrease for booking {booking.pk}",
            )
            payment.settled_amount -= refund
            payment.refunded_amount += refund
            delta = -refund
            self._record(payment, PaymentEvent.Kind.DELTA_REFUND, refund)

        self._sync_status(payment, booking)
        logger.info(
            "payment_modification_settled",
            payment_id=payment.pk,
            booking_id=booking.pk,
            amount=str(payment.amount),
            settled=str(payment.settled_amount),
            delta=str(delta),
        )
        return delta

    def refund_cancellation(self, booking: Booking, account: Account, payment: Payment,
                            fraction: Decimal) -> Decimal:
        """Credit back ``fraction`` of the settled amount; returns the refund."""
        now = self.clock.now()
        refund = quantize_money(payment.settled_amount * fraction)

        if refund > ZERO:
            self.ledger.add_credits(
                account,
                refund,
                EntryType.REFUND,
                EntrySource.BOOKING_CANCELLATION,
                reference_id=booking.pk,
                description=f"Cancellation refund for booking {booking.pk}",
                metadata={"fraction": str(fraction)},
            )
            payment.settled_amount -= refund
            payment.refunded_amount += refund
            payment.refunded_at = now
            payment.status = Payment.Status.REFUNDED
            booking.payment_status = Booking.PaymentStatus.REFUNDED
        elif payment.settled_amount == ZERO and payment.status == Payment.Status.PENDING:
            payment.status = Payment.Status.FAILED
            booking.payment_status = Booking.PaymentStatus.FAILED

        payment.updated_at = now
        payment.save()
        self._record(payment, PaymentEvent.Kind.REFUND, refund, fraction=str(fraction))
        return refund

    def reverse_cashback(self, booking: Booking, account: Account) -> Decimal:
        """
        Take back the confirmation cashback of a cancelled booking.

        Written as a ``penalty`` entry, capped by the current balance.
        Returns the credits taken back.
        """
        granted = self.ledger.net_amount(account.pk, CREDITS, EntrySource.BOOKING_CASHBACK, booking.pk)
        clawback = min(granted, account.credit_balance)
        if clawback <= ZERO:
            return ZERO
        self.ledger.spend_credits(
            account,
            clawback,
            EntrySource.BOOKING_CASHBACK,
            entry_type=EntryType.PENALTY,
            reference_id=booking.pk,
            description=f"Cashback reversed for cancelled booking {booking.pk}",
            metadata={"granted": str(granted)},
        )
        logger.info("confirmation_cashback_reversed", booking_id=booking.pk, credits=str(clawback))
        return clawback

    # ----- administrative review -----

    def review_external_payment(self, payment_id: str, approve: bool, note: str = "") -> Payment:
        """
        Approve or reject a bank transfer awaiting review.

        Approval settles the full amount due, marks the booking paid and
        confirms it when it is still pending and the change window allows.
        """
        payment = Payment.objects.select_related("booking").filter(pk=payment_id).first()
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found", payment_id=payment_id)

        with DjangoUnitOfWork(lock_keys=[account_key(payment.account_id)]) as uow:
            payment = lock_queryset_if_possible(Payment.objects.filter(pk=payment_id)).get()
            booking = lock_queryset_if_possible(Booking.objects.filter(pk=payment.booking_id)).get()
            if not payment.is_external:
                raise InvalidTransitionError("Only bank transfer payments are reviewed", payment_id=payment_id)
            if payment.status != Payment.Status.PENDING:
                raise InvalidTransitionError(
                    f"Payment is {payment.status}, not awaiting review",
                    payment_id=payment_id,
                    status=payment.status,
                )
            if booking.status == Booking.Status.CANCELLED:
                raise InvalidTransitionError("Booking was cancelled", booking_id=booking.pk)

            now = self.clock.now()
            payment.review_note = note
            payment.reviewed_at = now
            if approve:
                approved_amount = payment.outstanding_amount
                payment.settled_amount = payment.amount
                payment.paid_at = now
                self._record(payment, PaymentEvent.Kind.APPROVED, approved_amount, note=note)
                self._sync_status(payment, booking)
                if booking.status == Booking.Status.PENDING and is_within_change_window(booking.start_at, now):
                    booking.status = Booking.Status.CONFIRMED
                    booking.confirmed_at = now
                    booking.updated_at = now
                    booking.save(update_fields=["status", "confirmed_at", "updated_at"])
                    uow.add_event(BookingConfirmed(
                        aggregate_id=booking.pk,
                        booking_id=booking.pk,
                        account_id=booking.account_id,
                        court_id=booking.court_id,
                        amount_due=booking.amount_due,
                    ))
                uow.add_event(ExternalPaymentApproved(
                    aggregate_id=payment.pk,
                    payment_id=payment.pk,
                    booking_id=booking.pk,
                    account_id=payment.account_id,
                    amount=approved_amount,
                ))
            else:
                payment.status = Payment.Status.FAILED
                payment.updated_at = now
                payment.save()
                booking.payment_status = Booking.PaymentStatus.FAILED
                booking.updated_at = now
                booking.save(update_fields=["payment_status", "updated_at"])
                self._record(payment, PaymentEvent.Kind.REJECTED, payment.outstanding_amount, note=note)
                uow.add_event(ExternalPaymentRejected(
                    aggregate_id=payment.pk,
                    payment_id=payment.pk,
                    booking_id=booking.pk,
                    account_id=payment.account_id,
                    note=note,
                ))

        logger.info("external_payment_reviewed", payment_id=payment_id, approved=approve)
        return payment

    # ----- confirmation cashback -----

    def grant_confirmation_cashback(self, booking_id: str) -> Decimal:
        """
        Grant ``floor(amount_due * rate)`` credits for a confirmed, paid booking.

        At most once per booking; returns the credits granted now. Bookings
        confirmed before their transfer was approved get it on approval.
        """
        booking = Booking.objects.filter(pk=booking_id).first()
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", booking_id=booking_id)

        with DjangoUnitOfWork(lock_keys=[account_key(booking.account_id)]):
            booking.refresh_from_db()
            if booking.status not in (Booking.Status.CONFIRMED, Booking.Status.COMPLETED):
                return ZERO
            if booking.payment_status != Booking.PaymentStatus.PAID:
                return ZERO
            if self.ledger.has_entry(booking.account_id, CREDITS, EntrySource.BOOKING_CASHBACK, booking.pk):
                return ZERO
            rate = Decimal(str(engine_setting("CONFIRMATION_CASHBACK_RATE")))
            cashback = Decimal(math.floor(booking.amount_due * rate))
            if cashback <= ZERO:
                return ZERO
            account = self.ledger.lock_account(booking.account_id)
            self.ledger.add_credits(
                account,
                cashback,
                EntryType.EARNED,
                EntrySource.BOOKING_CASHBACK,
                reference_id=booking.pk,
                description=f"Cashback for booking {booking.pk}",
            )
        logger.info("confirmation_cashback_granted", booking_id=booking_id, credits=str(cashback))
        return cashback

    # ----- credit purchases -----

    def purchase_credits(self, account_id: str, package_id: str, proof_reference: str) -> CreditPurchase:
        if not proof_reference:
            raise ValidationError("Payment proof is required", field="proof_reference")
        package = CreditPackage.objects.filter(pk=package_id, is_active=True).first()
        if package is None:
            raise NotFoundError(f"Credit package {package_id} not found", package_id=package_id)

        with DjangoUnitOfWork(lock_keys=[account_key(account_id)]):
            account = self.ledger.lock_account(account_id)
            now = self.clock.now()
            purchase = CreditPurchase.objects.create(
                id=self.ids.new_id(),
                account=account,
                package=package,
                amount_paid=package.price,
                credits_amount=package.credits,
                bonus_credits=package.bonus_credits,
                proof_reference=proof_reference,
                created_at=now,
                updated_at=now,
            )
        logger.info("credit_purchase_submitted", purchase_id=purchase.pk, account_id=account_id, package_id=package_id)
        return purchase

    def review_credit_purchase(self, purchase_id: str, approve: bool, notes: str = "") -> CreditPurchase:
        purchase = CreditPurchase.objects.filter(pk=purchase_id).first()
        if purchase is None:
            raise NotFoundError(f"Credit purchase {purchase_id} not found", purchase_id=purchase_id)

        with DjangoUnitOfWork(lock_keys=[account_key(purchase.account_id)]) as uow:
            purchase = lock_queryset_if_possible(CreditPurchase.objects.filter(pk=purchase_id)).get()
            if purchase.status != CreditPurchase.Status.PENDING:
                raise InvalidTransitionError(
                    f"Purchase is already {purchase.status}",
                    purchase_id=purchase_id,
                    status=purchase.status,
                )
            now = self.clock.now()
            purchase.admin_notes = notes
            purchase.reviewed_at = now
            purchase.updated_at = now
            if approve:
                account = self.ledger.lock_account(purchase.account_id)
                total = purchase.total_credits
                self.ledger.add_credits(
                    account,
                    total,
                    EntryType.PURCHASE,
                    EntrySource.CREDIT_PURCHASE,
                    reference_id=purchase.pk,
                    description=f"Credit package {purchase.package_id}",
                    metadata={"bonus_credits": str(purchase.bonus_credits)},
                )
                purchase.status = CreditPurchase.Status.APPROVED
                uow.add_event(CreditPurchaseApproved(
                    aggregate_id=purchase.pk,
                    purchase_id=purchase.pk,
                    account_id=purchase.account_id,
                    amount_paid=purchase.amount_paid,
                    credits=total,
                ))
            else:
                purchase.status = CreditPurchase.Status.REJECTED
            purchase.save()

        logger.info("credit_purchase_reviewed", purchase_id=purchase_id, approved=approve)
        return purchase

    # ----- internals -----

    def _sync_status(self, payment: Payment, booking: Booking) -> None:
        """Derive payment and booking payment status; a rejected payment stays failed."""
        now = self.clock.now()
        if payment.status == Payment.Status.FAILED:
            booking.payment_status = Booking.PaymentStatus.FAILED
        elif payment.outstanding_amount == ZERO:
            payment.status = Payment.Status.COMPLETED
            booking.payment_status = Booking.PaymentStatus.PAID
        else:
            payment.status = Payment.Status.PENDING
            booking.payment_status = Booking.PaymentStatus.PENDING
        payment.updated_at = now
        payment.save()
        booking.updated_at = now
        booking.save(update_fields=["payment_status", "updated_at"])

    def _record(self, payment: Payment, kind: str, amount: Decimal, **payload) -> PaymentEvent:
        return PaymentEvent.objects.create(
            payment=payment,
            event=kind,
            amount=amount,
            payload={key: str(value) if value is not None else None for key, value in payload.items()},
            created_at=self.clock.now(),
        )
