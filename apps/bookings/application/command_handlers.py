"""
Booking Command Handlers

These are the use cases for the booking domain.
They orchestrate domain operations within transactions.

Commands:
- CreateBookingCommand: Create a new booking and settle or record its payment
- ModifyBookingCommand: Move, resize or re-court a booking
- CancelBookingCommand: Cancel a booking and refund the paid share
- ConfirmBookingCommand: Confirm a pending booking
- CompleteBookingCommand: Close a booking whose end time has passed
"""

from dataclasses import dataclass
from datetime import datetime
import logging

from apps.accounts.ledger import LedgerStore
from apps.bookings.domain.events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingCreated,
    BookingModified,
)
from apps.bookings.models import MAX_MODIFICATIONS, Booking
from apps.bookings.pricing import price, quote
from apps.bookings.rules import ensure_advance_buffer, ensure_change_window, refund_fraction
from apps.bookings.services import ConflictReport, check_conflict
from apps.courts.models import Court
from apps.finances.models import Payment
from apps.finances.services import PaymentCoordinator
from apps.promotions.services import get_valid_promo, record_promo_use
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import (
    ConflictError,
    DuplicateBookingError,
    InvalidTransitionError,
    NotFoundError,
    TransientStoreError,
    WindowViolationError,
)
from shared.domain.value_objects import TimeRange
from shared.infrastructure.clock import Clock, IdGenerator, SystemClock, UlidGenerator
from shared.infrastructure.locks import account_key, court_key, lock_queryset_if_possible
from shared.infrastructure.settings import engine_setting

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class CreateBookingCommand:
    """
    Command to create a new booking

    This is the primary entry point for creating bookings.
    """
    account_id: str
    court_id: str
    start: datetime
    duration_hours: int
    payment_method: str
    court_count: int = 1
    promo_code: str | None = None
    proof_reference: str | None = None


@dataclass
class ModifyBookingCommand:
    """Command to change the interval and/or court of a booking"""
    booking_id: str
    account_id: str
    new_start: datetime | None = None
    new_duration_hours: int | None = None
    new_court_id: str | None = None


@dataclass
class CancelBookingCommand:
    booking_id: str
    account_id: str


@dataclass
class ConfirmBookingCommand:
    booking_id: str
    account_id: str


@dataclass
class CompleteBookingCommand:
    """Command to complete a booking once it has ended (system initiated)"""
    booking_id: str


# ===== Command Handlers =====

class BookingCommandHandler:
    """Shared collaborators and lookups of the booking handlers."""

    def __init__(
        self,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        ledger: LedgerStore | None = None,
        payments: PaymentCoordinator | None = None,
    ):
        self.clock = clock or SystemClock()
        self.ids = ids or UlidGenerator()
        self.ledger = ledger or LedgerStore(clock=self.clock, ids=self.ids)
        self.payments = payments or PaymentCoordinator(ledger=self.ledger, clock=self.clock, ids=self.ids)

    @staticmethod
    def _get_owned_booking(booking_id: str, account_id: str) -> Booking:
        """Bookings of other accounts are reported as missing."""
        booking = Booking.objects.filter(pk=booking_id, account_id=account_id).first()
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", booking_id=booking_id)
        return booking

    @staticmethod
    def _get_active_court(court_id: str) -> Court:
        court = Court.objects.filter(pk=court_id, is_active=True).first()
        if court is None:
            raise NotFoundError(f"Court {court_id} not found", court_id=court_id)
        return court

    @staticmethod
    def _lock_courts(*court_ids: str) -> list[Court]:
        return list(lock_queryset_if_possible(Court.objects.filter(pk__in=set(court_ids)).order_by("pk")))

    @staticmethod
    def _lock_booking(booking_id: str) -> Booking:
        return lock_queryset_if_possible(Booking.objects.filter(pk=booking_id)).get()

    @staticmethod
    def _lock_payment(booking: Booking) -> Payment:
        return lock_queryset_if_possible(Payment.objects.filter(booking_id=booking.pk)).get()

    @staticmethod
    def _raise_conflict(report: ConflictReport, account_id: str, court_id: str) -> None:
        if not report.conflict:
            return
        if report.owned_by(account_id):
            raise DuplicateBookingError(
                "You already have a booking on this court at that time",
                court_id=court_id,
                conflicting_booking_ids=[booking.pk for booking in report.conflicting_bookings],
            )
        raise ConflictError(
            "The court is not available for the requested time",
            court_id=court_id,
            conflicts=len(report.conflicting_bookings),
        )


class CreateBookingHandler(BookingCommandHandler):
    """
    Handler for CreateBooking command

    Double booking prevention:
    1. Take the court and account keyed locks, start the transaction
    2. Lock the court row, then the account row (SELECT FOR UPDATE)
    3. Check for overlapping active bookings
    4. Price the booking, consume the promo code use
    5. Persist the booking and settle or record its payment
    6. Commit, then publish BookingCreated
    """

    def handle(self, command: CreateBookingCommand) -> Booking:
        now = self.clock.now()
        ensure_advance_buffer(command.start, now)
        court = self._get_active_court(command.court_id)
        interval = TimeRange.from_duration(command.start, command.duration_hours)
        end = interval.end
        if command.promo_code:
            get_valid_promo(command.promo_code, now)

        logger.info(f"Creating booking for court {court.pk}, account {command.account_id}, {interval}")

        with DjangoUnitOfWork(lock_keys=[court_key(court.pk), account_key(command.account_id)]) as uow:
            self._lock_courts(court.pk)
            report = check_conflict(court.pk, command.start, end)
            self._raise_conflict(report, command.account_id, court.pk)

            account = self.ledger.lock_account(command.account_id)
            promo = get_valid_promo(command.promo_code, now, lock=True) if command.promo_code else None
            booking_quote = quote(court.hourly_rate, command.duration_hours, command.court_count, promo)

            booking = Booking.objects.create(
                id=self.ids.new_id(),
                account=account,
                court=court,
                start_at=command.start,
                end_at=end,
                duration_hours=command.duration_hours,
                court_count=command.court_count,
                amount=booking_quote.amount,
                discount_amount=booking_quote.discount_amount,
                promo_code=promo,
                created_at=now,
                updated_at=now,
            )
            if promo is not None:
                record_promo_use(promo)

            self.payments.open_payment(booking, account, command.payment_method, command.proof_reference)

            uow.add_event(BookingCreated(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                account_id=account.pk,
                court_id=court.pk,
                start_at=booking.start_at,
                end_at=booking.end_at,
                amount_due=booking.amount_due,
                payment_method=command.payment_method,
            ))

        logger.info(f"Booking created successfully: {booking.pk} ({booking.payment_status})")
        return booking


class ModifyBookingHandler(BookingCommandHandler):
    """
    Handler for ModifyBooking command

    The booking is first read without locks to learn which courts to lock,
    then re-read under those locks. If its court changed in between, the
    attempt is repeated, at most MAX_LOCK_ATTEMPTS times.
    """

    def handle(self, command: ModifyBookingCommand) -> Booking:
        attempts = int(engine_setting("MAX_LOCK_ATTEMPTS"))
        for attempt in range(1, attempts + 1):
            snapshot = self._get_owned_booking(command.booking_id, command.account_id)
            target_court_id = command.new_court_id or snapshot.court_id
            lock_keys = [
                court_key(snapshot.court_id),
                court_key(target_court_id),
                account_key(command.account_id),
            ]

            with DjangoUnitOfWork(lock_keys=lock_keys) as uow:
                self._lock_courts(snapshot.court_id, target_court_id)
                booking = self._lock_booking(snapshot.pk)
                if booking.court_id == snapshot.court_id:
                    return self._apply(booking, command, uow)

            logger.info(f"Booking {command.booking_id} moved during modification, retry {attempt}/{attempts}")

        raise TransientStoreError(
            "The booking changed concurrently, please retry",
            booking_id=command.booking_id,
            attempts=attempts,
        )

    def _apply(self, booking: Booking, command: ModifyBookingCommand, uow: DjangoUnitOfWork) -> Booking:
        now = self.clock.now()
        if not booking.is_active:
            raise InvalidTransitionError(
                f"A {booking.status} booking cannot be modified",
                booking_id=booking.pk,
                status=booking.status,
            )
        if booking.payment_status == Booking.PaymentStatus.FAILED:
            raise InvalidTransitionError(
                "A booking whose payment failed cannot be modified",
                booking_id=booking.pk,
                payment_status=booking.payment_status,
            )
        if booking.modification_count >= MAX_MODIFICATIONS:
            raise WindowViolationError(
                f"A booking can be modified at most {MAX_MODIFICATIONS} times",
                booking_id=booking.pk,
                modification_count=booking.modification_count,
            )
        ensure_change_window(booking.start_at, now, "modified")

        court = self._get_active_court(command.new_court_id or booking.court_id)
        new_start = command.new_start or booking.start_at
        new_duration = command.new_duration_hours or booking.duration_hours
        ensure_advance_buffer(new_start, now)
        new_end = TimeRange.from_duration(new_start, new_duration).end

        report = check_conflict(court.pk, new_start, new_end, exclude_booking_id=booking.pk)
        self._raise_conflict(report, booking.account_id, court.pk)

        account = self.ledger.lock_account(booking.account_id)
        previous_court_id = booking.court_id
        booking.court = court
        booking.start_at = new_start
        booking.end_at = new_end
        booking.duration_hours = new_duration
        booking.amount = price(court.hourly_rate, new_duration, booking.court_count)
        booking.modification_count += 1
        booking.updated_at = now
        booking.save()

        payment = self._lock_payment(booking)
        self.payments.settle_modification(booking, account, payment)

        uow.add_event(BookingModified(
            aggregate_id=booking.pk,
            booking_id=booking.pk,
            account_id=booking.account_id,
            court_id=court.pk,
            previous_court_id=previous_court_id,
            start_at=new_start,
            end_at=new_end,
            amount_due=booking.amount_due,
            modification_count=booking.modification_count,
        ))
        logger.info(f"Booking {booking.pk} modified ({booking.modification_count}/{MAX_MODIFICATIONS})")
        return booking


class CancelBookingHandler(BookingCommandHandler):
    def handle(self, command: CancelBookingCommand):
        snapshot = self._get_owned_booking(command.booking_id, command.account_id)

        with DjangoUnitOfWork(lock_keys=[court_key(snapshot.court_id), account_key(command.account_id)]) as uow:
            self._lock_courts(snapshot.court_id)
            booking = self._lock_booking(snapshot.pk)
            if not booking.is_active:
                raise InvalidTransitionError(
                    f"A {booking.status} booking cannot be cancelled",
                    booking_id=booking.pk,
                    status=booking.status,
                )
            now = self.clock.now()
            ensure_change_window(booking.start_at, now, "cancelled")

            account = self.ledger.lock_account(booking.account_id)
            payment = self._lock_payment(booking)
            fraction = refund_fraction(booking.start_at, now)
            refund = self.payments.refund_cancellation(booking, account, payment, fraction)
            cashback_reversed = self.payments.reverse_cashback(booking, account)

            old_status = booking.status
            booking.status = Booking.Status.CANCELLED
            booking.cancelled_at = now
            booking.refund_amount = refund
            booking.updated_at = now
            booking.save()

            uow.add_event(BookingCancelled(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                account_id=booking.account_id,
                court_id=booking.court_id,
                refund_amount=refund,
                old_status=old_status,
            ))

        logger.info(f"Booking {booking.pk} cancelled, refund {refund}")
        return {"booking_id": booking.pk, "refund_amount": refund, "cashback_reversed": cashback_reversed}


class ConfirmBookingHandler(BookingCommandHandler):
    """Handler for confirming a pending booking"""

    def handle(self, command: ConfirmBookingCommand) -> Booking:
        self._get_owned_booking(command.booking_id, command.account_id)

        with DjangoUnitOfWork(lock_keys=[account_key(command.account_id)]) as uow:
            booking = self._lock_booking(command.booking_id)
            if booking.status != Booking.Status.PENDING:
                raise InvalidTransitionError(
                    f"A {booking.status} booking cannot be confirmed",
                    booking_id=booking.pk,
                    status=booking.status,
                )
            if booking.payment_status == Booking.PaymentStatus.FAILED:
                raise InvalidTransitionError(
                    "A booking whose payment failed cannot be confirmed",
                    booking_id=booking.pk,
                    payment_status=booking.payment_status,
                )
            now = self.clock.now()
            ensure_change_window(booking.start_at, now, "confirmed")

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

        logger.info(f"Booking {booking.pk} confirmed")
        return booking


class CompleteBookingHandler(BookingCommandHandler):
    """
    Handler for completing a finished booking

    Confirmed bookings, and pending ones that are already paid, complete once
    their end time has passed.
    """

    def handle(self, command: CompleteBookingCommand) -> Booking:
        snapshot = Booking.objects.filter(pk=command.booking_id).first()
        if snapshot is None:
            raise NotFoundError(f"Booking {command.booking_id} not found", booking_id=command.booking_id)

        with DjangoUnitOfWork(lock_keys=[court_key(snapshot.court_id)]) as uow:
            booking = self._lock_booking(snapshot.pk)
            now = self.clock.now()
            eligible = booking.status == Booking.Status.CONFIRMED or (
                booking.status == Booking.Status.PENDING
                and booking.payment_status == Booking.PaymentStatus.PAID
            )
            if not eligible or booking.end_at > now:
                raise InvalidTransitionError(
                    f"Booking {booking.pk} cannot be completed yet",
                    booking_id=booking.pk,
                    status=booking.status,
                    end_at=booking.end_at,
                )

            booking.status = Booking.Status.COMPLETED
            booking.completed_at = now
            booking.updated_at = now
            booking.save(update_fields=["status", "completed_at", "updated_at"])

            uow.add_event(BookingCompleted(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                account_id=booking.account_id,
                court_id=booking.court_id,
            ))

        logger.info(f"Booking {booking.pk} completed")
        return booking
