"""Integration tests for the booking lifecycle through the engine facade."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase

from apps.accounts.models import Account, CreditEntry, EntryType
from apps.bookings.models import MAX_MODIFICATIONS, Booking
from apps.bookings.tests.factories import EngineFixturesMixin
from apps.finances.models import Payment
from apps.promotions.models import PromoCode


class CreateBookingTests(EngineFixturesMixin, TestCase):
    def test_internal_payment_debits_credits(self) -> None:
        result = self.create()

        self.assertTrue(result.ok, result.to_dict())
        self.assertEqual(result.data["amount"], "24.00")
        self.assertEqual(result.data["status"], Booking.Status.PENDING)
        self.assertEqual(result.data["payment_status"], Booking.PaymentStatus.PAID)
        self.assertEqual(Account.objects.get(pk=self.account_id).credit_balance, Decimal("6.00"))
        spent = CreditEntry.objects.get(entry_type=EntryType.SPENT)
        self.assertEqual(spent.amount, Decimal("-24.00"))
        self.assertEqual(spent.reference_id, result.data["id"])

        payment = Payment.objects.get(booking_id=result.data["id"])
        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertEqual(payment.settled_amount, Decimal("24.00"))

    def test_court_count_multiplies_price(self) -> None:
        self.fund(self.account_id, "100.00")
        result = self.create(court_count=3)
        self.assertEqual(result.data["amount"], "72.00")

    def test_start_inside_advance_buffer_is_rejected(self) -> None:
        result = self.create(start=self.start_in(minutes=29))
        self.assertEqual(result.error_kind, "window_violation")
        self.assertFalse(Booking.objects.exists())

    def test_start_exactly_at_buffer_is_accepted(self) -> None:
        result = self.create(start=self.start_in(minutes=30))
        self.assertTrue(result.ok, result.to_dict())

    def test_overlap_with_other_account_conflicts(self) -> None:
        self.fund("acc-2", "30.00")
        self.assertTrue(self.create().ok)

        result = self.create(account_id="acc-2", start=self.start_in(hours=31))

        self.assertEqual(result.error_kind, "conflict")
        self.assertEqual(Account.objects.get(pk="acc-2").credit_balance, Decimal("30.00"))

    def test_overlap_with_own_booking_is_duplicate(self) -> None:
        self.fund(self.account_id, "30.00")
        self.assertTrue(self.create().ok)

        result = self.create(start=self.start_in(hours=31), duration_hours=1)

        self.assertEqual(result.error_kind, "duplicate_booking")

    def test_touching_intervals_do_not_conflict(self) -> None:
        self.fund(self.account_id, "30.00")
        self.assertTrue(self.create().ok)
        self.assertTrue(self.create(start=self.start_in(hours=32)).ok)
        self.assertEqual(Booking.objects.count(), 2)

    def test_same_slot_on_another_court_is_free(self) -> None:
        self.fund(self.account_id, "40.00")
        self.assertTrue(self.create().ok)
        self.assertTrue(self.create(court_id=self.other_court.pk).ok)

    def test_insufficient_credits_writes_nothing(self) -> None:
        result = self.create(duration_hours=3)

        self.assertEqual(result.error_kind, "insufficient_funds")
        self.assertEqual(result.error.details["shortfall"], Decimal("6.00"))
        self.assertEqual(result.to_dict()["error"]["details"]["required"], "36.00")
        self.assertFalse(Booking.objects.exists())
        self.assertFalse(Payment.objects.exists())
        self.assertEqual(CreditEntry.objects.count(), 1)

    def test_unknown_or_inactive_court_is_not_found(self) -> None:
        self.other_court.is_active = False
        self.other_court.save()

        self.assertEqual(self.create(court_id="nope").error_kind, "not_found")
        self.assertEqual(self.create(court_id=self.other_court.pk).error_kind, "not_found")

    def test_malformed_input_is_a_validation_error(self) -> None:
        self.assertEqual(self.create(duration_hours=0).error_kind, "validation_error")
        self.assertEqual(self.create(duration_hours=9).error_kind, "validation_error")
        self.assertEqual(self.create(payment_method="cash").error_kind, "validation_error")
        self.assertEqual(self.create(payment_method="external_proof").error_kind, "validation_error")

    def test_promo_code_discount_and_usage(self) -> None:
        promo = PromoCode.objects.create(
            code="TEN",
            discount_type=PromoCode.DiscountType.PERCENTAGE,
            discount_value=Decimal("10"),
            max_uses=1,
        )

        result = self.create(promo_code="ten")

        self.assertTrue(result.ok, result.to_dict())
        self.assertEqual(result.data["amount"], "24.00")
        self.assertEqual(result.data["discount_amount"], "2.40")
        self.assertEqual(result.data["amount_due"], "21.60")
        self.assertEqual(result.data["promo_code"], "TEN")
        self.assertEqual(Account.objects.get(pk=self.account_id).credit_balance, Decimal("8.40"))
        promo.refresh_from_db()
        self.assertEqual(promo.used_count, 1)

        again = self.create(start=self.start_in(hours=40), promo_code="TEN")
        self.assertEqual(again.error_kind, "validation_error")

    def test_rejected_booking_does_not_consume_promo_use(self) -> None:
        promo = PromoCode.objects.create(
            code="FLAT5",
            discount_type=PromoCode.DiscountType.FIXED,
            discount_value=Decimal("5"),
        )

        result = self.create(duration_hours=4, promo_code="FLAT5")

        self.assertEqual(result.error_kind, "insufficient_funds")
        promo.refresh_from_db()
        self.assertEqual(promo.used_count, 0)

    def test_external_proof_leaves_payment_pending(self) -> None:
        result = self.create(payment_method="external_proof", proof_reference="receipts/abc.pdf")

        self.assertTrue(result.ok, result.to_dict())
        self.assertEqual(result.data["payment_status"], Booking.PaymentStatus.PENDING)
        payment = Payment.objects.get(booking_id=result.data["id"])
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.proof_reference, "receipts/abc.pdf")
        self.assertEqual(payment.outstanding_amount, Decimal("24.00"))
        self.assertEqual(Account.objects.get(pk=self.account_id).credit_balance, Decimal("30.00"))


class CancelBookingTests(EngineFixturesMixin, TestCase):
    def test_full_refund_a_day_or_more_before_start(self) -> None:
        booking_id = self.create().data["id"]

        result = self.engine.cancel_booking(booking_id, self.account_id)

        self.assertTrue(result.ok, result.to_dict())
        self.assertEqual(result.data["refund_amount"], Decimal("24.00"))
        self.assertEqual(Account.objects.get(pk=self.account_id).credit_balance, Decimal("30.00"))
        booking = Booking.objects.get(pk=booking_id)
        self.assertEqual(booking.status, Booking.Status.CANCELLED)
        self.assertEqual(booking.payment_status, Booking.PaymentStatus.REFUNDED)
        self.assertEqual(booking.refund_amount, Decimal("24.00"))
        payment = booking.payment
        self.assertEqual(payment.refunded_amount, Decimal("24.00"))
        self.assertEqual(payment.settled_amount, Decimal("0.00"))

    def test_half_refund_inside_a_day(self) -> None:
        booking_id = self.create().data["id"]
        self.clock.advance(hours=20)

        result = self.engine.cancel_booking(booking_id, self.account_id)

        self.assertEqual(result.data["refund_amount"], Decimal("12.00"))
        self.assertEqual(Account.objects.get(pk=self.account_id).credit_balance, Decimal("18.00"))

    def test_exactly_twenty_four_hours_is_a_full_refund(self) -> None:
        booking_id = self.create().data["id"]
        self.clock.advance(hours=6)
        self.assertEqual(self.engine.cancel_booking(booking_id, self.account_id).data["refund_amount"], Decimal("24.00"))

    def test_cancellation_inside_cutoff_is_rejected(self) -> None:
        booking_id = self.create().data["id"]
        self.clock.advance(hours=28, minutes=1)

        result = self.engine.cancel_booking(booking_id, self.account_id)

        self.assertEqual(result.error_kind, "window_violation")
        self.assertEqual(Booking.objects.get(pk=booking_id).status, Booking.Status.PENDING)

    def test_exactly_two_hours_before_start_is_allowed(self) -> None:
        booking_id = self.create().data["id"]
        self.clock.advance(hours=28)
        self.assertTrue(self.engine.cancel_booking(booking_id, self.account_id).ok)

    def test_cancelled_booking_cannot_be_cancelled_again(self) -> None:
        booking_id = self.create().data["id"]
        self.engine.cancel_booking(booking_id, self.account_id)

        self.assertEqual(self.engine.cancel_booking(booking_id, self.account_id).error_kind, "invalid_transition")

    def test_other_accounts_cannot_see_the_booking(self) -> None:
        booking_id = self.create().data["id"]
        self.assertEqual(self.engine.cancel_booking(booking_id, "intruder").error_kind, "not_found")

    def test_cancelled_slot_can_be_booked_again(self) -> None:
        booking_id = self.create().data["id"]
        self.engine.cancel_booking(booking_id, self.account_id)
        self.assertTrue(self.create().ok)

    def test_unpaid_transfer_cancellation_refunds_nothing(self) -> None:
        booking_id = self.create(payment_method="external_proof", proof_reference="proof-1").data["id"]

        result = self.engine.cancel_booking(booking_id, self.account_id)

        self.assertEqual(result.data["refund_amount"], Decimal("0.00"))
        self.assertEqual(Payment.objects.get(booking_id=booking_id).status, Payment.Status.FAILED)
        self.assertEqual(Account.objects.get(pk=self.account_id).credit_balance, Decimal("30.00"))


class ModifyBookingTests(EngineFixturesMixin, TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.fund(self.account_id, "70.00")
        self.booking_id = self.create().data["id"]

    def test_moving_a_booking_keeps_the_price(self) -> None:
        result = self.engine.modify_booking(self.booking_id, self.account_id, new_start=self.start_in(hours=50))

        self.assertTrue(result.ok, result.to_dict())
        self.assertEqual(result.data["modification_count"], 1)
        self.assertEqual(result.data["amount"], "24.00")
        self.assertEqual(Account.objects.get(pk=self.account_id).credit_balance, Decimal("76.00"))

    def test_longer_booking_charges_the_difference(self) -> None:
        result = self.engine.modify_booking(self.booking_id, self.account_id, new_duration_hours=3)

        self.assertEqual(result.data["amount"], "36.00")
        self.assertEqual(Account.objects.get(pk=self.account_id).credit_balance, Decimal("64.00"))
        payment = Payment.objects.get(booking_id=self.booking_id)
        self.assertEqual(payment.amount, Decimal("36.00"))
        self.assertEqual(payment.settled_amount, Decimal("36.00"))

    def test_shorter_booking_refunds_the_difference(self) -> None:
        result = self.engine.modify_booking(self.booking_id, self.account_id, new_duration_hours=1)

        self.assertEqual(result.data["amount"], "12.00")
        self.assertEqual(Account.objects.get(pk=self.account_id).credit_balance, Decimal("88.00"))
        refund = CreditEntry.objects.get(entry_type=EntryType.REFUND)
        self.assertEqual(refund.amount, Decimal("12.00"))

    def test_moving_to_another_court_reprices(self) -> None:
        result = self.engine.modify_booking(self.booking_id, self.account_id, new_court_id=self.other_court.pk)

        self.assertEqual(result.data["court_id"], self.other_court.pk)
        self.assertEqual(result.data["amount"], "40.00")
        self.assertEqual(Account.objects.get(pk=self.account_id).credit_balance, Decimal("60.00"))

    def test_third_modification_is_rejected(self) -> None:
        self.assertTrue(self.engine.modify_booking(self.booking_id, self.account_id,
                                                   new_start=self.start_in(hours=40)).ok)
        self.assertTrue(self.engine.modify_booking(self.booking_id, self.account_id,
                                                   new_start=self.start_in(hours=45)).ok)

        result = self.engine.modify_booking(self.booking_id, self.account_id, new_start=self.start_in(hours=50))

        self.assertEqual(result.error_kind, "window_violation")
        self.assertEqual(Booking.objects.get(pk=self.booking_id).modification_count, MAX_MODIFICATIONS)

    def test_modification_inside_cutoff_is_rejected(self) -> None:
        self.clock.advance(hours=29)
        result = self.engine.modify_booking(self.booking_id, self.account_id, new_start=self.start_in(hours=10))
        self.assertEqual(result.error_kind, "window_violation")

    def test_new_start_must_respect_advance_buffer(self) -> None:
        result = self.engine.modify_booking(self.booking_id, self.account_id, new_start=self.start_in(minutes=10))
        self.assertEqual(result.error_kind, "window_violation")

    def test_modification_into_taken_slot_conflicts(self) -> None:
        self.fund("acc-2", "30.00")
        self.assertTrue(self.create(account_id="acc-2", start=self.start_in(hours=40)).ok)

        result = self.engine.modify_booking(self.booking_id, self.account_id, new_start=self.start_in(hours=41))

        self.assertEqual(result.error_kind, "conflict")
        self.assertEqual(Booking.objects.get(pk=self.booking_id).modification_count, 0)

    def test_overlapping_its_own_old_interval_is_allowed(self) -> None:
        result = self.engine.modify_booking(self.booking_id, self.account_id, new_start=self.start_in(hours=31))
        self.assertTrue(result.ok, result.to_dict())

    def test_nothing_to_modify_is_a_validation_error(self) -> None:
        self.assertEqual(self.engine.modify_booking(self.booking_id, self.account_id).error_kind, "validation_error")

    def test_cancelled_booking_cannot_be_modified(self) -> None:
        self.engine.cancel_booking(self.booking_id, self.account_id)
        result = self.engine.modify_booking(self.booking_id, self.account_id, new_duration_hours=1)
        self.assertEqual(result.error_kind, "invalid_transition")

    def test_external_payment_returns_to_pending_for_a_price_increase(self) -> None:
        booking_id = self.create(
            start=self.start_in(hours=60),
            payment_method="external_proof",
            proof_reference="proof-2",
        ).data["id"]
        payment = Payment.objects.get(booking_id=booking_id)
        self.engine.review_external_payment(payment.pk, "approve")

        result = self.engine.modify_booking(booking_id, self.account_id, new_duration_hours=3)

        payment.refresh_from_db()
        self.assertEqual(result.data["payment_status"], Booking.PaymentStatus.PENDING)
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.outstanding_amount, Decimal("12.00"))

        self.engine.review_external_payment(payment.pk, "approve")
        payment.refresh_from_db()
        self.assertEqual(payment.settled_amount, Decimal("36.00"))
        self.assertEqual(payment.status, Payment.Status.COMPLETED)


class ConfirmAndReviewTests(EngineFixturesMixin, TestCase):
    def test_confirm_pending_booking(self) -> None:
        booking_id = self.create().data["id"]

        result = self.engine.confirm_booking(booking_id, self.account_id)

        self.assertEqual(result.data["status"], Booking.Status.CONFIRMED)
        self.assertIsNotNone(result.data["confirmed_at"])
        self.assertEqual(self.engine.confirm_booking(booking_id, self.account_id).error_kind, "invalid_transition")

    def test_rejected_transfer_cannot_be_reopened_by_modification(self) -> None:
        booking_id = self.create(payment_method="external_proof", proof_reference="proof-2").data["id"]
        payment = Payment.objects.get(booking_id=booking_id)
        self.engine.review_external_payment(payment.pk, "reject", "wrong amount")

        result = self.engine.modify_booking(booking_id, self.account_id, new_duration_hours=1)

        self.assertEqual(result.error_kind, "invalid_transition")
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.FAILED)
        booking = Booking.objects.get(pk=booking_id)
        self.assertEqual(booking.payment_status, Booking.PaymentStatus.FAILED)
        self.assertEqual(booking.modification_count, 0)
        self.assertEqual(self.engine.review_external_payment(payment.pk, "approve").error_kind, "invalid_transition")

    def test_confirm_inside_cutoff_is_rejected(self) -> None:
        booking_id = self.create(start=self.start_in(hours=1)).data["id"]
        self.assertEqual(self.engine.confirm_booking(booking_id, self.account_id).error_kind, "window_violation")

    def test_approving_transfer_confirms_booking(self) -> None:
        booking_id = self.create(payment_method="external_proof", proof_reference="proof-1").data["id"]
        payment = Payment.objects.get(booking_id=booking_id)

        result = self.engine.review_external_payment(payment.pk, "approve", "looks right")

        self.assertTrue(result.ok, result.to_dict())
        booking = Booking.objects.get(pk=booking_id)
        self.assertEqual(booking.status, Booking.Status.CONFIRMED)
        self.assertEqual(booking.payment_status, Booking.PaymentStatus.PAID)
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertEqual(payment.settled_amount, Decimal("24.00"))
        self.assertEqual(payment.review_note, "looks right")
        self.assertEqual(
            self.engine.review_external_payment(payment.pk, "approve").error_kind,
            "invalid_transition",
        )

    def test_late_approval_does_not_confirm(self) -> None:
        booking_id = self.create(
            start=self.start_in(hours=3),
            payment_method="external_proof",
            proof_reference="proof-1",
        ).data["id"]
        self.clock.advance(hours=2)

        self.engine.review_external_payment(Payment.objects.get(booking_id=booking_id).pk, "approve")

        booking = Booking.objects.get(pk=booking_id)
        self.assertEqual(booking.status, Booking.Status.PENDING)
        self.assertEqual(booking.payment_status, Booking.PaymentStatus.PAID)

    def test_rejected_transfer_blocks_confirmation(self) -> None:
        booking_id = self.create(payment_method="external_proof", proof_reference="proof-1").data["id"]
        payment = Payment.objects.get(booking_id=booking_id)

        self.assertTrue(self.engine.review_external_payment(payment.pk, "reject", "blurry").ok)

        self.assertEqual(Booking.objects.get(pk=booking_id).payment_status, Booking.PaymentStatus.FAILED)
        self.assertEqual(self.engine.confirm_booking(booking_id, self.account_id).error_kind, "invalid_transition")

    def test_internal_payments_are_not_reviewed(self) -> None:
        booking_id = self.create().data["id"]
        payment = Payment.objects.get(booking_id=booking_id)
        self.assertEqual(self.engine.review_external_payment(payment.pk, "approve").error_kind, "invalid_transition")

    def test_review_input_is_validated(self) -> None:
        self.assertEqual(self.engine.review_external_payment("x", "maybe").error_kind, "validation_error")
        self.assertEqual(self.engine.review_external_payment("missing", "approve").error_kind, "not_found")


class AvailabilityAndLedgerTests(EngineFixturesMixin, TestCase):
    def test_check_availability(self) -> None:
        self.create()
        start = self.start_in(hours=30)

        busy = self.engine.check_availability(self.court.pk, start + timedelta(hours=1), start + timedelta(hours=3))
        free = self.engine.check_availability(self.court.pk, start + timedelta(hours=2), start + timedelta(hours=3))

        self.assertFalse(busy.data["available"])
        self.assertTrue(free.data["available"])
        self.assertEqual(self.engine.check_availability("nope", start, start + timedelta(hours=1)).error_kind,
                         "not_found")
        self.assertEqual(self.engine.check_availability(self.court.pk, start, start).error_kind, "validation_error")

    def test_ledger_stays_consistent_through_lifecycle(self) -> None:
        self.fund(self.account_id, "50.00")
        booking_id = self.create().data["id"]
        self.engine.modify_booking(booking_id, self.account_id, new_duration_hours=3)
        self.engine.modify_booking(booking_id, self.account_id, new_duration_hours=1)
        self.clock.advance(hours=10)
        self.engine.cancel_booking(booking_id, self.account_id)

        report = self.engine.verify_ledger(self.account_id)

        self.assertTrue(report.data["consistent"], report.data)
        self.assertEqual(report.data["credit_balance"], Decimal("74.00"))
        balances = self.engine.get_balances(self.account_id).data
        self.assertEqual(balances["credits"], Decimal("74.00"))

        history = self.engine.ledger_history(self.account_id).data
        self.assertEqual(len(history), 6)
        self.assertEqual(self.engine.ledger_history(self.account_id, currency="gold").error_kind, "validation_error")

    def test_unknown_account_has_zero_balances(self) -> None:
        balances = self.engine.get_balances("nobody").data
        self.assertEqual(balances["credits"], Decimal("0.00"))
        self.assertEqual(balances["points"], 0)
        self.assertEqual(self.engine.verify_ledger("nobody").error_kind, "not_found")

    def test_promo_preview(self) -> None:
        PromoCode.objects.create(code="HALF", discount_type=PromoCode.DiscountType.PERCENTAGE,
                                 discount_value=Decimal("50"))

        preview = self.engine.validate_promo_code("half", Decimal("24"))

        self.assertEqual(preview.data["discount_amount"], Decimal("12.00"))
        self.assertEqual(preview.data["final_amount"], Decimal("12.00"))
        self.assertEqual(self.engine.validate_promo_code("nope").error_kind, "validation_error")
