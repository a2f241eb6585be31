"""Tests for payment settlement, reviews and credit purchases."""

from __future__ import annotations

from decimal import Decimal

from django.test import TestCase

from apps.accounts.models import Account, CreditEntry, EntrySource, EntryType, PointsEntry
from apps.bookings.tests.factories import EngineFixturesMixin
from apps.finances.models import CreditPackage, CreditPurchase, Payment, PaymentEvent
from apps.rewards.models import Task


class PaymentEventTrailTests(EngineFixturesMixin, TestCase):
    def test_internal_booking_records_charge(self) -> None:
        booking_id = self.create().data["id"]
        payment = Payment.objects.get(booking_id=booking_id)

        events = list(payment.events.values_list("event", "amount"))

        self.assertEqual(events, [(PaymentEvent.Kind.CHARGE, Decimal("24.00"))])
        self.assertEqual(payment.currency, "USD")
        self.assertEqual(payment.paid_at, self.clock.now())

    def test_modification_and_cancellation_are_traced(self) -> None:
        self.fund(self.account_id, "30.00")
        booking_id = self.create().data["id"]
        self.engine.modify_booking(booking_id, self.account_id, new_duration_hours=3)
        self.engine.cancel_booking(booking_id, self.account_id)

        kinds = list(
            PaymentEvent.objects.filter(payment__booking_id=booking_id)
            .order_by("id")
            .values_list("event", flat=True)
        )

        self.assertEqual(kinds, [PaymentEvent.Kind.CHARGE, PaymentEvent.Kind.DELTA_CHARGE, PaymentEvent.Kind.REFUND])
        payment = Payment.objects.get(booking_id=booking_id)
        self.assertEqual(payment.status, Payment.Status.REFUNDED)
        self.assertEqual(payment.refunded_amount, Decimal("36.00"))

    def test_rejected_transfer_is_traced_with_note(self) -> None:
        booking_id = self.create(payment_method="external_proof", proof_reference="proof-1").data["id"]
        payment = Payment.objects.get(booking_id=booking_id)

        self.engine.review_external_payment(payment.pk, "reject", "amount mismatch")

        rejected = payment.events.get(event=PaymentEvent.Kind.REJECTED)
        self.assertEqual(rejected.payload, {"note": "amount mismatch"})
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.FAILED)
        self.assertEqual(payment.reviewed_at, self.clock.now())

    def test_review_of_cancelled_booking_is_rejected(self) -> None:
        booking_id = self.create(payment_method="external_proof", proof_reference="proof-1").data["id"]
        payment = Payment.objects.get(booking_id=booking_id)
        self.engine.cancel_booking(booking_id, self.account_id)

        self.assertEqual(self.engine.review_external_payment(payment.pk, "approve").error_kind, "invalid_transition")


class CreditPurchaseTests(EngineFixturesMixin, TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.package = CreditPackage.objects.create(
            id="starter",
            name="Starter",
            price=Decimal("25.00"),
            credits=Decimal("25.00"),
            bonus_credits=Decimal("5.00"),
        )

    def test_purchase_waits_for_review(self) -> None:
        result = self.engine.purchase_credits("acc-2", "starter", "transfer-77")

        self.assertTrue(result.ok, result.to_dict())
        self.assertEqual(result.data["status"], CreditPurchase.Status.PENDING)
        self.assertEqual(result.data["credits"], Decimal("25.00"))
        self.assertEqual(Account.objects.get(pk="acc-2").credit_balance, Decimal("0.00"))

    def test_purchase_requires_proof_and_active_package(self) -> None:
        self.assertEqual(self.engine.purchase_credits("acc-2", "starter", "").error_kind, "validation_error")
        self.assertEqual(self.engine.purchase_credits("acc-2", "gold", "t-1").error_kind, "not_found")

    def test_approval_credits_package_with_bonus(self) -> None:
        Task.objects.create(id="credit-purchase", name="Buy credits", category="purchase",
                            points_reward=40, task_type=Task.TaskType.ONE_TIME)
        purchase_id = self.engine.purchase_credits("acc-2", "starter", "transfer-77").data["purchase_id"]

        with self.captureOnCommitCallbacks(execute=True):
            result = self.engine.review_credit_purchase(purchase_id, "approve", "received")

        self.assertEqual(result.data["status"], CreditPurchase.Status.APPROVED)
        account = Account.objects.get(pk="acc-2")
        self.assertEqual(account.credit_balance, Decimal("30.00"))
        entry = CreditEntry.objects.get(account_id="acc-2")
        self.assertEqual(entry.entry_type, EntryType.PURCHASE)
        self.assertEqual(entry.reference_id, purchase_id)

        bonus = PointsEntry.objects.get(source=EntrySource.CREDIT_PURCHASE_BONUS)
        self.assertEqual(bonus.amount, 50)
        self.assertEqual(account.points_balance, 90)

        again = self.engine.review_credit_purchase(purchase_id, "approve")
        self.assertEqual(again.error_kind, "invalid_transition")

    def test_rejection_writes_nothing(self) -> None:
        purchase_id = self.engine.purchase_credits("acc-2", "starter", "transfer-77").data["purchase_id"]

        result = self.engine.review_credit_purchase(purchase_id, "reject", "no transfer found")

        self.assertEqual(result.data["status"], CreditPurchase.Status.REJECTED)
        self.assertFalse(CreditEntry.objects.filter(account_id="acc-2").exists())
        self.assertEqual(CreditPurchase.objects.get(pk=purchase_id).admin_notes, "no transfer found")

    def test_approved_credits_can_pay_for_a_booking(self) -> None:
        purchase_id = self.engine.purchase_credits("acc-2", "starter", "transfer-77").data["purchase_id"]
        self.engine.review_credit_purchase(purchase_id, "approve")

        result = self.create(account_id="acc-2")

        self.assertTrue(result.ok, result.to_dict())
        self.assertEqual(self.engine.get_balances("acc-2").data["credits"], Decimal("6.00"))
