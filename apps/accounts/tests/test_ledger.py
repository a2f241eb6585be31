"""Tests for the credits and points ledgers."""

from __future__ import annotations

from decimal import Decimal

from django.db import transaction
from django.test import TestCase

from apps.accounts.ledger import CREDITS, POINTS, LedgerStore
from apps.accounts.models import Account, CreditEntry, EntrySource, EntryType, PointsEntry
from shared.domain.exceptions import InsufficientFundsError, NotFoundError, ValidationError
from shared.infrastructure.clock import FixedClock


class LedgerStoreTests(TestCase):
    def setUp(self) -> None:
        self.clock = FixedClock()
        self.ledger = LedgerStore(clock=self.clock)

    def _topup(self, account_id: str, amount: str) -> None:
        with transaction.atomic():
            account = self.ledger.lock_account(account_id)
            self.ledger.add_credits(account, Decimal(amount), EntryType.PURCHASE, EntrySource.CREDIT_PURCHASE)

    def test_account_is_created_on_first_contact(self) -> None:
        with transaction.atomic():
            account = self.ledger.lock_account("acc-1")

        self.assertEqual(account.credit_balance, Decimal("0.00"))
        self.assertEqual(account.points_balance, 0)
        self.assertEqual(Account.objects.count(), 1)

    def test_debit_writes_spent_entry_and_updates_balance(self) -> None:
        self._topup("acc-1", "30.00")

        with transaction.atomic():
            account = self.ledger.lock_account("acc-1")
            entry = self.ledger.spend_credits(account, Decimal("24.00"), EntrySource.BOOKING, reference_id="b-1")

        self.assertEqual(entry.amount, Decimal("-24.00"))
        self.assertEqual(entry.entry_type, EntryType.SPENT)
        self.assertEqual(Account.objects.get(pk="acc-1").credit_balance, Decimal("6.00"))
        self.assertTrue(self.ledger.reconcile("acc-1").consistent)

    def test_overdraft_is_rejected_before_any_write(self) -> None:
        self._topup("acc-1", "10.00")

        with self.assertRaises(InsufficientFundsError) as ctx:
            with transaction.atomic():
                account = self.ledger.lock_account("acc-1")
                self.ledger.spend_credits(account, Decimal("24.00"), EntrySource.BOOKING)

        self.assertEqual(ctx.exception.details["shortfall"], Decimal("14.00"))
        self.assertEqual(CreditEntry.objects.filter(account_id="acc-1").count(), 1)
        self.assertEqual(Account.objects.get(pk="acc-1").credit_balance, Decimal("10.00"))

    def test_points_cannot_go_negative(self) -> None:
        with transaction.atomic():
            account = self.ledger.lock_account("acc-1")
            self.ledger.add_points(account, 40, EntryType.EARNED, EntrySource.TASK_COMPLETION)

        with self.assertRaises(InsufficientFundsError):
            with transaction.atomic():
                account = self.ledger.lock_account("acc-1")
                self.ledger.spend_points(account, 50, EntrySource.REWARD_REDEMPTION)

        self.assertEqual(Account.objects.get(pk="acc-1").points_balance, 40)
        self.assertEqual(PointsEntry.objects.count(), 1)

    def test_non_positive_amounts_are_rejected(self) -> None:
        with transaction.atomic():
            account = self.ledger.lock_account("acc-1")
            with self.assertRaises(ValidationError):
                self.ledger.add_credits(account, Decimal("0"), EntryType.BONUS, EntrySource.ADMIN_ADJUSTMENT)
            with self.assertRaises(ValidationError):
                self.ledger.spend_points(account, -5, EntrySource.REWARD_REDEMPTION)

    def test_writes_outside_transaction_are_refused(self) -> None:
        account = Account.objects.create(id="acc-1", created_at=self.clock.now(), updated_at=self.clock.now())
        with self.assertRaises(RuntimeError):
            self.ledger.add_points(account, 5, EntryType.EARNED, EntrySource.TASK_COMPLETION)

    def test_entries_are_immutable(self) -> None:
        self._topup("acc-1", "5.00")
        entry = CreditEntry.objects.get()

        entry.description = "changed"
        with self.assertRaises(TypeError):
            entry.save()
        with self.assertRaises(TypeError):
            entry.delete()
        with self.assertRaises(TypeError):
            CreditEntry.objects.all().delete()

    def test_history_and_has_entry(self) -> None:
        self._topup("acc-1", "5.00")
        self.clock.advance(minutes=1)
        with transaction.atomic():
            account = self.ledger.lock_account("acc-1")
            self.ledger.spend_credits(account, Decimal("2.00"), EntrySource.BOOKING, reference_id="b-9")

        history = self.ledger.history("acc-1", CREDITS)
        self.assertEqual([entry.amount for entry in history], [Decimal("-2.00"), Decimal("5.00")])
        self.assertTrue(self.ledger.has_entry("acc-1", CREDITS, EntrySource.BOOKING, "b-9"))
        self.assertFalse(self.ledger.has_entry("acc-1", POINTS, EntrySource.BOOKING, "b-9"))

    def test_reconcile_unknown_account(self) -> None:
        with self.assertRaises(NotFoundError):
            self.ledger.reconcile("ghost")
