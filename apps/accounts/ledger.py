"""Ledger store: the only code path that changes account balances.

Every balance change appends one immutable entry and updates the cached
balance on the account row inside the caller's transaction, with the account
row locked. A debit that would take a balance below zero raises
InsufficientFundsError before anything is written.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import structlog
from django.db import transaction  # type: ignore
from django.db.models import Sum  # type: ignore

from shared.domain.exceptions import InsufficientFundsError, NotFoundError, ValidationError
from shared.domain.value_objects import ZERO, quantize_money
from shared.infrastructure.clock import Clock, IdGenerator, SystemClock, UlidGenerator
from shared.infrastructure.locks import lock_queryset_if_possible

from .models import Account, CreditEntry, EntryType, PointsEntry

logger = structlog.get_logger(__name__)

CREDITS = "credits"
POINTS = "points"

_ENTRY_MODELS = {CREDITS: CreditEntry, POINTS: PointsEntry}
_BALANCE_FIELDS = {CREDITS: "credit_balance", POINTS: "points_balance"}


@dataclass(frozen=True)
class LedgerReconciliation:
    account_id: str
    credit_balance: Decimal
    credit_ledger_total: Decimal
    points_balance: int
    points_ledger_total: int

    @property
    def consistent(self) -> bool:
        return (
            self.credit_balance == self.credit_ledger_total
            and self.points_balance == self.points_ledger_total
        )


class LedgerStore:
    """Credits and points ledgers for all accounts."""

    def __init__(self, clock: Clock | None = None, ids: IdGenerator | None = None):
        self.clock = clock or SystemClock()
        self.ids = ids or UlidGenerator()

    # ----- accounts -----

    def lock_account(self, account_id: str) -> Account:
        """
        Return the account row locked for update, creating it on first contact.

        Must be called inside the operation's transaction.
        """
        self._require_atomic()
        if not account_id:
            raise ValidationError("Account id is required")
        now = self.clock.now()
        Account.objects.get_or_create(id=account_id, defaults={"created_at": now, "updated_at": now})
        return lock_queryset_if_possible(Account.objects.filter(pk=account_id)).get()

    def get_account(self, account_id: str) -> Account:
        try:
            return Account.objects.get(pk=account_id)
        except Account.DoesNotExist:
            raise NotFoundError(f"Account {account_id} not found", account_id=account_id)

    # ----- credits -----

    def add_credits(self, account: Account, amount, entry_type: str, source: str, *,
                    reference_id: str = "", description: str = "",
                    metadata: dict[str, Any] | None = None) -> CreditEntry:
        amount = quantize_money(amount)
        if amount <= ZERO:
            raise ValidationError("Credit amount must be positive", amount=amount)
        return self._post(account, CREDITS, amount, entry_type, source, reference_id, description, metadata)

    def spend_credits(self, account: Account, amount, source: str, *,
                      entry_type: str = EntryType.SPENT, reference_id: str = "",
                      description: str = "", metadata: dict[str, Any] | None = None) -> CreditEntry:
        amount = quantize_money(amount)
        if amount <= ZERO:
            raise ValidationError("Debit amount must be positive", amount=amount)
        if account.credit_balance < amount:
            raise InsufficientFundsError(CREDITS, required=amount, available=account.credit_balance)
        return self._post(account, CREDITS, -amount, entry_type, source, reference_id, description, metadata)

    # ----- points -----

    def add_points(self, account: Account, points: int, entry_type: str, source: str, *,
                   reference_id: str = "", description: str = "",
                   metadata: dict[str, Any] | None = None) -> PointsEntry:
        if int(points) <= 0:
            raise ValidationError("Points amount must be positive", points=points)
        return self._post(account, POINTS, int(points), entry_type, source, reference_id, description, metadata)

    def spend_points(self, account: Account, points: int, source: str, *,
                     entry_type: str = EntryType.SPENT, reference_id: str = "",
                     description: str = "", metadata: dict[str, Any] | None = None) -> PointsEntry:
        points = int(points)
        if points <= 0:
            raise ValidationError("Points amount must be positive", points=points)
        if account.points_balance < points:
            raise InsufficientFundsError(POINTS, required=points, available=account.points_balance)
        return self._post(account, POINTS, -points, entry_type, source, reference_id, description, metadata)

    # ----- queries -----

    def has_entry(self, account_id: str, currency: str, source: str, reference_id: str) -> bool:
        model = _ENTRY_MODELS[currency]
        return model.objects.filter(account_id=account_id, source=source, reference_id=reference_id).exists()

    def net_amount(self, account_id: str, currency: str, source: str, reference_id: str):
        """Signed total of the entries one source wrote for one reference."""
        model = _ENTRY_MODELS[currency]
        total = model.objects.filter(
            account_id=account_id, source=source, reference_id=reference_id
        ).aggregate(total=Sum("amount"))["total"]
        if currency == CREDITS:
            return quantize_money(total or ZERO)
        return int(total or 0)

    def history(self, account_id: str, currency: str, limit: int = 50, offset: int = 0):
        model = _ENTRY_MODELS[currency]
        return list(model.objects.filter(account_id=account_id).order_by("-created_at", "-id")[offset:offset + limit])

    def reconcile(self, account_id: str) -> LedgerReconciliation:
        """Compare cached balances with the sum of each ledger."""
        account = self.get_account(account_id)
        credit_total = CreditEntry.objects.filter(account_id=account_id).aggregate(total=Sum("amount"))["total"]
        points_total = PointsEntry.objects.filter(account_id=account_id).aggregate(total=Sum("amount"))["total"]
        report = LedgerReconciliation(
            account_id=account_id,
            credit_balance=account.credit_balance,
            credit_ledger_total=quantize_money(credit_total or ZERO),
            points_balance=account.points_balance,
            points_ledger_total=int(points_total or 0),
        )
        if not report.consistent:
            logger.error("ledger_mismatch", account_id=account_id, report=repr(report))
        return report

    # ----- internals -----

    def _post(self, account: Account, currency: str, signed_amount, entry_type: str, source: str,
              reference_id: str, description: str, metadata: dict[str, Any] | None):
        self._require_atomic()
        now = self.clock.now()
        balance_field = _BALANCE_FIELDS[currency]
        setattr(account, balance_field, getattr(account, balance_field) + signed_amount)
        account.updated_at = now
        account.save(update_fields=[balance_field, "updated_at"])

        entry = _ENTRY_MODELS[currency].objects.create(
            id=self.ids.new_id(),
            account=account,
            amount=signed_amount,
            entry_type=entry_type,
            source=source,
            reference_id=reference_id or "",
            description=description or f"{entry_type} {currency}",
            metadata=metadata or {},
            created_at=now,
        )
        logger.info(
            "ledger_entry_written",
            account_id=account.pk,
            currency=currency,
            amount=str(signed_amount),
            entry_type=entry_type,
            source=source,
            reference_id=reference_id,
            balance=str(getattr(account, balance_field)),
        )
        return entry

    @staticmethod
    def _require_atomic() -> None:
        if not transaction.get_connection().in_atomic_block:
            raise RuntimeError("Ledger writes must run inside a unit of work")
