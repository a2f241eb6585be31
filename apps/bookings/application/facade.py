"""
Booking Engine facade

The single entry point collaborators (HTTP handlers, bots, admin tooling)
use. Every operation validates its input, runs the matching command handler
or service and returns a ``Result``; taxonomy errors become failed results,
anything else propagates.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from apps.accounts.ledger import CREDITS, LedgerStore
from apps.accounts.models import Account
from apps.accounts.serializers import CreditEntrySerializer, LedgerHistorySerializer, PointsEntrySerializer
from apps.bookings.application.command_handlers import (
    CancelBookingCommand,
    CancelBookingHandler,
    ConfirmBookingCommand,
    ConfirmBookingHandler,
    CreateBookingCommand,
    CreateBookingHandler,
    ModifyBookingCommand,
    ModifyBookingHandler,
)
from apps.bookings.serializers import (
    AvailabilitySerializer,
    BookingActionSerializer,
    BookingSerializer,
    CreateBookingSerializer,
    ModifyBookingSerializer,
)
from apps.bookings.services import check_conflict
from apps.courts.models import Court
from apps.finances.models import Payment
from apps.finances.serializers import PurchaseCreditsSerializer, ReviewDecisionSerializer
from apps.finances.services import PaymentCoordinator
from apps.promotions.services import compute_discount, get_valid_promo
from apps.rewards.serializers import (
    BonusPointsSerializer,
    CompleteTaskSerializer,
    RedeemRewardSerializer,
    UseRedemptionSerializer,
)
from apps.rewards.services import RewardEngine
from shared.application.result import Result, as_result
from shared.application.validation import validate_input
from shared.domain.exceptions import NotFoundError, ValidationError
from shared.domain.value_objects import ZERO, quantize_money
from shared.infrastructure.clock import Clock, IdGenerator, SystemClock, UlidGenerator


class BookingEngine:
    """Booking & ledger operations with ``Result`` envelopes."""

    def __init__(self, clock: Clock | None = None, ids: IdGenerator | None = None):
        self.clock = clock or SystemClock()
        self.ids = ids or UlidGenerator()
        self.ledger = LedgerStore(clock=self.clock, ids=self.ids)
        self.payments = PaymentCoordinator(ledger=self.ledger, clock=self.clock, ids=self.ids)
        self.rewards = RewardEngine(ledger=self.ledger, clock=self.clock, ids=self.ids)

    def _handler(self, handler_class):
        return handler_class(clock=self.clock, ids=self.ids, ledger=self.ledger, payments=self.payments)

    @staticmethod
    def _booking_data(booking) -> dict:
        return dict(BookingSerializer(booking).data)

    # ----- bookings -----

    @as_result
    def create_booking(
        self,
        account_id: str,
        court_id: str,
        start: datetime,
        duration_hours: int,
        court_count: int = 1,
        payment_method: str = Payment.Method.INTERNAL_BALANCE,
        promo_code: str | None = None,
        proof_reference: str | None = None,
    ) -> Result:
        data = validate_input(CreateBookingSerializer, {
            "account_id": account_id,
            "court_id": court_id,
            "start": start,
            "duration_hours": duration_hours,
            "court_count": court_count,
            "payment_method": payment_method,
            "promo_code": promo_code,
            "proof_reference": proof_reference,
        })
        booking = self._handler(CreateBookingHandler).handle(CreateBookingCommand(**data))
        return self._booking_data(booking)

    @as_result
    def modify_booking(
        self,
        booking_id: str,
        account_id: str,
        new_start: datetime | None = None,
        new_duration_hours: int | None = None,
        new_court_id: str | None = None,
    ) -> Result:
        data = validate_input(ModifyBookingSerializer, {
            "booking_id": booking_id,
            "account_id": account_id,
            "new_start": new_start,
            "new_duration_hours": new_duration_hours,
            "new_court_id": new_court_id,
        })
        data["new_court_id"] = data.get("new_court_id") or None
        booking = self._handler(ModifyBookingHandler).handle(ModifyBookingCommand(**data))
        return self._booking_data(booking)

    @as_result
    def cancel_booking(self, booking_id: str, account_id: str) -> Result:
        data = validate_input(BookingActionSerializer, {"booking_id": booking_id, "account_id": account_id})
        return self._handler(CancelBookingHandler).handle(CancelBookingCommand(**data))

    @as_result
    def confirm_booking(self, booking_id: str, account_id: str) -> Result:
        data = validate_input(BookingActionSerializer, {"booking_id": booking_id, "account_id": account_id})
        booking = self._handler(ConfirmBookingHandler).handle(ConfirmBookingCommand(**data))
        return self._booking_data(booking)

    @as_result
    def check_availability(self, court_id: str, start: datetime, end: datetime) -> Result:
        data = validate_input(AvailabilitySerializer, {"court_id": court_id, "start": start, "end": end})
        if not Court.objects.filter(pk=data["court_id"]).exists():
            raise NotFoundError(f"Court {court_id} not found", court_id=court_id)
        report = check_conflict(data["court_id"], data["start"], data["end"])
        return {"court_id": data["court_id"], "available": report.available}

    # ----- promo codes -----

    @as_result
    def validate_promo_code(self, code: str, amount: Decimal | None = None) -> Result:
        """Read-only preview of a promo code, optionally against a price."""
        promo = get_valid_promo(code, self.clock.now())
        preview = {
            "code": promo.code,
            "discount_type": promo.discount_type,
            "discount_value": promo.discount_value,
        }
        if amount is not None:
            price = quantize_money(amount)
            discount = compute_discount(promo, price)
            preview.update(discount_amount=discount, final_amount=max(price - discount, ZERO))
        return preview

    # ----- payments -----

    @as_result
    def review_external_payment(self, payment_id: str, decision: str, note: str = "") -> Result:
        data = validate_input(ReviewDecisionSerializer, {"decision": decision, "note": note})
        self.payments.review_external_payment(payment_id, data["decision"] == "approve", data["note"])
        return None

    @as_result
    def purchase_credits(self, account_id: str, package_id: str, proof_reference: str) -> Result:
        data = validate_input(PurchaseCreditsSerializer, {
            "account_id": account_id,
            "package_id": package_id,
            "proof_reference": proof_reference,
        })
        purchase = self.payments.purchase_credits(**data)
        return {
            "purchase_id": purchase.pk,
            "status": purchase.status,
            "credits": purchase.credits_amount,
            "bonus_credits": purchase.bonus_credits,
            "amount_paid": purchase.amount_paid,
        }

    @as_result
    def review_credit_purchase(self, purchase_id: str, decision: str, notes: str = "") -> Result:
        data = validate_input(ReviewDecisionSerializer, {"decision": decision, "note": notes})
        purchase = self.payments.review_credit_purchase(purchase_id, data["decision"] == "approve", data["note"])
        return {"purchase_id": purchase.pk, "status": purchase.status}

    # ----- tasks and rewards -----

    @as_result
    def complete_task(self, account_id: str, task_id: str, metadata: dict | None = None) -> Result:
        data = validate_input(CompleteTaskSerializer, {
            "account_id": account_id,
            "task_id": task_id,
            "metadata": metadata,
        })
        outcome = self.rewards.complete_task(data["account_id"], data["task_id"], data.get("metadata"))
        return {
            "task_id": outcome.task_id,
            "points_earned": outcome.points_earned,
            "completion_count": outcome.completion_count,
            "replayed": outcome.replayed,
        }

    @as_result
    def redeem_reward(self, account_id: str, reward_id: str) -> Result:
        data = validate_input(RedeemRewardSerializer, {"account_id": account_id, "reward_id": reward_id})
        outcome = self.rewards.redeem_reward(data["account_id"], data["reward_id"])
        return {
            "redemption_id": outcome.redemption_id,
            "points_spent": outcome.points_spent,
            "expires_at": outcome.expires_at,
        }

    @as_result
    def use_redemption(self, account_id: str, redemption_id: str) -> Result:
        data = validate_input(UseRedemptionSerializer, {"account_id": account_id, "redemption_id": redemption_id})
        redemption = self.rewards.use_redemption(data["account_id"], data["redemption_id"])
        return {"redemption_id": redemption.pk, "status": redemption.status, "used_at": redemption.used_at}

    @as_result
    def award_bonus_points(self, account_id: str, points: int, reason: str, reference: str = "") -> Result:
        data = validate_input(BonusPointsSerializer, {
            "account_id": account_id,
            "points": points,
            "reason": reason,
            "reference": reference,
        })
        awarded = self.rewards.award_bonus_points(
            data["account_id"], data["points"], data["reason"], reference=data["reference"]
        )
        return {"points_awarded": awarded}

    # ----- ledgers -----

    @as_result
    def get_balances(self, account_id: str) -> Result:
        account = Account.objects.filter(pk=account_id).first()
        return {
            "account_id": account_id,
            "credits": account.credit_balance if account else ZERO,
            "points": account.points_balance if account else 0,
        }

    @as_result
    def ledger_history(self, account_id: str, currency: str = CREDITS, limit: int = 50, offset: int = 0) -> Result:
        data = validate_input(LedgerHistorySerializer, {
            "account_id": account_id,
            "currency": currency,
            "limit": limit,
            "offset": offset,
        })
        entries = self.ledger.history(**data)
        serializer_class = CreditEntrySerializer if data["currency"] == CREDITS else PointsEntrySerializer
        return [dict(item) for item in serializer_class(entries, many=True).data]

    @as_result
    def verify_ledger(self, account_id: str) -> Result:
        if not account_id:
            raise ValidationError("Account id is required")
        report = self.ledger.reconcile(account_id)
        return {
            "account_id": report.account_id,
            "consistent": report.consistent,
            "credit_balance": report.credit_balance,
            "credit_ledger_total": report.credit_ledger_total,
            "points_balance": report.points_balance,
            "points_ledger_total": report.points_ledger_total,
        }
