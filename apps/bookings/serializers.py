"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.finances.models import Payment
from shared.infrastructure.settings import engine_setting

from .models import Booking


def _max_duration() -> int:
    return int(engine_setting("MAX_BOOKING_HOURS"))


class CreateBookingSerializer(serializers.Serializer):
    """Input of a booking creation request."""

    account_id = serializers.CharField(max_length=64)
    court_id = serializers.CharField(max_length=64)
    start = serializers.DateTimeField()
    duration_hours = serializers.IntegerField(min_value=1)
    court_count = serializers.IntegerField(min_value=1, default=1)
    payment_method = serializers.ChoiceField(choices=Payment.Method.choices)
    promo_code = serializers.CharField(max_length=32, required=False, allow_blank=True, allow_null=True)
    proof_reference = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)

    def validate_duration_hours(self, value: int) -> int:
        if value > _max_duration():
            raise serializers.ValidationError(f"Bookings are limited to {_max_duration()} hours.")
        return value

    def validate_court_count(self, value: int) -> int:
        limit = int(engine_setting("MAX_COURTS_PER_BOOKING"))
        if value > limit:
            raise serializers.ValidationError(f"At most {limit} courts per booking.")
        return value

    def validate(self, attrs):  # type: ignore
        if attrs["payment_method"] == Payment.Method.EXTERNAL_PROOF and not attrs.get("proof_reference"):
            raise serializers.ValidationError({"proof_reference": ["Bank transfers require a payment proof."]})
        return attrs


class ModifyBookingSerializer(serializers.Serializer):
    """Input of a booking modification; at least one change is required."""

    booking_id = serializers.CharField(max_length=26)
    account_id = serializers.CharField(max_length=64)
    new_start = serializers.DateTimeField(required=False, allow_null=True)
    new_duration_hours = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    new_court_id = serializers.CharField(max_length=64, required=False, allow_null=True, allow_blank=True)

    def validate_new_duration_hours(self, value):  # type: ignore
        if value is not None and value > _max_duration():
            raise serializers.ValidationError(f"Bookings are limited to {_max_duration()} hours.")
        return value

    def validate(self, attrs):  # type: ignore
        if not any(attrs.get(name) for name in ("new_start", "new_duration_hours", "new_court_id")):
            raise serializers.ValidationError("Nothing to modify.")
        return attrs


class BookingActionSerializer(serializers.Serializer):
    booking_id = serializers.CharField(max_length=26)
    account_id = serializers.CharField(max_length=64)


class AvailabilitySerializer(serializers.Serializer):
    court_id = serializers.CharField(max_length=64)
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()

    def validate(self, attrs):  # type: ignore
        if attrs["start"] >= attrs["end"]:
            raise serializers.ValidationError("The end must be after the start.")
        return attrs


class BookingSerializer(serializers.ModelSerializer):
    """Booking as returned to collaborators."""

    account_id = serializers.ReadOnlyField()
    court_id = serializers.ReadOnlyField()
    promo_code = serializers.SlugRelatedField(slug_field="code", read_only=True)
    amount_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    payment_method = serializers.ReadOnlyField(source="payment.method")

    class Meta:
        model = Booking
        fields = [
            "id",
            "account_id",
            "court_id",
            "start_at",
            "end_at",
            "duration_hours",
            "court_count",
            "amount",
            "discount_amount",
            "amount_due",
            "promo_code",
            "status",
            "payment_status",
            "payment_method",
            "modification_count",
            "refund_amount",
            "confirmed_at",
            "cancelled_at",
            "completed_at",
            "created_at",
            "updated_at",
        ]
