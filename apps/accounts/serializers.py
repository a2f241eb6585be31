"""Serializers for ledger queries."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .ledger import CREDITS, POINTS
from .models import CreditEntry, PointsEntry

LEDGER_FIELDS = ["id", "amount", "entry_type", "source", "reference_id", "description", "metadata", "created_at"]


class LedgerHistorySerializer(serializers.Serializer):
    account_id = serializers.CharField(max_length=64)
    currency = serializers.ChoiceField(choices=[CREDITS, POINTS], default=CREDITS)
    limit = serializers.IntegerField(min_value=1, max_value=500, default=50)
    offset = serializers.IntegerField(min_value=0, default=0)


class CreditEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = CreditEntry
        fields = LEDGER_FIELDS


class PointsEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = PointsEntry
        fields = LEDGER_FIELDS
