"""Input serializers for payment reviews and credit purchases."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

DECISIONS = (("approve", "Approve"), ("reject", "Reject"))


class ReviewDecisionSerializer(serializers.Serializer):
    """Administrative decision on a payment or purchase awaiting review."""

    decision = serializers.ChoiceField(choices=DECISIONS)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class PurchaseCreditsSerializer(serializers.Serializer):
    account_id = serializers.CharField(max_length=64)
    package_id = serializers.CharField(max_length=64)
    proof_reference = serializers.CharField(max_length=255)

