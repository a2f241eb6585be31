"""Serializers for task completion and reward redemption input."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore


class CompleteTaskSerializer(serializers.Serializer):
    account_id = serializers.CharField(max_length=64)
    task_id = serializers.CharField(max_length=64)
    metadata = serializers.DictField(required=False, allow_null=True, default=None)


class RedeemRewardSerializer(serializers.Serializer):
    account_id = serializers.CharField(max_length=64)
    reward_id = serializers.CharField(max_length=64)


class BonusPointsSerializer(serializers.Serializer):
    account_id = serializers.CharField(max_length=64)
    points = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=255)
    reference = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")


class UseRedemptionSerializer(serializers.Serializer):
    account_id = serializers.CharField(max_length=64)
    redemption_id = serializers.CharField(max_length=26)
