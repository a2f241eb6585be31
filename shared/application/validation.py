"""Input validation through DRF serializers."""

from __future__ import annotations

from typing import Any

from rest_framework import serializers  # type: ignore

from shared.domain.exceptions import ValidationError


def validate_input(serializer_class: type[serializers.Serializer], data: dict[str, Any]) -> dict[str, Any]:
    """
    Run ``serializer_class`` over ``data`` and return the validated data.

    Serializer errors are re-raised as ValidationError with the field errors
    in ``details["fields"]``.
    """
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        fields = {
            field: [str(message) for message in messages] if isinstance(messages, list) else str(messages)
            for field, messages in serializer.errors.items()
        }
        raise ValidationError("Invalid input", fields=fields)
    return dict(serializer.validated_data)
