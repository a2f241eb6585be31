"""Admin registration for accounts and ledgers."""

from __future__ import annotations

from django.contrib import admin

from .models import Account, CreditEntry, PointsEntry


class ReadOnlyAdminMixin:
    """Balances and ledger entries are changed through the engine only."""

    def has_add_permission(self, request, obj=None):  # type: ignore[override]
        return False

    def has_change_permission(self, request, obj=None):  # type: ignore[override]
        return False

    def has_delete_permission(self, request, obj=None):  # type: ignore[override]
        return False


@admin.register(Account)
class AccountAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "credit_balance", "points_balance", "updated_at")
    search_fields = ("id",)


@admin.register(CreditEntry)
class CreditEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "account", "entry_type", "source", "amount", "reference_id", "created_at")
    list_filter = ("entry_type", "source")
    search_fields = ("account__id", "reference_id")


@admin.register(PointsEntry)
class PointsEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "account", "entry_type", "source", "amount", "reference_id", "created_at")
    list_filter = ("entry_type", "source")
    search_fields = ("account__id", "reference_id")
