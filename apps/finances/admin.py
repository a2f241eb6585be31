"""Admin registration for payments and credit purchases."""

from __future__ import annotations

from django.contrib import admin

from .models import CreditPackage, CreditPurchase, Payment, PaymentEvent


class PaymentEventInline(admin.TabularInline):
    model = PaymentEvent
    extra = 0
    can_delete = False
    fields = ("event", "amount", "payload", "created_at")
    readonly_fields = fields


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "account", "method", "status", "amount", "settled_amount", "refunded_amount")
    list_filter = ("method", "status")
    search_fields = ("id", "booking__id", "account__id", "proof_reference")
    inlines = (PaymentEventInline,)
    readonly_fields = ("amount", "settled_amount", "refunded_amount", "paid_at", "reviewed_at", "refunded_at")


@admin.register(CreditPackage)
class CreditPackageAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "price", "credits", "bonus_credits", "is_active", "sort_order")
    list_filter = ("is_active",)


@admin.register(CreditPurchase)
class CreditPurchaseAdmin(admin.ModelAdmin):
    list_display = ("id", "account", "package", "amount_paid", "status", "created_at", "reviewed_at")
    list_filter = ("status",)
    search_fields = ("id", "account__id", "proof_reference")
    readonly_fields = ("amount_paid", "credits_amount", "bonus_credits", "reviewed_at", "created_at", "updated_at")
