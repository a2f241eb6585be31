"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "court",
        "account",
        "status",
        "payment_status",
        "start_at",
        "end_at",
        "amount",
        "discount_amount",
        "modification_count",
    )
    list_filter = ("status", "payment_status", "court")
    search_fields = ("id", "account__id", "court__name")
    readonly_fields = (
        "id",
        "amount",
        "discount_amount",
        "modification_count",
        "refund_amount",
        "confirmed_at",
        "cancelled_at",
        "completed_at",
        "created_at",
        "updated_at",
    )
