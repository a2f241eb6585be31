"""Admin registration for courts."""

from __future__ import annotations

from django.contrib import admin

from .models import Court


@admin.register(Court)
class CourtAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "sport", "hourly_rate", "is_active", "updated_at")
    list_filter = ("sport", "is_active")
    search_fields = ("id", "name")
    readonly_fields = ("created_at", "updated_at")
