"""Admin registration for tasks and rewards."""

from __future__ import annotations

from django.contrib import admin

from .models import Reward, RewardRedemption, Task, TaskCompletion


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "category", "task_type", "points_reward", "max_completions", "is_active")
    list_filter = ("task_type", "category", "is_active")
    search_fields = ("id", "name")


@admin.register(TaskCompletion)
class TaskCompletionAdmin(admin.ModelAdmin):
    list_display = ("account", "task", "window_key", "completion_count", "points_earned", "last_completed_at")
    list_filter = ("task",)
    search_fields = ("account__id",)


@admin.register(Reward)
class RewardAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "category", "reward_type", "points_cost", "stock_quantity", "is_active")
    list_filter = ("reward_type", "category", "is_active")
    search_fields = ("id", "name")


@admin.register(RewardRedemption)
class RewardRedemptionAdmin(admin.ModelAdmin):
    list_display = ("id", "account", "reward", "points_spent", "status", "expires_at", "used_at")
    list_filter = ("status", "reward")
    search_fields = ("id", "account__id")
