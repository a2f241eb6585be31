"""Court catalogue models."""

from __future__ import annotations

from decimal import Decimal

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Court(models.Model):
    """A bookable physical court."""

    class Sport(models.TextChoices):
        TENNIS = "tennis", _("Tennis")
        PADEL = "padel", _("Padel")
        BADMINTON = "badminton", _("Badminton")
        BASKETBALL = "basketball", _("Basketball")
        FUTSAL = "futsal", _("Futsal")
        PICKLEBALL = "pickleball", _("Pickleball")

    id = models.SlugField(primary_key=True, max_length=64)
    name = models.CharField(max_length=120)
    sport = models.CharField(max_length=20, choices=Sport.choices)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2)
    is_active = models.BooleanField(default=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Court")
        verbose_name_plural = _("Courts")
        ordering = ["sport", "name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(hourly_rate__gte=Decimal("0.00")),
                name="court_hourly_rate_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.get_sport_display()})"
