"""Promotions app package: promo codes applied at booking creation."""
