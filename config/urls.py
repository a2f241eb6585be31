"""URL configuration for Courtside.

Only the Django admin is served from this project; the public transport
layer lives with the collaborators that call the booking engine.
"""
from django.contrib import admin  # type: ignore
from django.urls import path  # type: ignore

urlpatterns = [
    path('admin/', admin.site.urls),
]
