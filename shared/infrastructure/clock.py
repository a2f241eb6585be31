"""
Clock and id generation seams.

The engine never reads wall-clock time or mints identifiers ambiently; both
are injected so time-window rules can be exercised deterministically.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Protocol

from django.utils import timezone  # type: ignore
from ulid import ULID


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Timezone-aware wall clock backed by Django's ``timezone.now``."""

    def now(self) -> datetime:
        return timezone.now()


class FixedClock:
    """Manually driven clock for tests and replays."""

    def __init__(self, now: datetime | None = None):
        self._now = now or datetime(2030, 1, 1, 9, 0, tzinfo=dt_timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, **delta) -> datetime:
        self._now = self._now + timedelta(**delta)
        return self._now


class IdGenerator(Protocol):
    def new_id(self) -> str:
        ...


class UlidGenerator:
    """Lexicographically sortable, time ordered identifiers."""

    def new_id(self) -> str:
        return str(ULID())
