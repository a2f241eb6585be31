"""Racing bookings for the same court slot from several threads."""

from __future__ import annotations

import threading

from django.conf import settings
from django.db import connection
from django.test import TransactionTestCase

from apps.bookings.models import Booking
from apps.bookings.tests.factories import EngineFixturesMixin

RACERS = 4


class ConcurrentBookingTests(EngineFixturesMixin, TransactionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.racer_ids = [f"racer-{n}" for n in range(RACERS)]
        for account_id in self.racer_ids:
            self.fund(account_id, "30.00")

    def test_only_one_booking_wins_a_contested_slot(self) -> None:
        barrier = threading.Barrier(RACERS)
        start = self.start_in(hours=30)
        outcomes: dict[str, str] = {}

        def race(account_id: str) -> None:
            try:
                barrier.wait(timeout=10)
                result = self.create(account_id=account_id, start=start)
                outcomes[account_id] = "ok" if result.ok else result.error_kind
            finally:
                connection.close()

        courtside = {**settings.COURTSIDE, "LOCK_TIMEOUT_SECONDS": 10}
        with self.settings(COURTSIDE=courtside):
            threads = [threading.Thread(target=race, args=(account_id,)) for account_id in self.racer_ids]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(30)

        self.assertEqual(len(outcomes), RACERS)
        self.assertEqual(sorted(outcomes.values()), ["conflict"] * (RACERS - 1) + ["ok"])
        winners = Booking.objects.filter(court=self.court, status__in=Booking.ACTIVE_STATUSES)
        self.assertEqual(winners.count(), 1)
        self.assertEqual(outcomes[winners.get().account_id], "ok")
