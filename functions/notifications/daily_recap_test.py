# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


import threading
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from notifications import daily_recap
from notifications.daily_recap import RecapOutcome
from notifications.messaging import DeliveryResult, DeliveryStatus
from shared.config import Settings
from shared.store import InMemoryStore
from shared.types import OwnerProfile, ReservationStatus, VisitRecord

# 21:03 in New York (EDT, UTC-4) on 2026-10-19.
IN_WINDOW = datetime(2026, 10, 20, 1, 3, 0, tzinfo=timezone.utc)


def _sent(store, recipient, title, body, data):
    return DeliveryResult(uid=recipient.uid, status=DeliveryStatus.SENT, message_id="m-1")


class RecapWindowTest(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(recap_hour=21, recap_window_minutes=10)
        self.tz = daily_recap.resolve_timezone("America/New_York", "UTC")

    def test_window_bounds(self):
        self.assertTrue(daily_recap.in_recap_window(IN_WINDOW, self.tz, self.settings))
        self.assertTrue(
            daily_recap.in_recap_window(
                IN_WINDOW + timedelta(minutes=6), self.tz, self.settings
            )
        )
        self.assertFalse(
            daily_recap.in_recap_window(
                IN_WINDOW + timedelta(minutes=7), self.tz, self.settings
            )
        )
        self.assertFalse(
            daily_recap.in_recap_window(
                IN_WINDOW - timedelta(minutes=4), self.tz, self.settings
            )
        )

    def test_unknown_timezone_falls_back_to_default(self):
        tz = daily_recap.resolve_timezone("Mars/Olympus_Mons", "Europe/Berlin")
        self.assertEqual(str(tz), "Europe/Berlin")
        self.assertEqual(str(daily_recap.resolve_timezone(None, "")), "UTC")

    def test_non_string_timezone_falls_back_to_default(self):
        self.assertEqual(str(daily_recap.resolve_timezone(-5, "Europe/Berlin")), "Europe/Berlin")
        self.assertEqual(str(daily_recap.resolve_timezone(["UTC"], None)), "UTC")

    def test_local_midnight(self):
        midnight = daily_recap.local_midnight(IN_WINDOW, self.tz)
        self.assertEqual(
            midnight.astimezone(timezone.utc),
            datetime(2026, 10, 19, 4, 0, tzinfo=timezone.utc),
        )


class RecapBodyTest(unittest.TestCase):
    def test_no_visits(self):
        self.assertIn("No park time today", daily_recap.build_recap_body([], IN_WINDOW))

    def test_counts_closed_and_open_visits(self):
        visits = [
            VisitRecord(park_id="p1", user_id="u1", duration_minutes=30),
            VisitRecord(park_id="p2", user_id="u1", duration_minutes=15),
            VisitRecord(
                park_id="p1",
                user_id="u1",
                check_in_at=IN_WINDOW - timedelta(minutes=10),
            ),
        ]
        body = daily_recap.build_recap_body(visits, IN_WINDOW)
        self.assertEqual(
            body, "You made 3 visits to 2 parks and spent 55 minutes outside today."
        )


class DeliverRecapTest(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore()
        self.settings = Settings(recap_hour=21, recap_window_minutes=10)
        self.owner = OwnerProfile(
            uid="u1", fcm_token="tok-1", timezone="America/New_York"
        )

    @patch("notifications.daily_recap.messaging.send_to_token", side_effect=_sent)
    def test_outside_window_does_not_reserve(self, mock_send):
        outcome = daily_recap.deliver_recap(
            self.store, self.owner, IN_WINDOW + timedelta(hours=1), self.settings
        )
        self.assertEqual(outcome, RecapOutcome.OUTSIDE_WINDOW)
        self.assertEqual(self.store.reservations, {})
        mock_send.assert_not_called()

    @patch("notifications.daily_recap.messaging.send_to_token", side_effect=_sent)
    def test_sends_once_per_day_across_runs(self, mock_send):
        first = daily_recap.deliver_recap(self.store, self.owner, IN_WINDOW, self.settings)
        second = daily_recap.deliver_recap(
            self.store, self.owner, IN_WINDOW + timedelta(minutes=5), self.settings
        )

        self.assertEqual(first, RecapOutcome.SENT)
        self.assertEqual(second, RecapOutcome.ALREADY_RESERVED)
        mock_send.assert_called_once()
        reservation = self.store.reservations["u1_2026-10-20"]
        self.assertEqual(reservation.status, ReservationStatus.SENT)
        self.assertEqual(reservation.message_id, "m-1")
        self.assertEqual(reservation.local_date, "2026-10-19")
        self.assertEqual(reservation.timezone, "America/New_York")

    def test_concurrent_runs_send_exactly_once(self):
        barrier = threading.Barrier(2)
        sends = []

        def slow_send(store, recipient, title, body, data):
            sends.append(recipient.uid)
            return _sent(store, recipient, title, body, data)

        outcomes = []

        def run():
            barrier.wait()
            outcomes.append(
                daily_recap.deliver_recap(self.store, self.owner, IN_WINDOW, self.settings)
            )

        with patch(
            "notifications.daily_recap.messaging.send_to_token", side_effect=slow_send
        ):
            threads = [threading.Thread(target=run) for _ in range(2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        self.assertEqual(
            sorted(outcomes), sorted([RecapOutcome.SENT, RecapOutcome.ALREADY_RESERVED])
        )
        self.assertEqual(sends, ["u1"])

    @patch("notifications.daily_recap.messaging.send_to_token")
    def test_failed_send_marks_reservation_failed(self, mock_send):
        mock_send.return_value = DeliveryResult(
            uid="u1", status=DeliveryStatus.INVALID_TOKEN, error="unregistered"
        )

        outcome = daily_recap.deliver_recap(self.store, self.owner, IN_WINDOW, self.settings)

        self.assertEqual(outcome, RecapOutcome.FAILED)
        reservation = self.store.reservations["u1_2026-10-20"]
        self.assertEqual(reservation.status, ReservationStatus.FAILED)
        self.assertEqual(reservation.error, "unregistered")

    @patch("notifications.daily_recap.messaging.send_to_token", side_effect=_sent)
    def test_recap_counts_todays_visits_only(self, mock_send):
        self.store.visits["old"] = VisitRecord(
            park_id="p1",
            user_id="u1",
            check_in_at=datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc),
            duration_minutes=60,
        )
        self.store.visits["today"] = VisitRecord(
            park_id="p1",
            user_id="u1",
            check_in_at=datetime(2026, 10, 19, 20, 0, tzinfo=timezone.utc),
            duration_minutes=25,
        )

        daily_recap.deliver_recap(self.store, self.owner, IN_WINDOW, self.settings)

        body = mock_send.call_args.args[3]
        self.assertEqual(
            body, "You made 1 visit to 1 park and spent 25 minutes outside today."
        )


class SendDailyRecapsTest(unittest.TestCase):
    @patch("notifications.daily_recap.messaging.send_to_token", side_effect=_sent)
    def test_owner_with_numeric_timezone_still_gets_recap(self, mock_send):
        store = InMemoryStore()
        store.owners = {"u1": {"fcmToken": "t", "timezone": -5}}
        now = datetime(2026, 10, 19, 21, 3, 0, tzinfo=timezone.utc)

        report = daily_recap.send_daily_recaps(
            store, now=now, settings=Settings(default_timezone="UTC")
        )

        self.assertEqual(dict(report.outcomes), {"sent": 1})
        self.assertEqual(store.reservations["u1_2026-10-19"].timezone, "UTC")

    @patch("notifications.daily_recap.messaging.send_to_token", side_effect=_sent)
    def test_run_over_owners(self, mock_send):
        store = InMemoryStore()
        store.owners = {
            "ny": {"fcmToken": "t1", "timezone": "America/New_York"},
            "berlin": {"fcmToken": "t2", "timezone": "Europe/Berlin"},
            "silent": {"timezone": "America/New_York"},
        }
        for i in range(7):
            store.owners[f"ny{i}"] = {"fcmToken": f"t-ny{i}", "timezone": "America/New_York"}
        settings = Settings(recap_chunk_size=3, recap_max_workers=2)

        report = daily_recap.send_daily_recaps(store, now=IN_WINDOW, settings=settings)

        self.assertEqual(report.owners_scanned, 9)
        self.assertEqual(report.outcomes["sent"], 8)
        self.assertEqual(report.outcomes["outside_window"], 1)
        self.assertEqual(mock_send.call_count, 8)

        rerun = daily_recap.send_daily_recaps(
            store, now=IN_WINDOW + timedelta(minutes=5), settings=settings
        )
        self.assertEqual(rerun.outcomes["already_reserved"], 8)
        self.assertEqual(mock_send.call_count, 8)


if __name__ == "__main__":
    unittest.main()
