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


import unittest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

from shared.events import DocumentWritten, PresenceCreated, PresenceDeleted
from shared.time_utils import duration_minutes, to_utc_datetime, utc_day_key

T0 = datetime(2026, 10, 19, 15, 0, 0, tzinfo=timezone.utc)


def _snapshot(data):
    snap = MagicMock()
    snap.exists = data is not None
    snap.to_dict.return_value = data
    return snap


class EventsTest(unittest.TestCase):
    def test_presence_created(self):
        event = SimpleNamespace(
            params={"parkId": "p1", "userId": "u1"},
            data=_snapshot({"checkedInAt": T0 - timedelta(seconds=2)}),
            time=T0,
            id="evt-1",
        )

        created = PresenceCreated.from_event(event)

        self.assertEqual((created.park_id, created.user_id), ("p1", "u1"))
        self.assertEqual(created.check_in_time, T0 - timedelta(seconds=2))
        self.assertEqual(created.event_id, "evt-1")

    def test_presence_created_without_timestamp_uses_event_time(self):
        event = SimpleNamespace(
            params={"parkId": "p1", "userId": "u1"},
            data=_snapshot({}),
            time="2026-10-19T15:00:00Z",
        )
        self.assertEqual(PresenceCreated.from_event(event).check_in_time, T0)

    def test_presence_deleted(self):
        event = SimpleNamespace(
            params={"parkId": "p1", "userId": "u1"},
            data=_snapshot({"checkedInAt": T0}),
            time=T0,
        )

        deleted = PresenceDeleted.from_event(event)

        self.assertEqual(deleted.before, {"checkedInAt": T0})
        self.assertEqual(deleted.time, T0)
        self.assertIsNone(deleted.event_id)

    def test_document_written_delete(self):
        event = SimpleNamespace(
            params={"uid": "u1"},
            data=SimpleNamespace(before=_snapshot({"displayName": "Rex"}), after=_snapshot(None)),
            time=T0,
        )

        written = DocumentWritten.from_event(event)

        self.assertTrue(written.is_delete)
        self.assertEqual(written.before, {"displayName": "Rex"})


class TimeUtilsTest(unittest.TestCase):
    def test_to_utc_datetime(self):
        self.assertEqual(to_utc_datetime(datetime(2026, 10, 19, 15, 0)), T0)
        self.assertEqual(to_utc_datetime(T0.timestamp()), T0)
        self.assertEqual(to_utc_datetime(T0.timestamp() * 1000), T0)
        self.assertEqual(to_utc_datetime("2026-10-19T17:00:00+02:00"), T0)
        self.assertIsNone(to_utc_datetime(True))
        self.assertIsNone(to_utc_datetime("yesterday"))
        self.assertIsNone(to_utc_datetime(float("nan")))

    def test_utc_day_key(self):
        self.assertEqual(utc_day_key(T0), "2026-10-19")

    def test_duration_minutes(self):
        self.assertEqual(duration_minutes(T0, T0 + timedelta(seconds=97)), 2)
        self.assertEqual(duration_minutes(T0, T0 + timedelta(seconds=89)), 1)
        self.assertEqual(duration_minutes(T0, T0 - timedelta(hours=1)), 0)


if __name__ == "__main__":
    unittest.main()
