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
from unittest.mock import patch

from notifications import friends
from notifications.messaging import DeliveryResult, DeliveryStatus
from shared.store import InMemoryStore


def _all_sent(store, recipients, title, body, data):
    return [
        DeliveryResult(uid=r.uid, status=DeliveryStatus.SENT, message_id=f"m-{r.uid}")
        for r in recipients
    ]


class FriendFanOutTest(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore()
        self.store.friends["u1"] = {"likes", "no_like", "no_token"}
        self.store.liked_parks = {"likes": {"p1"}, "no_token": {"p1"}}
        self.store.owners = {
            "likes": {"fcmToken": "tok-likes"},
            "no_like": {"fcmToken": "tok-no-like"},
            "no_token": {},
        }

    @patch("notifications.friends.messaging.send_multicast", side_effect=_all_sent)
    def test_check_in_notifies_friends_who_liked_park(self, mock_multicast):
        report = friends.notify_friends_of_check_in(self.store, "p1", "u1")

        _, recipients, title, _, data = mock_multicast.call_args.args
        self.assertEqual([r.uid for r in recipients], ["likes"])
        self.assertEqual(title, friends.CHECK_IN_TITLE)
        self.assertEqual(data, {"parkId": "p1", "friendId": "u1"})
        self.assertEqual(report.audience, 2)
        self.assertEqual(report.count(DeliveryStatus.SENT), 1)
        self.assertEqual(report.count(DeliveryStatus.SKIPPED), 1)

    @patch("notifications.friends.messaging.send_multicast", side_effect=_all_sent)
    def test_lookup_failure_for_one_friend_does_not_stop_fan_out(self, mock_multicast):
        original = self.store.has_liked_park

        def flaky(uid, park_id):
            if uid == "no_like":
                raise RuntimeError("read failed")
            return original(uid, park_id)

        with patch.object(self.store, "has_liked_park", side_effect=flaky):
            report = friends.notify_friends_of_check_in(self.store, "p1", "u1")

        self.assertEqual(report.count(DeliveryStatus.FAILED), 1)
        self.assertEqual(report.count(DeliveryStatus.SENT), 1)

    @patch("notifications.friends.messaging.send_multicast", side_effect=_all_sent)
    def test_chat_message_uses_sender(self, mock_multicast):
        report = friends.notify_friends_of_chat_message(
            self.store, "p1", "msg-9", {"senderId": "u1", "text": "woof"}
        )

        _, _, title, _, data = mock_multicast.call_args.args
        self.assertEqual(title, friends.CHAT_TITLE)
        self.assertEqual(data, {"parkId": "p1", "senderId": "u1", "messageId": "msg-9"})
        self.assertEqual(report.count(DeliveryStatus.SENT), 1)

    @patch("notifications.friends.messaging.send_multicast")
    def test_chat_message_without_sender_is_ignored(self, mock_multicast):
        report = friends.notify_friends_of_chat_message(self.store, "p1", "msg-9", {})

        self.assertEqual(report.audience, 0)
        mock_multicast.assert_not_called()

    @patch("notifications.friends.messaging.send_multicast")
    def test_no_friends_sends_nothing(self, mock_multicast):
        report = friends.notify_friends_of_check_in(self.store, "p1", "loner")

        self.assertEqual(report.results, [])
        mock_multicast.assert_not_called()


if __name__ == "__main__":
    unittest.main()
