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

"""
Friend fan-out pushes for park check-ins and park chat messages.

The audience is every friend of the actor who has liked the park. A failure
for one friend is logged and never stops the rest of the fan-out.
"""

from dataclasses import dataclass, field

from firebase_functions import logger

from notifications import messaging
from notifications.messaging import DeliveryResult, DeliveryStatus, Recipient
from shared.store import DocumentStore

CHECK_IN_TITLE = "Friend at your favorite park!"
CHECK_IN_BODY = "Your friend just checked into a park you like."
CHAT_TITLE = "New message in your favorite park!"
CHAT_BODY = "Your friend posted in a park chat you like."


@dataclass
class FanOutReport:
    audience: int = 0
    results: list[DeliveryResult] = field(default_factory=list)

    def count(self, status: DeliveryStatus) -> int:
        return sum(1 for r in self.results if r.status == status)


def _collect_recipients(
    store: DocumentStore, user_id: str, park_id: str, report: FanOutReport
) -> list[Recipient]:
    recipients = []
    for friend_id in store.list_friend_ids(user_id):
        try:
            if not store.has_liked_park(friend_id, park_id):
                continue
            report.audience += 1
            owner = store.get_owner(friend_id)
        except Exception as e:
            logger.error(f"Skipping friend {friend_id} of {user_id}: {e}")
            report.results.append(
                DeliveryResult(uid=friend_id, status=DeliveryStatus.FAILED, error=str(e))
            )
            continue
        if owner is None or not owner.fcm_token:
            report.results.append(
                DeliveryResult(uid=friend_id, status=DeliveryStatus.SKIPPED)
            )
            continue
        recipients.append(Recipient(uid=friend_id, token=owner.fcm_token))
    return recipients


def _fan_out(
    store: DocumentStore,
    user_id: str,
    park_id: str,
    title: str,
    body: str,
    data: dict,
) -> FanOutReport:
    report = FanOutReport()
    recipients = _collect_recipients(store, user_id, park_id, report)
    if recipients:
        report.results += messaging.send_multicast(store, recipients, title, body, data)
    logger.info(
        f"Fan-out for {user_id} at park {park_id}: "
        f"{report.count(DeliveryStatus.SENT)}/{report.audience} sent",
        skipped=report.count(DeliveryStatus.SKIPPED),
        failed=report.count(DeliveryStatus.FAILED),
        invalid_tokens=report.count(DeliveryStatus.INVALID_TOKEN),
    )
    return report


def notify_friends_of_check_in(
    store: DocumentStore, park_id: str, user_id: str
) -> FanOutReport:
    return _fan_out(
        store,
        user_id,
        park_id,
        CHECK_IN_TITLE,
        CHECK_IN_BODY,
        {"parkId": park_id, "friendId": user_id},
    )


def notify_friends_of_chat_message(
    store: DocumentStore, park_id: str, message_id: str, message: dict
) -> FanOutReport:
    sender_id = (message or {}).get("senderId")
    if not sender_id:
        logger.warn(f"Chat message {message_id} in park {park_id} has no senderId")
        return FanOutReport()
    return _fan_out(
        store,
        sender_id,
        park_id,
        CHAT_TITLE,
        CHAT_BODY,
        {"parkId": park_id, "senderId": sender_id, "messageId": message_id},
    )
