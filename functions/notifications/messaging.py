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
Push delivery through Firebase Cloud Messaging.

Sends never raise: each recipient gets a DeliveryResult, and tokens FCM
reports as permanently invalid are removed from owners/{uid}.fcmToken.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from firebase_admin import messaging
from firebase_admin.messaging import SenderIdMismatchError, UnregisteredError
from firebase_functions import logger

from shared.store import DocumentStore

# FCM accepts at most this many tokens per multicast call.
MULTICAST_LIMIT = 500

PERMANENT_TOKEN_ERRORS = (UnregisteredError, SenderIdMismatchError)


class DeliveryStatus(StrEnum):
    SENT = "sent"
    SKIPPED = "skipped"
    INVALID_TOKEN = "invalid_token"
    FAILED = "failed"


@dataclass
class Recipient:
    uid: str
    token: str


@dataclass
class DeliveryResult:
    uid: str
    status: DeliveryStatus
    message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.status == DeliveryStatus.SENT


def _stringify(data: Optional[dict]) -> dict[str, str]:
    return {k: str(v) for k, v in (data or {}).items() if v is not None}


def _prune_token(store: DocumentStore, uid: str, error: Exception) -> DeliveryResult:
    logger.warn(f"Clearing invalid FCM token for {uid}: {error}")
    try:
        store.clear_fcm_token(uid)
    except Exception as e:
        logger.error(f"Failed to clear FCM token for {uid}: {e}")
    return DeliveryResult(uid=uid, status=DeliveryStatus.INVALID_TOKEN, error=str(error))


def send_to_token(
    store: DocumentStore,
    recipient: Recipient,
    title: str,
    body: str,
    data: Optional[dict] = None,
) -> DeliveryResult:
    message = messaging.Message(
        token=recipient.token,
        notification=messaging.Notification(title=title, body=body),
        data=_stringify(data),
    )
    try:
        message_id = messaging.send(message)
    except PERMANENT_TOKEN_ERRORS as e:
        return _prune_token(store, recipient.uid, e)
    except Exception as e:
        logger.error(f"Push to {recipient.uid} failed: {e}")
        return DeliveryResult(uid=recipient.uid, status=DeliveryStatus.FAILED, error=str(e))
    return DeliveryResult(uid=recipient.uid, status=DeliveryStatus.SENT, message_id=message_id)


def send_to_owner(
    store: DocumentStore,
    uid: str,
    title: str,
    body: str,
    data: Optional[dict] = None,
) -> DeliveryResult:
    """Looks up the owner's token and sends; owners without a token are skipped."""
    try:
        owner = store.get_owner(uid)
    except Exception as e:
        logger.error(f"Failed to load owner {uid}: {e}")
        return DeliveryResult(uid=uid, status=DeliveryStatus.FAILED, error=str(e))
    if owner is None or not owner.fcm_token:
        return DeliveryResult(uid=uid, status=DeliveryStatus.SKIPPED)
    return send_to_token(store, Recipient(uid=uid, token=owner.fcm_token), title, body, data)


def send_multicast(
    store: DocumentStore,
    recipients: list[Recipient],
    title: str,
    body: str,
    data: Optional[dict] = None,
) -> list[DeliveryResult]:
    results: list[DeliveryResult] = []
    for start in range(0, len(recipients), MULTICAST_LIMIT):
        chunk = recipients[start : start + MULTICAST_LIMIT]
        message = messaging.MulticastMessage(
            tokens=[r.token for r in chunk],
            notification=messaging.Notification(title=title, body=body),
            data=_stringify(data),
        )
        try:
            batch = messaging.send_each_for_multicast(message)
        except Exception as e:
            logger.error(f"Multicast to {len(chunk)} recipients failed: {e}")
            results += [
                DeliveryResult(uid=r.uid, status=DeliveryStatus.FAILED, error=str(e))
                for r in chunk
            ]
            continue

        for recipient, response in zip(chunk, batch.responses):
            if response.success:
                results.append(
                    DeliveryResult(
                        uid=recipient.uid,
                        status=DeliveryStatus.SENT,
                        message_id=response.message_id,
                    )
                )
            elif isinstance(response.exception, PERMANENT_TOKEN_ERRORS):
                results.append(_prune_token(store, recipient.uid, response.exception))
            else:
                logger.error(f"Push to {recipient.uid} failed: {response.exception}")
                results.append(
                    DeliveryResult(
                        uid=recipient.uid,
                        status=DeliveryStatus.FAILED,
                        error=str(response.exception),
                    )
                )
    return results
