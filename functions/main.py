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

# Cloud functions for the dog park backend - presence reconciliation,
# auto check-out, push notifications, profile mirroring and admin claims.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Third-party library imports
from firebase_admin import initialize_app, firestore
from firebase_functions import https_fn, logger, options, scheduler_fn
from firebase_functions.firestore_fn import (
    on_document_created,
    on_document_deleted,
    on_document_written,
    Event,
    Change,
    DocumentSnapshot,
)

# Local application imports
from admin import claims
from notifications import daily_recap, friends
from profiles import public_profile
from reconciliation import counters, sweeper
from shared.config import get_settings
from shared.constants import CHAT_MESSAGE_DOCUMENT, OWNER_DOCUMENT, PRESENCE_DOCUMENT
from shared.events import DocumentCreated, DocumentWritten, PresenceCreated, PresenceDeleted
from shared.store import FirestoreStore

SCHEDULED_FUNCTION_TIMEOUT = 300

initialize_app()


def _get_store() -> FirestoreStore:
    return FirestoreStore(firestore.client())


def handle_check_in(event: PresenceCreated) -> None:
    store = _get_store()
    counters.on_presence_created(store, event)
    try:
        friends.notify_friends_of_check_in(store, event.park_id, event.user_id)
    except Exception as e:
        logger.error(f"Friend check-in fan-out for {event.user_id} failed: {e}")


def handle_check_out(event: PresenceDeleted) -> None:
    counters.on_presence_deleted(_get_store(), event)


def handle_chat_message(event: DocumentCreated) -> None:
    park_id = event.params["parkId"]
    message_id = event.params["messageId"]
    try:
        friends.notify_friends_of_chat_message(
            _get_store(), park_id, message_id, event.after
        )
    except Exception as e:
        logger.error(f"Chat fan-out for message {message_id} failed: {e}")


def handle_owner_written(event: DocumentWritten) -> None:
    uid = event.params["uid"]
    action = public_profile.mirror_owner(
        _get_store(), uid, None if event.is_delete else event.after
    )
    logger.info(f"Public profile {action} for {uid}")


@on_document_created(document=PRESENCE_DOCUMENT)
def on_check_in(event: Event[DocumentSnapshot | None]) -> None:
    """
    Check-in: increments the park's userCount, opens a visit and tells friends
    who like this park. Triggered by creation of parks/{parkId}/active_users/{userId}.
    """
    handle_check_in(PresenceCreated.from_event(event))


@on_document_deleted(document=PRESENCE_DOCUMENT)
def on_check_out(event: Event[DocumentSnapshot | None]) -> None:
    """
    Check-out, manual or by the sweeper: decrements userCount and closes the
    open visit. Triggered by deletion of parks/{parkId}/active_users/{userId}.
    """
    handle_check_out(PresenceDeleted.from_event(event))


@on_document_created(document=CHAT_MESSAGE_DOCUMENT)
def notify_friend_chat_message(event: Event[DocumentSnapshot | None]) -> None:
    handle_chat_message(DocumentCreated.from_event(event))


@on_document_written(document=OWNER_DOCUMENT)
def mirror_owner_to_public_profile(
    event: Event[Change[DocumentSnapshot | None]],
) -> None:
    """Mirrors owners/{uid} into public_profiles/{uid}; deletes it with the owner."""
    handle_owner_written(DocumentWritten.from_event(event))


@scheduler_fn.on_schedule(
    schedule=get_settings().sweep_schedule,
    timeout_sec=SCHEDULED_FUNCTION_TIMEOUT,
)
def auto_checkout_inactive_users(event: scheduler_fn.ScheduledEvent) -> None:
    """
    Deletes presence records that are stale or carry an implausible timestamp.
    The delete trigger does the counter and visit bookkeeping.
    """
    sweeper.sweep_stale_presence(_get_store())


@scheduler_fn.on_schedule(
    schedule=get_settings().recap_schedule,
    timeout_sec=SCHEDULED_FUNCTION_TIMEOUT,
    memory=options.MemoryOption.MB_512,
)
def send_daily_recaps(event: scheduler_fn.ScheduledEvent) -> None:
    daily_recap.send_daily_recaps(_get_store())


@https_fn.on_call(enforce_app_check=True)
def set_admin(req: https_fn.CallableRequest) -> dict:
    """
    Promotes or demotes a user by uid. Only callers with { admin: true } may use it.

    Args:
        req (https_fn.CallableRequest): The request, containing uid and makeAdmin.

    Returns:
        { ok, uid, claims } with the user's merged custom claims.
    """
    return claims.set_admin_by_uid(req.auth, req.data)


@https_fn.on_call(enforce_app_check=True)
def set_admin_by_email(req: https_fn.CallableRequest) -> dict:
    """Same as set_admin, resolving the user by email."""
    return claims.set_admin_by_email(req.auth, req.data)
