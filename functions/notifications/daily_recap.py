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
Daily recap push, sent once per owner per day inside a short local-time window.

The scheduler fires every few minutes, so several runs can see the same owner
inside the window. A reservation document keyed by (uid, UTC day) is created
with create-if-absent semantics; only the run that creates it sends.
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from enum import StrEnum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from firebase_functions import logger

from notifications import messaging
from notifications.messaging import Recipient
from shared.config import Settings, get_settings
from shared.store import DocumentStore
from shared.time_utils import duration_minutes, utc_day_key, utc_now
from shared.types import DailyRecapReservation, OwnerProfile, ReservationStatus, VisitRecord

RECAP_TITLE = "Your day at the park"


class RecapOutcome(StrEnum):
    OUTSIDE_WINDOW = "outside_window"
    ALREADY_RESERVED = "already_reserved"
    SENT = "sent"
    FAILED = "failed"


@dataclass
class RecapReport:
    owners_scanned: int = 0
    outcomes: Counter = field(default_factory=Counter)


def resolve_timezone(name: Optional[str], default: str) -> tzinfo:
    """Owner timezone, else the default, else UTC. Non-string values are ignored."""
    for candidate in (name, default):
        if not isinstance(candidate, str) or not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug(f"Unknown timezone {candidate!r}")
    return ZoneInfo("UTC")


def in_recap_window(now: datetime, tz: tzinfo, settings: Settings) -> bool:
    local = now.astimezone(tz)
    return local.hour == settings.recap_hour and local.minute < settings.recap_window_minutes


def local_midnight(now: datetime, tz: tzinfo) -> datetime:
    local = now.astimezone(tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def build_recap_body(visits: list[VisitRecord], now: datetime) -> str:
    if not visits:
        return "No park time today. Tomorrow is a new adventure!"
    parks = {visit.park_id for visit in visits}
    minutes = sum(
        visit.duration_minutes
        if visit.duration_minutes is not None
        else duration_minutes(visit.check_in_at, now)
        for visit in visits
    )
    visit_word = "visit" if len(visits) == 1 else "visits"
    park_word = "park" if len(parks) == 1 else "parks"
    return (
        f"You made {len(visits)} {visit_word} to {len(parks)} {park_word} "
        f"and spent {minutes} minutes outside today."
    )


def deliver_recap(
    store: DocumentStore,
    owner: OwnerProfile,
    now: datetime,
    settings: Settings,
) -> RecapOutcome:
    tz = resolve_timezone(owner.timezone, settings.default_timezone)
    if not in_recap_window(now, tz, settings):
        return RecapOutcome.OUTSIDE_WINDOW

    day = utc_day_key(now)
    reservation = DailyRecapReservation(
        user_id=owner.uid,
        day=day,
        local_date=now.astimezone(tz).date().isoformat(),
        timezone=str(tz),
    )
    if not store.create_reservation(reservation):
        return RecapOutcome.ALREADY_RESERVED

    try:
        visits = store.list_visits_since(owner.uid, local_midnight(now, tz))
        result = messaging.send_to_token(
            store,
            Recipient(uid=owner.uid, token=owner.fcm_token),
            RECAP_TITLE,
            build_recap_body(visits, now),
            {"type": "daily_recap", "day": day},
        )
    except Exception as e:
        logger.error(f"Daily recap for {owner.uid} failed: {e}")
        store.update_reservation(
            owner.uid, day, {"status": ReservationStatus.FAILED, "error": str(e)}
        )
        return RecapOutcome.FAILED

    if result.sent:
        store.update_reservation(
            owner.uid,
            day,
            {"status": ReservationStatus.SENT, "messageId": result.message_id},
        )
        return RecapOutcome.SENT
    store.update_reservation(
        owner.uid, day, {"status": ReservationStatus.FAILED, "error": result.error}
    )
    return RecapOutcome.FAILED


def _deliver_chunk(
    store: DocumentStore,
    owners: list[OwnerProfile],
    now: datetime,
    settings: Settings,
) -> list[RecapOutcome]:
    outcomes = []
    for owner in owners:
        try:
            outcomes.append(deliver_recap(store, owner, now, settings))
        except Exception as e:
            logger.error(f"Daily recap for {owner.uid} aborted: {e}")
            outcomes.append(RecapOutcome.FAILED)
    return outcomes


def send_daily_recaps(
    store: DocumentStore,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> RecapReport:
    settings = settings or get_settings()
    now = now or utc_now()

    owners = [owner for owner in store.iter_owners() if owner.fcm_token]
    report = RecapReport(owners_scanned=len(owners))
    size = settings.recap_chunk_size
    chunks = [owners[i : i + size] for i in range(0, len(owners), size)]

    with ThreadPoolExecutor(max_workers=settings.recap_max_workers) as pool:
        for outcomes in pool.map(
            lambda chunk: _deliver_chunk(store, chunk, now, settings), chunks
        ):
            report.outcomes.update(str(outcome) for outcome in outcomes)

    logger.info(
        f"Daily recap run: {report.outcomes[str(RecapOutcome.SENT)]} sent",
        owners_scanned=report.owners_scanned,
        outcomes=dict(report.outcomes),
    )
    return report
