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
Periodic auto check-out of abandoned presence records.

The sweeper only deletes presence documents. Visit close-out and the counter
decrement happen in the delete trigger, the same path a manual check-out takes.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Optional

from firebase_functions import logger

from shared.config import Settings, get_settings
from shared.store import DocumentStore
from shared.time_utils import presence_timestamp, utc_now
from shared.types import PresenceRecord


class SweepReason(StrEnum):
    STALE = "stale"
    FUTURE_TIMESTAMP = "future_timestamp"
    MISSING_TIMESTAMP = "missing_timestamp"


@dataclass
class SweepReport:
    parks_scanned: int = 0
    records_scanned: int = 0
    deleted: int = 0
    failed: int = 0
    reasons: Counter = field(default_factory=Counter)


def classify_presence(
    data: Optional[dict],
    now: datetime,
    stale_after: timedelta,
    future_skew: timedelta,
) -> Optional[SweepReason]:
    """
    Returns why a presence record should be swept, or None to keep it.

    Records with no usable timestamp are swept, so a broken write cannot leave
    a phantom occupant behind forever.
    """
    checked_in_at = presence_timestamp(data)
    if checked_in_at is None:
        return SweepReason.MISSING_TIMESTAMP
    if checked_in_at > now + future_skew:
        return SweepReason.FUTURE_TIMESTAMP
    if checked_in_at < now - stale_after:
        return SweepReason.STALE
    return None


def find_sweep_candidates(
    records: list[PresenceRecord],
    now: datetime,
    settings: Settings,
) -> list[tuple[PresenceRecord, SweepReason]]:
    stale_after = timedelta(hours=settings.stale_presence_hours)
    future_skew = timedelta(hours=settings.future_skew_hours)
    candidates = []
    for record in records:
        reason = classify_presence(record.data, now, stale_after, future_skew)
        if reason is not None:
            candidates.append((record, reason))
    return candidates


def sweep_stale_presence(
    store: DocumentStore,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> SweepReport:
    settings = settings or get_settings()
    now = now or utc_now()

    records = list(store.iter_presence())
    report = SweepReport(
        parks_scanned=len({record.park_id for record in records}),
        records_scanned=len(records),
    )
    candidates = find_sweep_candidates(records, now, settings)
    if not candidates:
        logger.info(f"Sweep found nothing to check out ({report.records_scanned} active)")
        return report

    for record, reason in candidates:
        report.reasons[str(reason)] += 1
        logger.debug(
            f"Auto check-out {record.user_id} at park {record.park_id}: {reason}"
        )

    summary = store.delete_presence(
        (record.park_id, record.user_id) for record, _ in candidates
    )
    report.deleted = len(summary.deleted)
    report.failed = len(summary.failed)
    for park_id, user_id, error in summary.failed:
        logger.error(
            f"Failed to auto check-out {user_id} at park {park_id}: {error}",
            park_id=park_id,
            user_id=user_id,
        )

    logger.info(
        f"Sweep checked out {report.deleted} of {len(candidates)} candidates",
        parks_scanned=report.parks_scanned,
        records_scanned=report.records_scanned,
        failed=report.failed,
        reasons=dict(report.reasons),
    )
    return report
