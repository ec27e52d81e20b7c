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
Visits ledger: append-only check-in/check-out history derived from presence
records. Each (park, user) pair has at most one open visit at a time.
"""

from datetime import datetime
from typing import Optional

from firebase_functions import logger

from shared.constants import CLOSED_BY_SUPERSEDED, OPENED_BY_CHECK_IN
from shared.store import DocumentStore
from shared.time_utils import duration_minutes, to_utc_datetime, utc_day_key, utc_now
from shared.types import OperationResult, VisitRecord

CLOSE_OPERATION = "close_visit"
OPEN_OPERATION = "open_visit"


def close_latest_open_visit(
    store: DocumentStore,
    park_id: str,
    user_id: str,
    closed_by: str,
    close_time: Optional[datetime] = None,
) -> OperationResult:
    """
    Closes the most recent open visit for the pair.

    Returns a NOOP result when there is nothing to close, so calling this twice
    leaves the ledger exactly as one call would.
    """
    close_time = to_utc_datetime(close_time) or utc_now()
    found = store.find_latest_open_visit(park_id, user_id)
    if found is None:
        return OperationResult.noop(CLOSE_OPERATION, "no open visit")

    visit_id, visit = found
    check_in_at = to_utc_datetime(visit.check_in_at) or close_time
    minutes = duration_minutes(check_in_at, close_time)
    store.close_visit(
        visit_id,
        check_out_at=close_time,
        duration_minutes=minutes,
        closed_by=closed_by,
    )
    logger.info(
        f"Closed visit {visit_id} for {user_id} at park {park_id} ({minutes} min)",
        visit_id=visit_id,
        closed_by=closed_by,
    )
    return OperationResult.success(CLOSE_OPERATION, visit_id)


def open_visit(
    store: DocumentStore,
    park_id: str,
    user_id: str,
    check_in_time: datetime,
    opened_by: str = OPENED_BY_CHECK_IN,
) -> OperationResult:
    """Appends a new open visit starting at check_in_time."""
    check_in_time = to_utc_datetime(check_in_time)
    visit = VisitRecord(
        park_id=park_id,
        user_id=user_id,
        check_in_at=check_in_time,
        day=utc_day_key(check_in_time),
        opened_by=opened_by,
    )
    visit_id = store.add_visit(visit)
    logger.info(
        f"Opened visit {visit_id} for {user_id} at park {park_id}",
        visit_id=visit_id,
        day=visit.day,
    )
    return OperationResult.success(OPEN_OPERATION, visit_id)


def reopen_visit(
    store: DocumentStore,
    park_id: str,
    user_id: str,
    check_in_time: datetime,
) -> list[OperationResult]:
    """
    Closes any visit left open by a missed check-out, then opens a new one.

    The dangling visit is closed at the new check-in time. If the close step
    fails the new visit is not opened, so a second open row never appears.
    """
    closed = close_latest_open_visit(
        store, park_id, user_id, CLOSED_BY_SUPERSEDED, close_time=check_in_time
    )
    opened = open_visit(store, park_id, user_id, check_in_time)
    return [closed, opened]
