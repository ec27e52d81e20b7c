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
Keeps parks/{parkId}.userCount and the visits ledger in step with presence
records. Only trigger events move the counter; clients never write it.
"""

from dataclasses import dataclass, field
from typing import Callable

from firebase_functions import logger

from reconciliation import visits
from shared.constants import CLOSED_BY_CHECK_OUT
from shared.events import PresenceCreated, PresenceDeleted
from shared.store import DocumentStore
from shared.types import OperationResult, OperationStatus

COUNTER_OPERATION = "update_user_count"


@dataclass
class ReconcileOutcome:
    park_id: str
    user_id: str
    results: list[OperationResult] = field(default_factory=list)
    event_id: str | None = None

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    def status_of(self, operation: str) -> OperationStatus | None:
        for result in self.results:
            if result.operation == operation:
                return result.status
        return None


def _run(operation: str, step: Callable[[], object]) -> list[OperationResult]:
    """Runs one independent step, turning any exception into a FAILED result."""
    try:
        outcome = step()
    except Exception as e:
        logger.error(f"{operation} failed: {e}", operation=operation)
        return [OperationResult.failed(operation, e)]
    if outcome is None:
        return [OperationResult.success(operation)]
    if isinstance(outcome, OperationResult):
        return [outcome]
    return list(outcome)


def _log_outcome(kind: str, outcome: ReconcileOutcome) -> None:
    fields = {
        "park_id": outcome.park_id,
        "user_id": outcome.user_id,
        "event_id": outcome.event_id,
        "results": {r.operation: str(r.status) for r in outcome.results},
    }
    if outcome.ok:
        logger.info(f"Reconciled {kind} for {outcome.user_id}", **fields)
    else:
        logger.warn(f"Partially reconciled {kind} for {outcome.user_id}", **fields)


def on_presence_created(store: DocumentStore, event: PresenceCreated) -> ReconcileOutcome:
    """
    Check-in: userCount += 1, then close any dangling visit and open a new one.

    A check-in for a pair that is already checked in (no delete in between)
    still increments the counter.
    """
    outcome = ReconcileOutcome(
        park_id=event.park_id, user_id=event.user_id, event_id=event.event_id
    )
    outcome.results += _run(
        COUNTER_OPERATION,
        lambda: store.increment_user_count(event.park_id, 1),
    )
    check_in_time = event.check_in_time
    outcome.results += _run(
        visits.OPEN_OPERATION,
        lambda: visits.reopen_visit(store, event.park_id, event.user_id, check_in_time),
    )
    _log_outcome("check-in", outcome)
    return outcome


def on_presence_deleted(store: DocumentStore, event: PresenceDeleted) -> ReconcileOutcome:
    """Check-out (manual or swept): userCount -= 1, then close the open visit."""
    outcome = ReconcileOutcome(
        park_id=event.park_id, user_id=event.user_id, event_id=event.event_id
    )
    outcome.results += _run(
        COUNTER_OPERATION,
        lambda: store.increment_user_count(event.park_id, -1),
    )
    outcome.results += _run(
        visits.CLOSE_OPERATION,
        lambda: visits.close_latest_open_visit(
            store,
            event.park_id,
            event.user_id,
            CLOSED_BY_CHECK_OUT,
            close_time=event.time,
        ),
    )
    _log_outcome("check-out", outcome)
    return outcome
