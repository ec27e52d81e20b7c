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


from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional


class OperationStatus(StrEnum):
    SUCCESS = "SUCCESS"
    NOOP = "NOOP"
    FAILED = "FAILED"


@dataclass
class OperationResult:
    """Outcome of one independent step inside a handler."""

    operation: str
    status: OperationStatus
    detail: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, operation: str, detail: Optional[str] = None) -> "OperationResult":
        return cls(operation=operation, status=OperationStatus.SUCCESS, detail=detail)

    @classmethod
    def noop(cls, operation: str, detail: Optional[str] = None) -> "OperationResult":
        return cls(operation=operation, status=OperationStatus.NOOP, detail=detail)

    @classmethod
    def failed(cls, operation: str, error: Exception | str) -> "OperationResult":
        return cls(operation=operation, status=OperationStatus.FAILED, error=str(error))

    @property
    def ok(self) -> bool:
        return self.status != OperationStatus.FAILED


@dataclass
class PresenceRecord:
    """A user currently checked in at a park (parks/{parkId}/active_users/{userId})."""

    park_id: str
    user_id: str
    data: dict = field(default_factory=dict)


@dataclass
class VisitRecord:
    """One check-in/check-out span in the visits ledger."""

    park_id: str
    user_id: str
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    day: Optional[str] = None
    opened_by: Optional[str] = None
    closed_by: Optional[str] = None
    created_at: Any = None  # Firestore timestamp (SERVER_TIMESTAMP on write)
    updated_at: Any = None

    @property
    def is_open(self) -> bool:
        return self.check_out_at is None


class ReservationStatus(StrEnum):
    RESERVED = "reserved"
    SENT = "sent"
    FAILED = "failed"


@dataclass
class DailyRecapReservation:
    """Create-if-absent marker for one recap push per user per UTC day."""

    user_id: str
    day: str
    local_date: str
    timezone: str
    status: ReservationStatus = ReservationStatus.RESERVED
    message_id: Optional[str] = None
    error: Optional[str] = None
    created_at: Any = None
    updated_at: Any = None

    @property
    def doc_id(self) -> str:
        return reservation_id(self.user_id, self.day)


def reservation_id(user_id: str, day: str) -> str:
    return f"{user_id}_{day}"


@dataclass
class OwnerProfile:
    """The subset of owners/{uid} the functions read."""

    uid: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    fcm_token: Optional[str] = None
    timezone: Optional[str] = None
