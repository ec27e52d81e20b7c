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
Typed views of Firestore trigger events.

The platform hands every handler a loosely typed CloudEvent; handlers convert
it once into one of the variants below and pass that downstream.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from shared.time_utils import presence_timestamp, to_utc_datetime, utc_now


def _snapshot_to_dict(snapshot: Any) -> Optional[dict]:
    if snapshot is None:
        return None
    if hasattr(snapshot, "exists") and not snapshot.exists:
        return None
    return snapshot.to_dict()


def _event_time(event: Any) -> datetime:
    return to_utc_datetime(getattr(event, "time", None)) or utc_now()


@dataclass(frozen=True)
class PresenceCreated:
    park_id: str
    user_id: str
    after: dict = field(default_factory=dict)
    time: datetime = field(default_factory=utc_now)
    event_id: Optional[str] = None

    @property
    def check_in_time(self) -> datetime:
        """Authoritative check-in instant, falling back to the event time."""
        return presence_timestamp(self.after) or self.time

    @classmethod
    def from_event(cls, event: Any) -> "PresenceCreated":
        return cls(
            park_id=event.params["parkId"],
            user_id=event.params["userId"],
            after=_snapshot_to_dict(event.data) or {},
            time=_event_time(event),
            event_id=getattr(event, "id", None),
        )


@dataclass(frozen=True)
class PresenceDeleted:
    park_id: str
    user_id: str
    before: dict = field(default_factory=dict)
    time: datetime = field(default_factory=utc_now)
    event_id: Optional[str] = None

    @classmethod
    def from_event(cls, event: Any) -> "PresenceDeleted":
        return cls(
            park_id=event.params["parkId"],
            user_id=event.params["userId"],
            before=_snapshot_to_dict(event.data) or {},
            time=_event_time(event),
            event_id=getattr(event, "id", None),
        )


@dataclass(frozen=True)
class DocumentWritten:
    params: dict
    before: Optional[dict] = None
    after: Optional[dict] = None
    time: datetime = field(default_factory=utc_now)
    event_id: Optional[str] = None

    @property
    def is_delete(self) -> bool:
        return self.after is None

    @classmethod
    def from_event(cls, event: Any) -> "DocumentWritten":
        change = event.data
        return cls(
            params=dict(event.params),
            before=_snapshot_to_dict(getattr(change, "before", None)),
            after=_snapshot_to_dict(getattr(change, "after", None)),
            time=_event_time(event),
            event_id=getattr(event, "id", None),
        )


@dataclass(frozen=True)
class DocumentCreated:
    params: dict
    after: dict = field(default_factory=dict)
    time: datetime = field(default_factory=utc_now)
    event_id: Optional[str] = None

    @classmethod
    def from_event(cls, event: Any) -> "DocumentCreated":
        return cls(
            params=dict(event.params),
            after=_snapshot_to_dict(event.data) or {},
            time=_event_time(event),
            event_id=getattr(event, "id", None),
        )

