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
Document store abstraction for Cloud Firestore and an in-memory test implementation.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, Iterator, Optional, Protocol

from dacite import Config, from_dict
from google.api_core import exceptions
from google.cloud.firestore_v1 import DELETE_FIELD, SERVER_TIMESTAMP, Increment, Query
from google.cloud.firestore_v1.base_query import FieldFilter

from shared.constants import (
    ACTIVE_USERS_COLLECTION,
    DAILY_RECAPS_COLLECTION,
    FRIENDS_COLLECTION,
    LIKED_PARKS_COLLECTION,
    OWNERS_COLLECTION,
    PARKS_COLLECTION,
    PUBLIC_PROFILES_COLLECTION,
    USER_FRIENDS_COLLECTION,
    VISITS_COLLECTION,
)
from shared.json_utils import convert_keys
from shared.time_utils import to_utc_datetime, utc_now
from shared.types import (
    DailyRecapReservation,
    OwnerProfile,
    PresenceRecord,
    VisitRecord,
    reservation_id,
)


class ParkNotFound(Exception):
    """Raised when a counter update targets a park document that does not exist."""


@dataclass
class DeleteSummary:
    deleted: list[tuple[str, str]] = field(default_factory=list)
    failed: list[tuple[str, str, str]] = field(default_factory=list)


class DocumentStore(Protocol):
    """Interface for the reads and writes the functions perform."""

    # Parks and presence
    def increment_user_count(self, park_id: str, delta: int) -> None:
        ...

    def iter_presence(self) -> Iterator[PresenceRecord]:
        ...

    def delete_presence(self, keys: Iterable[tuple[str, str]]) -> DeleteSummary:
        ...

    # Visits ledger
    def find_latest_open_visit(
        self, park_id: str, user_id: str
    ) -> Optional[tuple[str, VisitRecord]]:
        ...

    def add_visit(self, visit: VisitRecord) -> str:
        ...

    def close_visit(
        self,
        visit_id: str,
        *,
        check_out_at: datetime,
        duration_minutes: int,
        closed_by: str,
    ) -> None:
        ...

    def list_visits_since(self, user_id: str, since: datetime) -> list[VisitRecord]:
        ...

    # Daily recap reservations
    def create_reservation(self, reservation: DailyRecapReservation) -> bool:
        ...

    def update_reservation(self, user_id: str, day: str, fields: dict) -> None:
        ...

    # Owners and social graph
    def get_owner(self, uid: str) -> Optional[OwnerProfile]:
        ...

    def iter_owners(self) -> Iterator[OwnerProfile]:
        ...

    def clear_fcm_token(self, uid: str) -> None:
        ...

    def list_friend_ids(self, uid: str) -> list[str]:
        ...

    def has_liked_park(self, uid: str, park_id: str) -> bool:
        ...

    # Public profiles
    def set_public_profile(self, uid: str, data: dict) -> None:
        ...

    def delete_public_profile(self, uid: str) -> None:
        ...


def _to_owner(uid: str, data: Optional[dict]) -> OwnerProfile:
    return from_dict(
        data_class=OwnerProfile,
        data={**convert_keys(data or {}, "camel_to_snake"), "uid": uid},
        config=Config(check_types=False),
    )


def _to_visit(data: dict) -> VisitRecord:
    visit = from_dict(
        data_class=VisitRecord,
        data=convert_keys(data, "camel_to_snake"),
        config=Config(check_types=False),
    )
    visit.check_in_at = to_utc_datetime(visit.check_in_at)
    visit.check_out_at = to_utc_datetime(visit.check_out_at)
    return visit


class InMemoryStore:
    """Thread-safe in-memory store for development and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self.parks: Dict[str, dict] = {}
        self.presence: Dict[tuple[str, str], dict] = {}
        self.visits: Dict[str, VisitRecord] = {}
        self.reservations: Dict[str, DailyRecapReservation] = {}
        self.owners: Dict[str, dict] = {}
        self.friends: Dict[str, set[str]] = {}
        self.liked_parks: Dict[str, set[str]] = {}
        self.public_profiles: Dict[str, dict] = {}
        self.fail_deletes: set[tuple[str, str]] = set()

    def add_park(self, park_id: str, user_count: int = 0) -> None:
        with self._lock:
            self.parks[park_id] = {"userCount": user_count}

    def user_count(self, park_id: str) -> int:
        return self.parks[park_id]["userCount"]

    def put_presence(self, park_id: str, user_id: str, data: dict) -> None:
        with self._lock:
            self.presence[(park_id, user_id)] = dict(data)

    def increment_user_count(self, park_id: str, delta: int) -> None:
        with self._lock:
            park = self.parks.get(park_id)
            if park is None:
                raise ParkNotFound(park_id)
            park["userCount"] = park.get("userCount", 0) + delta
            park["updatedAt"] = utc_now()

    def iter_presence(self) -> Iterator[PresenceRecord]:
        with self._lock:
            snapshot = list(self.presence.items())
        for (park_id, user_id), data in snapshot:
            yield PresenceRecord(park_id=park_id, user_id=user_id, data=dict(data))

    def delete_presence(self, keys: Iterable[tuple[str, str]]) -> DeleteSummary:
        summary = DeleteSummary()
        for key in keys:
            if key in self.fail_deletes:
                summary.failed.append((key[0], key[1], "simulated failure"))
                continue
            with self._lock:
                self.presence.pop(key, None)
            summary.deleted.append(key)
        return summary

    def find_latest_open_visit(
        self, park_id: str, user_id: str
    ) -> Optional[tuple[str, VisitRecord]]:
        with self._lock:
            candidates = [
                (visit_id, replace(visit))
                for visit_id, visit in self.visits.items()
                if visit.park_id == park_id
                and visit.user_id == user_id
                and visit.check_out_at is None
            ]
        if not candidates:
            return None
        return max(candidates, key=lambda item: item[1].check_in_at)

    def add_visit(self, visit: VisitRecord) -> str:
        visit_id = uuid.uuid4().hex
        now = utc_now()
        with self._lock:
            self.visits[visit_id] = replace(visit, created_at=now, updated_at=now)
        return visit_id

    def close_visit(
        self,
        visit_id: str,
        *,
        check_out_at: datetime,
        duration_minutes: int,
        closed_by: str,
    ) -> None:
        with self._lock:
            visit = self.visits[visit_id]
            visit.check_out_at = check_out_at
            visit.duration_minutes = duration_minutes
            visit.closed_by = closed_by
            visit.updated_at = utc_now()

    def list_visits_since(self, user_id: str, since: datetime) -> list[VisitRecord]:
        with self._lock:
            return [
                replace(visit)
                for visit in self.visits.values()
                if visit.user_id == user_id and visit.check_in_at >= since
            ]

    def create_reservation(self, reservation: DailyRecapReservation) -> bool:
        with self._lock:
            if reservation.doc_id in self.reservations:
                return False
            self.reservations[reservation.doc_id] = replace(
                reservation, created_at=utc_now()
            )
            return True

    def update_reservation(self, user_id: str, day: str, fields: dict) -> None:
        with self._lock:
            reservation = self.reservations[reservation_id(user_id, day)]
            for key, value in convert_keys(fields, "camel_to_snake").items():
                setattr(reservation, key, value)
            reservation.updated_at = utc_now()

    def get_owner(self, uid: str) -> Optional[OwnerProfile]:
        data = self.owners.get(uid)
        if data is None:
            return None
        return _to_owner(uid, data)

    def iter_owners(self) -> Iterator[OwnerProfile]:
        for uid, data in list(self.owners.items()):
            yield _to_owner(uid, data)

    def clear_fcm_token(self, uid: str) -> None:
        with self._lock:
            self.owners.get(uid, {}).pop("fcmToken", None)

    def list_friend_ids(self, uid: str) -> list[str]:
        return sorted(self.friends.get(uid, set()))

    def has_liked_park(self, uid: str, park_id: str) -> bool:
        return park_id in self.liked_parks.get(uid, set())

    def set_public_profile(self, uid: str, data: dict) -> None:
        with self._lock:
            self.public_profiles.setdefault(uid, {}).update(data)

    def delete_public_profile(self, uid: str) -> None:
        with self._lock:
            self.public_profiles.pop(uid, None)


class FirestoreStore:
    """Cloud Firestore implementation backed by a firebase_admin client."""

    def __init__(self, db):
        self.db = db

    def _park_ref(self, park_id: str):
        return self.db.collection(PARKS_COLLECTION).document(park_id)

    def _reservation_ref(self, user_id: str, day: str):
        return self.db.collection(DAILY_RECAPS_COLLECTION).document(
            reservation_id(user_id, day)
        )

    def increment_user_count(self, park_id: str, delta: int) -> None:
        # Increment is applied server side, so concurrent triggers commute.
        try:
            self._park_ref(park_id).update(
                {"userCount": Increment(delta), "updatedAt": SERVER_TIMESTAMP}
            )
        except exceptions.NotFound as e:
            raise ParkNotFound(park_id) from e

    def iter_presence(self) -> Iterator[PresenceRecord]:
        for doc in self.db.collection_group(ACTIVE_USERS_COLLECTION).stream():
            park_ref = doc.reference.parent.parent
            if park_ref is None or park_ref.parent.id != PARKS_COLLECTION:
                continue
            yield PresenceRecord(
                park_id=park_ref.id, user_id=doc.id, data=doc.to_dict() or {}
            )

    def delete_presence(self, keys: Iterable[tuple[str, str]]) -> DeleteSummary:
        summary = DeleteSummary()
        lock = threading.Lock()

        def _key(reference) -> tuple[str, str]:
            return reference.parent.parent.id, reference.id

        def _on_result(reference, _write_result, _writer) -> None:
            with lock:
                summary.deleted.append(_key(reference))

        def _on_error(failure, _writer) -> bool:
            park_id, user_id = _key(failure.operation.reference)
            with lock:
                summary.failed.append((park_id, user_id, str(failure.message)))
            return False

        writer = self.db.bulk_writer()
        writer.on_write_result(_on_result)
        writer.on_write_error(_on_error)
        for park_id, user_id in keys:
            writer.delete(
                self._park_ref(park_id).collection(ACTIVE_USERS_COLLECTION).document(user_id)
            )
        writer.close()
        return summary

    def find_latest_open_visit(
        self, park_id: str, user_id: str
    ) -> Optional[tuple[str, VisitRecord]]:
        query = (
            self.db.collection(VISITS_COLLECTION)
            .where(filter=FieldFilter("parkId", "==", park_id))
            .where(filter=FieldFilter("userId", "==", user_id))
            .where(filter=FieldFilter("checkOutAt", "==", None))
            .order_by("checkInAt", direction=Query.DESCENDING)
            .limit(1)
        )
        for doc in query.stream():
            return doc.id, _to_visit(doc.to_dict())
        return None

    def add_visit(self, visit: VisitRecord) -> str:
        data = convert_keys(asdict(visit), "snake_to_camel")
        data["createdAt"] = SERVER_TIMESTAMP
        data["updatedAt"] = SERVER_TIMESTAMP
        _, doc_ref = self.db.collection(VISITS_COLLECTION).add(data)
        return doc_ref.id

    def close_visit(
        self,
        visit_id: str,
        *,
        check_out_at: datetime,
        duration_minutes: int,
        closed_by: str,
    ) -> None:
        self.db.collection(VISITS_COLLECTION).document(visit_id).set(
            {
                "checkOutAt": check_out_at,
                "durationMinutes": duration_minutes,
                "closedBy": closed_by,
                "updatedAt": SERVER_TIMESTAMP,
            },
            merge=True,
        )

    def list_visits_since(self, user_id: str, since: datetime) -> list[VisitRecord]:
        query = (
            self.db.collection(VISITS_COLLECTION)
            .where(filter=FieldFilter("userId", "==", user_id))
            .where(filter=FieldFilter("checkInAt", ">=", since))
        )
        return [_to_visit(doc.to_dict()) for doc in query.stream()]

    def create_reservation(self, reservation: DailyRecapReservation) -> bool:
        data = convert_keys(asdict(reservation), "snake_to_camel")
        data["status"] = str(reservation.status)
        data["createdAt"] = SERVER_TIMESTAMP
        data["updatedAt"] = SERVER_TIMESTAMP
        try:
            self._reservation_ref(reservation.user_id, reservation.day).create(data)
        except exceptions.AlreadyExists:
            return False
        return True

    def update_reservation(self, user_id: str, day: str, fields: dict) -> None:
        data = {k: str(v) if k == "status" else v for k, v in fields.items()}
        data["updatedAt"] = SERVER_TIMESTAMP
        self._reservation_ref(user_id, day).update(data)

    def get_owner(self, uid: str) -> Optional[OwnerProfile]:
        doc = self.db.collection(OWNERS_COLLECTION).document(uid).get()
        if not doc.exists:
            return None
        return _to_owner(uid, doc.to_dict())

    def iter_owners(self) -> Iterator[OwnerProfile]:
        for doc in self.db.collection(OWNERS_COLLECTION).stream():
            yield _to_owner(doc.id, doc.to_dict())

    def clear_fcm_token(self, uid: str) -> None:
        self.db.collection(OWNERS_COLLECTION).document(uid).update(
            {"fcmToken": DELETE_FIELD}
        )

    def list_friend_ids(self, uid: str) -> list[str]:
        friends = (
            self.db.collection(FRIENDS_COLLECTION)
            .document(uid)
            .collection(USER_FRIENDS_COLLECTION)
        )
        return [doc.id for doc in friends.stream()]

    def has_liked_park(self, uid: str, park_id: str) -> bool:
        doc = (
            self.db.collection(OWNERS_COLLECTION)
            .document(uid)
            .collection(LIKED_PARKS_COLLECTION)
            .document(park_id)
            .get()
        )
        return doc.exists

    def set_public_profile(self, uid: str, data: dict) -> None:
        self.db.collection(PUBLIC_PROFILES_COLLECTION).document(uid).set(
            data, merge=True
        )

    def delete_public_profile(self, uid: str) -> None:
        self.db.collection(PUBLIC_PROFILES_COLLECTION).document(uid).delete()
