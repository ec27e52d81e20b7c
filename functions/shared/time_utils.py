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


import math
from datetime import datetime, timezone
from typing import Any, Optional

from shared.constants import PRESENCE_TIMESTAMP_FIELDS

# Epoch values above this are treated as milliseconds (~ year 5138 in seconds).
_EPOCH_MILLIS_CUTOFF = 1e11


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_datetime(value: Any) -> Optional[datetime]:
    """
    Coerces a stored timestamp into an aware UTC datetime.

    Accepts Firestore timestamps (DatetimeWithNanoseconds is a datetime),
    plain datetimes (naive values are taken as UTC), epoch seconds or
    milliseconds, and ISO-8601 strings. Returns None for anything else.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        seconds = value / 1000 if abs(value) > _EPOCH_MILLIS_CUTOFF else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_utc_datetime(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def utc_day_key(moment: datetime) -> str:
    """UTC calendar day, e.g. "2026-10-19"."""
    return to_utc_datetime(moment).date().isoformat()


def duration_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, rounded half up and never negative."""
    minutes = (end - start).total_seconds() / 60
    return max(0, int(math.floor(minutes + 0.5)))


def presence_timestamp(data: Optional[dict], fields=None) -> Optional[datetime]:
    """Returns the first usable timestamp on a presence record, if any."""
    for field in fields or PRESENCE_TIMESTAMP_FIELDS:
        moment = to_utc_datetime((data or {}).get(field))
        if moment is not None:
            return moment
    return None
