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
Public profile mirror: copies the non-sensitive owner fields into
public_profiles/{uid} so other users can read them.
"""

from typing import Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from shared.constants import DEFAULT_DISPLAY_NAME, MAX_DISPLAY_NAME_LENGTH
from shared.store import DocumentStore


def _clean(value) -> str:
    return str(value).strip() if value is not None else ""


def build_display_name(owner: Optional[dict]) -> str:
    """'First Last' when both names are set, else displayName, else a default."""
    owner = owner or {}
    first_name = _clean(owner.get("firstName"))
    last_name = _clean(owner.get("lastName"))
    if first_name and last_name:
        display_name = f"{first_name} {last_name}"
    else:
        display_name = _clean(owner.get("displayName"))
    return (display_name or DEFAULT_DISPLAY_NAME)[:MAX_DISPLAY_NAME_LENGTH]


def build_public_profile(owner: Optional[dict]) -> dict:
    public = {
        "displayName": build_display_name(owner),
        "updatedAt": SERVER_TIMESTAMP,
    }
    photo_url = (owner or {}).get("photoUrl")
    if isinstance(photo_url, str) and photo_url.strip():
        public["photoUrl"] = photo_url.strip()
    return public


def mirror_owner(store: DocumentStore, uid: str, owner: Optional[dict]) -> str:
    """Mirrors an owner write. Returns "deleted" or "updated"."""
    if not owner:
        store.delete_public_profile(uid)
        return "deleted"
    store.set_public_profile(uid, build_public_profile(owner))
    return "updated"
