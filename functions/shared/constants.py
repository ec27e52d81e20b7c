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


# Firestore collections
PARKS_COLLECTION = "parks"
ACTIVE_USERS_COLLECTION = "active_users"
CHAT_COLLECTION = "chat"
VISITS_COLLECTION = "visits"
DAILY_RECAPS_COLLECTION = "daily_recaps"
OWNERS_COLLECTION = "owners"
LIKED_PARKS_COLLECTION = "likedParks"
FRIENDS_COLLECTION = "friends"
USER_FRIENDS_COLLECTION = "userFriends"
PUBLIC_PROFILES_COLLECTION = "public_profiles"

# Trigger path templates
PRESENCE_DOCUMENT = (
    PARKS_COLLECTION + "/{parkId}/" + ACTIVE_USERS_COLLECTION + "/{userId}"
)
CHAT_MESSAGE_DOCUMENT = PARKS_COLLECTION + "/{parkId}/" + CHAT_COLLECTION + "/{messageId}"
OWNER_DOCUMENT = OWNERS_COLLECTION + "/{uid}"

# Presence timestamp fields, in order of preference.
PRESENCE_TIMESTAMP_FIELDS = ("checkedInAt", "checkInAt", "createdAt")

# Visit provenance tags
OPENED_BY_CHECK_IN = "check_in"
CLOSED_BY_CHECK_OUT = "check_out"
CLOSED_BY_SUPERSEDED = "superseded"

# Public profile
DEFAULT_DISPLAY_NAME = "User"
MAX_DISPLAY_NAME_LENGTH = 60

# Admin claims
ADMIN_CLAIM = "admin"
