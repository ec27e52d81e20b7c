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
Admin custom-claim management for the set_admin callables.
"""

from typing import Any, Optional

from firebase_admin import auth
from firebase_admin.auth import UserNotFoundError
from firebase_functions import https_fn, logger

from shared.constants import ADMIN_CLAIM


def require_admin(caller: Optional[https_fn.AuthData]) -> None:
    """Raises PERMISSION_DENIED unless the caller's token carries admin: true."""
    token = caller.token if caller is not None else None
    if not token or token.get(ADMIN_CLAIM) is not True:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.PERMISSION_DENIED,
            "Only admins can set admin.",
        )


def _parse(data: Any, key: str) -> tuple[str, bool]:
    data = data if isinstance(data, dict) else {}
    target = data.get(key)
    make_admin = data.get("makeAdmin")
    if not isinstance(target, str) or not target or not isinstance(make_admin, bool):
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            f"Provide {{ {key}: string, makeAdmin: boolean }}",
        )
    return target, make_admin


def _apply_admin_claim(user: auth.UserRecord, make_admin: bool) -> dict:
    claims = dict(user.custom_claims or {})
    claims[ADMIN_CLAIM] = make_admin
    auth.set_custom_user_claims(user.uid, claims)
    # Existing ID tokens keep the old claims until they are refreshed.
    auth.revoke_refresh_tokens(user.uid)
    return claims


def _set_admin(caller, data, key: str, lookup) -> dict:
    require_admin(caller)
    target, make_admin = _parse(data, key)
    try:
        user = lookup(target)
    except UserNotFoundError:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.NOT_FOUND, f"No user for {key} {target}."
        )
    except ValueError as e:
        raise https_fn.HttpsError(https_fn.FunctionsErrorCode.INVALID_ARGUMENT, str(e))

    claims = _apply_admin_claim(user, make_admin)
    logger.info(
        f"{caller.uid} set admin={make_admin} on {user.uid}",
        caller_uid=caller.uid,
        target_uid=user.uid,
    )
    return {"ok": True, "uid": user.uid, "claims": claims}


def set_admin_by_uid(caller: Optional[https_fn.AuthData], data: Any) -> dict:
    return _set_admin(caller, data, "uid", auth.get_user)


def set_admin_by_email(caller: Optional[https_fn.AuthData], data: Any) -> dict:
    return _set_admin(caller, data, "email", auth.get_user_by_email)
