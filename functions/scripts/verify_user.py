"""
Mark a single Firebase Auth user as email-verified.

Edit UID below, then run:

    python scripts/verify_user.py
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from firebase_admin import auth

from scripts.firebase_init import init_admin


logger = logging.getLogger(__name__)

# Replace with the user's UID
UID = "ne0jWiYYLTPJpKhiUzNo929Fx1c2"


def verify_email(uid: str) -> auth.UserRecord:
    return auth.update_user(uid, email_verified=True)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    try:
        init_admin()
        user = verify_email(UID)
    except Exception as e:
        logger.error("Failed to verify %s: %s", UID, e)
        return 1

    logger.info("Marked %s as emailVerified=%s", user.uid, user.email_verified)
    return 0


if __name__ == "__main__":
    sys.exit(main())
