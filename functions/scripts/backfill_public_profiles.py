"""
Backfill public_profiles/{uid} from owners/{uid}.

Streams every owner document and merge-writes the public mirror through a
BulkWriter, logging progress as it goes.

    python scripts/backfill_public_profiles.py
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from firebase_admin import firestore

from profiles.public_profile import build_public_profile
from scripts.firebase_init import init_admin
from shared.config import get_settings
from shared.constants import OWNERS_COLLECTION, PUBLIC_PROFILES_COLLECTION


logger = logging.getLogger(__name__)


@dataclass
class BackfillTotals:
    processed: int = 0
    wrote: int = 0
    skipped: int = 0

    def __str__(self) -> str:
        return (
            f"processed={self.processed}, wrote={self.wrote}, skipped={self.skipped}"
        )


def backfill(db, *, progress_every: int) -> BackfillTotals:
    totals = BackfillTotals()
    writer = db.bulk_writer()
    public_profiles = db.collection(PUBLIC_PROFILES_COLLECTION)

    for snap in db.collection(OWNERS_COLLECTION).stream():
        totals.processed += 1
        data = snap.to_dict()
        if not data:
            totals.skipped += 1
        else:
            writer.set(
                public_profiles.document(snap.id),
                build_public_profile(data),
                merge=True,
            )
            totals.wrote += 1

        if totals.processed % progress_every == 0:
            logger.info("Progress: %s", totals)

    writer.close()
    return totals


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    try:
        init_admin()
    except Exception as e:
        logger.error("Failed to initialize Firebase Admin SDK: %s", e)
        return 1

    logger.info("Starting backfill from owners -> public_profiles ...")
    try:
        totals = backfill(
            firestore.client(), progress_every=get_settings().backfill_progress_every
        )
    except Exception as e:
        logger.exception("Backfill failed: %s", e)
        return 1

    logger.info("Backfill complete.")
    logger.info("Totals: %s", totals)
    return 0


if __name__ == "__main__":
    sys.exit(main())
