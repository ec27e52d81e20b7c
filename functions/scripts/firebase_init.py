"""
Admin SDK initialization shared by the maintenance scripts.

Auth options:
  A) Service account file:
     export GOOGLE_APPLICATION_CREDENTIALS="/path/to/sa.json"
  B) gcloud ADC:
     gcloud auth application-default login
"""

from __future__ import annotations

import logging
import os

import firebase_admin
from firebase_admin import credentials

logger = logging.getLogger(__name__)


def init_admin() -> firebase_admin.App:
    """Initializes the Admin SDK from a service account file or ADC."""
    sa_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if sa_path and os.path.isfile(sa_path):
        cred = credentials.Certificate(sa_path)
        app = firebase_admin.initialize_app(cred, {"projectId": cred.project_id})
        logger.info("Initialized Admin SDK with service account: %s", sa_path)
        return app

    app = firebase_admin.initialize_app(credentials.ApplicationDefault())
    logger.info("Initialized Admin SDK with application default credentials.")
    return app
