# file: services/firebase.py

import json
import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials

from config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _load_credentials(raw: Optional[str]):
    if not raw:
        return credentials.ApplicationDefault()
    if raw.strip().startswith("{"):
        try:
            return credentials.Certificate(json.loads(raw))
        except json.JSONDecodeError as e:
            raise ValueError(f"FIREBASE_CREDENTIALS is not valid JSON: {e}") from e
    return credentials.Certificate(raw)


def init_firebase(settings: Settings = default_settings) -> firebase_admin.App:
    """
    Initializes the default Firebase app once per process and returns it.
    Later calls hand back the app that is already running.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()

    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    app = firebase_admin.initialize_app(_load_credentials(settings.firebase_credentials), options)
    logger.info("Firebase Admin SDK initialized.")
    return app
