import logging
import os
from typing import Optional

import firebase_admin
from firebase_admin import credentials

from coursepath.core.config import settings

logger = logging.getLogger(__name__)


def _load_credentials() -> credentials.Base:
    """
    A service account key file when GOOGLE_APPLICATION_CREDENTIALS points at one,
    otherwise the runtime's application default credentials (Cloud Run, GKE).
    """
    key_path = settings.GOOGLE_APPLICATION_CREDENTIALS
    if key_path:
        if not os.path.exists(key_path):
            raise FileNotFoundError(f"Firebase service account key file not found at path: {key_path}")
        logger.debug(f"Using Firebase service account key at {key_path}")
        return credentials.Certificate(key_path)

    logger.info("GOOGLE_APPLICATION_CREDENTIALS not set; falling back to application default credentials.")
    return credentials.ApplicationDefault()


def initialize_firebase_app() -> firebase_admin.App:
    """
    Initializes the default Firebase Admin app once per process.
    Token verification needs it; nothing else in the API talks to Firebase.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass  # default app not created yet

    options: Optional[dict] = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
    try:
        app = firebase_admin.initialize_app(_load_credentials(), options)
    except Exception as e:
        logger.error(f"Error initializing Firebase Admin SDK: {e}", exc_info=True)
        raise
    logger.info(f"Firebase Admin SDK initialized (project: {app.project_id or 'from credentials'}).")
    return app


# Alias used at token verification time
get_firebase_app = initialize_firebase_app
