from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials

from .settings import Settings

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def get_firebase_app(settings: Settings) -> firebase_admin.App:
    """
    Return the default firebase_admin app, initialising it on first use.

    With a service account in settings the app uses it; otherwise it falls
    back to Application Default Credentials.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    if settings.firebase_client_email and settings.firebase_private_key:
        cred = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
                "private_key": settings.firebase_private_key,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        logger.info("Initialising Firebase admin app with service account %s", settings.firebase_client_email)
        return firebase_admin.initialize_app(cred, options)

    logger.info("Initialising Firebase admin app with application default credentials")
    return firebase_admin.initialize_app(options=options)
