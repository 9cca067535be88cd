import json

import firebase_admin
from firebase_admin import credentials

from .config import Settings
from .utils.logging import get_logger

logger = get_logger(__name__)


def init_firebase(settings: Settings) -> firebase_admin.App | None:
    """Initialize the default Firebase app, or return None when no credentials are configured."""
    if not settings.firebase_configured:
        logger.warning("Firebase not configured")
        return None

    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    try:
        if settings.firebase_service_account:
            cred = credentials.Certificate(json.loads(settings.firebase_service_account))
        else:
            cred = credentials.Certificate(settings.firebase_cert_path)
    except (ValueError, OSError) as exc:
        logger.warning("Firebase not configured", error=str(exc))
        return None

    options = {}
    if settings.firebase_database_url:
        options["databaseURL"] = settings.firebase_database_url
    app = firebase_admin.initialize_app(cred, options)
    logger.info("Firebase initialized", project_id=app.project_id)
    return app
