# file: services/service_worker.py

import json
from pathlib import Path
from typing import Any, Dict, Optional

from config import Settings
from models.notification import DisplayNotification, DisplayOptions

TEMPLATE_PATH = Path(__file__).resolve().parent.parent / "web" / "firebase-messaging-sw.js"

DEFAULT_TITLE = "New message"


def build_display_notification(payload: Optional[Dict[str, Any]], icon: str) -> DisplayNotification:
    """
    Mirrors the worker's onBackgroundMessage handler: maps a background push
    payload to the notification the browser is asked to show.
    """
    payload = payload or {}
    notification = payload.get("notification") or {}
    return DisplayNotification(
        title=notification.get("title") or DEFAULT_TITLE,
        options=DisplayOptions(
            body=notification.get("body") or "",
            icon=icon,
            data=payload.get("data") or {},
        ),
    )


def render_service_worker(settings: Settings, template_path: Path = TEMPLATE_PATH) -> str:
    template = template_path.read_text(encoding="utf-8")
    firebase_config = settings.firebase_web.model_dump(exclude_none=True)
    replacements = {
        "{{ sdk_version }}": settings.firebase_js_sdk_version,
        "{{ firebase_config }}": json.dumps(firebase_config, indent=2),
        "{{ icon }}": json.dumps(settings.notification_icon),
    }
    for placeholder, value in replacements.items():
        template = template.replace(placeholder, value)
    return template
