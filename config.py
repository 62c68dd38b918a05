# file: config.py

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


class FirebaseWebConfig(BaseModel):
    apiKey: Optional[str] = None
    authDomain: Optional[str] = None
    projectId: Optional[str] = None
    storageBucket: Optional[str] = None
    messagingSenderId: Optional[str] = None
    appId: Optional[str] = None


class Settings(BaseModel):
    firebase_credentials: Optional[str] = None
    firebase_project_id: Optional[str] = None
    user_store: str = "firestore"
    users_collection: str = "users"
    messages_collection: str = "messages"
    push_backend: str = "fcm"
    expo_push_url: str = EXPO_PUSH_URL
    database_url: str = "sqlite+aiosqlite:///./notifier.db"
    notification_icon: str = "/icons/Icon-192.png"
    firebase_js_sdk_version: str = "9.22.1"
    firebase_web: FirebaseWebConfig = FirebaseWebConfig()
    log_level: str = "INFO"


def load_settings() -> Settings:
    """
    Reads settings from the environment (and `.env`, already loaded above).
    Unset variables fall back to the model defaults.
    """
    web = FirebaseWebConfig(
        apiKey=os.getenv("FIREBASE_WEB_API_KEY"),
        authDomain=os.getenv("FIREBASE_WEB_AUTH_DOMAIN"),
        projectId=os.getenv("FIREBASE_WEB_PROJECT_ID") or os.getenv("FIREBASE_PROJECT_ID"),
        storageBucket=os.getenv("FIREBASE_WEB_STORAGE_BUCKET"),
        messagingSenderId=os.getenv("FIREBASE_WEB_MESSAGING_SENDER_ID"),
        appId=os.getenv("FIREBASE_WEB_APP_ID"),
    )
    values = {
        "firebase_credentials": os.getenv("FIREBASE_CREDENTIALS"),
        "firebase_project_id": os.getenv("FIREBASE_PROJECT_ID"),
        "user_store": os.getenv("USER_STORE"),
        "users_collection": os.getenv("USERS_COLLECTION"),
        "messages_collection": os.getenv("MESSAGES_COLLECTION"),
        "push_backend": os.getenv("PUSH_BACKEND"),
        "expo_push_url": os.getenv("EXPO_PUSH_URL"),
        "database_url": os.getenv("DATABASE_URL"),
        "notification_icon": os.getenv("NOTIFICATION_ICON"),
        "firebase_js_sdk_version": os.getenv("FIREBASE_JS_SDK_VERSION"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    return Settings(firebase_web=web, **{k: v for k, v in values.items() if v})


settings = load_settings()
