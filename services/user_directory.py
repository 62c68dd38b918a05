# file: services/user_directory.py

import asyncio
from typing import Optional, Protocol

from firebase_admin import firestore
from sqlalchemy import select

from config import Settings
from database.db import User, get_db_session
from models.message import UserProfile


class UserDirectory(Protocol):
    async def lookup_user(self, user_id: str) -> Optional[UserProfile]:
        ...


class FirestoreUserDirectory:
    """
    Reads profiles from `<collection>/{user_id}` documents. The blocking
    Firestore client runs in a worker thread; it must not be tied to an
    event loop, since each trigger invocation runs on a fresh one.
    """

    def __init__(self, collection: str = "users", client=None):
        self.collection = collection
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = firestore.client()
        return self._client

    async def lookup_user(self, user_id: str) -> Optional[UserProfile]:
        document = self.client.collection(self.collection).document(user_id)
        snapshot = await asyncio.to_thread(document.get)
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        return UserProfile(id=user_id, fcm_token=data.get("fcmToken"))


class SqlUserDirectory:
    """Reads profiles from the `users` table, keyed by Firebase uid."""

    def __init__(self, session_factory=get_db_session):
        self.session_factory = session_factory

    async def lookup_user(self, user_id: str) -> Optional[UserProfile]:
        async with self.session_factory() as db:
            stmt = select(User).where(User.firebase_uid == user_id)
            result = await db.execute(stmt)
            user = result.scalars().first()
        if user is None:
            return None
        return UserProfile(id=user.firebase_uid, fcm_token=user.fcm_token)


def get_user_directory(settings: Settings) -> UserDirectory:
    if settings.user_store == "firestore":
        return FirestoreUserDirectory(collection=settings.users_collection)
    if settings.user_store == "sql":
        return SqlUserDirectory()
    raise ValueError(f"Unknown USER_STORE: {settings.user_store!r}")
