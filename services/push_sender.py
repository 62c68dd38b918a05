# file: services/push_sender.py

import asyncio
import logging
from typing import Optional, Protocol

import httpx
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from config import EXPO_PUSH_URL, Settings
from models.notification import NotificationRequest

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """The push backend refused or failed to accept a notification."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class PushSender(Protocol):
    async def send_push(self, request: NotificationRequest) -> Optional[str]:
        ...


class FcmPushSender:
    """Sends through Firebase Cloud Messaging with the Admin SDK."""

    def __init__(self, app=None):
        self.app = app

    def build_message(self, request: NotificationRequest) -> messaging.Message:
        android = None
        apns = None
        if request.collapse_key:
            android = messaging.AndroidConfig(collapse_key=request.collapse_key)
            apns = messaging.APNSConfig(headers={"apns-collapse-id": request.collapse_key})
        return messaging.Message(
            token=request.token,
            notification=messaging.Notification(
                title=request.title,
                body=request.body
            ),
            data=request.data or {},
            android=android,
            apns=apns,
        )

    async def send_push(self, request: NotificationRequest) -> str:
        message = self.build_message(request)
        try:
            # messaging.send is a blocking HTTP call
            response = await asyncio.to_thread(messaging.send, message, app=self.app)
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            raise DeliveryError(f"FCM rejected notification: {e}", cause=e) from e
        logger.debug("FCM accepted message %s", response)
        return response


class ExpoPushSender:
    """
    Sends through Expo's Push API. Expo push tokens are stored in the same
    profile field as FCM tokens.
    """

    headers = {
        'Accept': 'application/json',
        'Accept-Encoding': 'gzip, deflate',
        'Content-Type': 'application/json',
    }

    def __init__(self, url: str = EXPO_PUSH_URL, client: Optional[httpx.AsyncClient] = None, timeout: float = 10):
        self.url = url
        self.client = client
        self.timeout = timeout

    def build_payload(self, request: NotificationRequest) -> dict:
        return {
            'to': request.token,
            'sound': 'default',
            'title': request.title,
            'body': request.body,
            'data': request.data,
            'channelId': 'default',
        }

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        response = await client.post(self.url, json=payload, headers=self.headers, timeout=self.timeout)
        response.raise_for_status()
        return response

    async def send_push(self, request: NotificationRequest) -> Optional[str]:
        payload = self.build_payload(request)
        try:
            if self.client is not None:
                response = await self._post(self.client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, payload)
        except httpx.HTTPStatusError as e:
            raise DeliveryError(
                f"Expo server responded with {e.response.status_code}: {e.response.text}", cause=e
            ) from e
        except httpx.RequestError as e:
            raise DeliveryError(f"Could not reach Expo push service: {e}", cause=e) from e

        ticket = response.json().get("data") or {}
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else {}
        if ticket.get("status") == "error":
            raise DeliveryError(f"Expo rejected notification: {ticket.get('message')}")
        return ticket.get("id")


def get_push_sender(settings: Settings) -> PushSender:
    if settings.push_backend == "fcm":
        return FcmPushSender()
    if settings.push_backend == "expo":
        return ExpoPushSender(url=settings.expo_push_url)
    raise ValueError(f"Unknown PUSH_BACKEND: {settings.push_backend!r}")
