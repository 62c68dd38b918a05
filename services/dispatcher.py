# file: services/dispatcher.py

import logging
from typing import Optional

from config import Settings, settings as default_settings
from models.message import MessageEvent
from models.notification import DispatchOutcome, NotificationRequest, SkipReason
from services.push_sender import PushSender, get_push_sender
from services.user_directory import UserDirectory, get_user_directory

logger = logging.getLogger(__name__)

DEFAULT_SENDER_NAME = "Someone"
DEFAULT_CONTENT = "New message"


def build_notification_request(event: MessageEvent, token: str) -> NotificationRequest:
    sender_name = event.sender_name or DEFAULT_SENDER_NAME
    return NotificationRequest(
        title=f"New Message from {sender_name}",
        body=event.content or DEFAULT_CONTENT,
        data={"chatId": event.chat_id or ""},
        token=token,
        collapse_key=event.message_id,
    )


class Dispatcher:
    """
    Turns one "message created" event into at most one push notification.

    The recipient's profile is looked up first, then a single send is
    attempted. Every outcome, including a failed delivery, is returned to
    the caller instead of raised, so the triggering pipeline always sees the
    event as processed.
    """

    def __init__(self, users: UserDirectory, sender: PushSender):
        self.users = users
        self.sender = sender

    async def handle(self, event: Optional[MessageEvent]) -> DispatchOutcome:
        if event is None:
            logger.error("No data in message event")
            return DispatchOutcome.skipped(SkipReason.MISSING_DATA)

        message_id = event.message_id
        recipient_id = event.recipient_id
        if not recipient_id:
            logger.error("Missing recipientId on message %s", message_id)
            return DispatchOutcome.skipped(SkipReason.MISSING_DATA, message_id)

        try:
            profile = await self.users.lookup_user(recipient_id)
            if profile is None:
                logger.info("No user document found for recipient: %s", recipient_id)
                return DispatchOutcome.skipped(SkipReason.RECIPIENT_NOT_FOUND, message_id)

            if not profile.fcm_token:
                logger.info("No FCM token for user: %s", recipient_id)
                return DispatchOutcome.skipped(SkipReason.NO_DELIVERY_ADDRESS, message_id)

            request = build_notification_request(event, profile.fcm_token)
            delivery_id = await self.sender.send_push(request)
        except Exception as e:
            logger.exception("Error sending notification for message %s", message_id)
            return DispatchOutcome.failed(str(e), message_id)

        logger.info("Notification sent successfully to: %s", recipient_id)
        return DispatchOutcome.delivered(delivery_id, message_id)


def create_dispatcher(settings: Settings = default_settings) -> Dispatcher:
    return Dispatcher(users=get_user_directory(settings), sender=get_push_sender(settings))
