# file: notification/trigger.py
#
# Cloud Functions entrypoint for Firestore `document.v1.created` events on
# messages/{messageId}. Event data may be protobuf (the Eventarc default) or
# JSON. Run locally with
#   functions-framework --source notification/trigger.py \
#     --target send_message_notification --signature-type cloudevent

import asyncio
import logging
from typing import Optional

import functions_framework

from config import settings
from database.db import engine
from models.message import MessageEvent
from models.notification import DispatchOutcome
from notification.firestore_event import ForeignDocumentError, MalformedEventError, message_event_from_document
from services.dispatcher import create_dispatcher
from services.firebase import init_firebase

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

init_firebase(settings)
dispatcher = create_dispatcher(settings)


async def dispatch(event: Optional[MessageEvent]) -> DispatchOutcome:
    try:
        return await dispatcher.handle(event)
    finally:
        # Pooled connections belong to this invocation's loop, closed by asyncio.run.
        if settings.user_store == "sql":
            await engine.dispose()


@functions_framework.cloud_event
def send_message_notification(cloud_event):
    """Sends a push notification to the recipient of a newly created message."""
    try:
        event = message_event_from_document(cloud_event.data, collection=settings.messages_collection)
    except ForeignDocumentError as e:
        logger.info("Ignoring event %s: %s", cloud_event["id"], e)
        return None
    except MalformedEventError as e:
        logger.error("Could not read message document from event %s: %s", cloud_event["id"], e)
        event = None

    outcome = asyncio.run(dispatch(event))
    logger.debug("Event %s finished as %s", cloud_event["id"], outcome.status.value)
    return None
