# file: routes/messages.py

import logging
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from config import settings
from models.message import MessageEvent
from models.notification import DispatchOutcome
from services.dispatcher import Dispatcher, create_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def get_dispatcher() -> Dispatcher:
    return create_dispatcher(settings)


async def read_message_event(request: Request) -> Optional[MessageEvent]:
    """Parses the body as a MessageEvent; an unreadable body counts as no event."""
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return MessageEvent.model_validate_json(raw)
    except ValidationError as e:
        logger.error("Unreadable message event: %s", e)
        return None


@router.post(
    "/notify",
    response_model=DispatchOutcome,
    openapi_extra={"requestBody": {"content": {"application/json": {"schema": MessageEvent.model_json_schema(by_alias=True)}}}},
)
async def notify_message_created(
        event: Optional[MessageEvent] = Depends(read_message_event),
        dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """
    Push-style ingress for "message created" events.
    Always answers 200 with the outcome so the event source never retries
    a skipped or failed delivery.
    """
    return await dispatcher.handle(event)
