# file: models/message.py

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class MessageEvent(BaseModel):
    """A newly created chat message, as delivered by the message store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message_id: Optional[str] = Field(default=None, alias="messageId")
    recipient_id: Optional[str] = Field(default=None, alias="recipientId")
    sender_name: Optional[str] = Field(default=None, alias="senderName")
    content: Optional[str] = None
    chat_id: Optional[str] = Field(default=None, alias="chatId")


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, from_attributes=True)

    id: str
    fcm_token: Optional[str] = Field(default=None, alias="fcmToken")
