# file: models/notification.py

from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class NotificationRequest(BaseModel):
    title: str
    body: str
    data: Dict[str, str] = Field(default_factory=dict)
    token: str
    # Used as a device-side collapse id; never part of the payload.
    collapse_key: Optional[str] = Field(default=None, exclude=True)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "notification": {"title": self.title, "body": self.body},
            "data": dict(self.data),
            "token": self.token,
        }


class DispatchStatus(str, Enum):
    SKIPPED = "skipped"
    DELIVERED = "delivered"
    FAILED = "failed"


class SkipReason(str, Enum):
    MISSING_DATA = "missing_data"
    RECIPIENT_NOT_FOUND = "recipient_not_found"
    NO_DELIVERY_ADDRESS = "no_delivery_address"


class DispatchOutcome(BaseModel):
    status: DispatchStatus
    reason: Optional[SkipReason] = None
    error: Optional[str] = None
    delivery_id: Optional[str] = None
    message_id: Optional[str] = None

    @classmethod
    def skipped(cls, reason: SkipReason, message_id: Optional[str] = None) -> "DispatchOutcome":
        return cls(status=DispatchStatus.SKIPPED, reason=reason, message_id=message_id)

    @classmethod
    def delivered(cls, delivery_id: Optional[str] = None, message_id: Optional[str] = None) -> "DispatchOutcome":
        return cls(status=DispatchStatus.DELIVERED, delivery_id=delivery_id, message_id=message_id)

    @classmethod
    def failed(cls, error: str, message_id: Optional[str] = None) -> "DispatchOutcome":
        return cls(status=DispatchStatus.FAILED, error=error, message_id=message_id)


class DisplayOptions(BaseModel):
    body: str = ""
    icon: str
    data: Dict[str, Any] = Field(default_factory=dict)


class DisplayNotification(BaseModel):
    """What the service worker hands to `registration.showNotification`."""

    title: str
    options: DisplayOptions
