# file: notification/firestore_event.py

import base64
import json
from typing import Any, Dict, Optional, Tuple

from google.events.cloud.firestore import DocumentEventData
from google.protobuf.message import DecodeError

from models.message import MessageEvent


class MalformedEventError(ValueError):
    pass


class ForeignDocumentError(Exception):
    """The created document does not belong to the watched collection."""


def decode_value(value: Dict[str, Any]) -> Any:
    """Converts one Firestore REST `Value` into a plain Python value."""
    if "nullValue" in value:
        return None
    if "stringValue" in value:
        return value["stringValue"]
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "timestampValue" in value:
        return value["timestampValue"]
    if "referenceValue" in value:
        return value["referenceValue"]
    if "bytesValue" in value:
        return base64.b64decode(value["bytesValue"])
    if "geoPointValue" in value:
        return dict(value["geoPointValue"])
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    raise MalformedEventError(f"Unsupported Firestore value: {sorted(value)}")


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {name: decode_value(value) for name, value in fields.items()}


def split_document_name(name: str) -> Tuple[str, str]:
    """
    `projects/p/databases/(default)/documents/messages/abc` -> ("messages", "abc").
    Subcollection paths keep their full collection path.
    """
    _, sep, path = name.partition("/documents/")
    if not sep:
        path = name
    parts = path.strip("/").split("/")
    if len(parts) < 2 or len(parts) % 2:
        raise MalformedEventError(f"Not a document path: {name!r}")
    return "/".join(parts[:-1]), parts[-1]


def decode_protobuf(data: bytes) -> Dict[str, Any]:
    """Decodes `application/protobuf` DocumentEventData into its JSON mapping."""
    try:
        message = DocumentEventData.deserialize(bytes(data))
    except DecodeError as e:
        raise MalformedEventError(f"Event data is not a DocumentEventData message: {e}") from e
    return json.loads(DocumentEventData.to_json(message))


def load_event_data(data: Any) -> Dict[str, Any]:
    if isinstance(data, (bytes, bytearray)):
        if bytes(data).lstrip().startswith(b"{"):
            try:
                data = json.loads(data)
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise MalformedEventError("Event data is not JSON") from e
        else:
            data = decode_protobuf(data)
    if not isinstance(data, dict):
        raise MalformedEventError(f"Unexpected event data type: {type(data).__name__}")
    return data


def message_event_from_document(data: Any, collection: str = "messages") -> Optional[MessageEvent]:
    """
    Builds a MessageEvent from the data of a Firestore `document.created`
    CloudEvent. Returns None when the created document has no fields;
    raises ForeignDocumentError when it lives outside `collection`.
    """
    data = load_event_data(data)
    document = data.get("value") or {}
    name = document.get("name")
    if not name:
        raise MalformedEventError("Event carries no document name")

    parent, message_id = split_document_name(name)
    if parent != collection:
        raise ForeignDocumentError(f"{name} is not in {collection}")

    fields = document.get("fields")
    if not fields:
        return None

    try:
        values = decode_fields(fields)
        return MessageEvent(
            messageId=message_id,
            recipientId=_as_text(values.get("recipientId")),
            senderName=_as_text(values.get("senderName")),
            content=_as_text(values.get("content")),
            chatId=_as_text(values.get("chatId")),
        )
    except MalformedEventError:
        raise
    except ValueError as e:
        raise MalformedEventError(str(e)) from e


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
