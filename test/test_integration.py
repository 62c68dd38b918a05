import pytest
import pytest_asyncio
import importlib
import json
from contextlib import asynccontextmanager
import threading
from unittest.mock import AsyncMock, MagicMock

from cloudevents.http import CloudEvent
from google.events.cloud.firestore import Document, DocumentEventData, Value
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database.db import Base, User
from models.message import MessageEvent, UserProfile
from models.notification import DispatchOutcome, DispatchStatus, SkipReason
from notification.firestore_event import (
    ForeignDocumentError,
    MalformedEventError,
    message_event_from_document,
)
from services.dispatcher import Dispatcher
from services.user_directory import FirestoreUserDirectory, SqlUserDirectory

# --- Test DB Setup ---
DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DOCUMENT_NAME = "projects/demo/databases/(default)/documents/messages/m1"


def firestore_created_event(fields, name=DOCUMENT_NAME):
    return {"oldValue": {}, "value": {"name": name, "fields": fields}, "updateMask": {}}


def firestore_created_protobuf(fields, name=DOCUMENT_NAME):
    document = Document(name=name, fields={key: Value(string_value=value) for key, value in fields.items()})
    return DocumentEventData.serialize(DocumentEventData(value=document))


# --- CORE FIXTURES ---

@pytest_asyncio.fixture(scope="function")
async def session_factory():
    engine = create_async_engine(DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    TestingSessionLocal = async_sessionmaker(autocommit=False, autoflush=False, bind=engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def factory():
        async with TestingSessionLocal() as session:
            yield session

    yield factory
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def stored_users(session_factory):
    async with session_factory() as db:
        db.add_all([
            User(firebase_uid="u1", fcm_token="TOKEN123", full_name="Ann"),
            User(firebase_uid="u2", fcm_token=None, full_name="Bob"),
        ])
        await db.commit()


###############################################################
# SQL profile store
###############################################################

@pytest.mark.asyncio
async def test_itc_001_sql_lookup_returns_profile(session_factory, stored_users):
    directory = SqlUserDirectory(session_factory=session_factory)

    assert await directory.lookup_user("u1") == UserProfile(id="u1", fcmToken="TOKEN123")
    assert await directory.lookup_user("u2") == UserProfile(id="u2", fcmToken=None)
    assert await directory.lookup_user("ghost") is None


@pytest.mark.asyncio
async def test_itc_002_dispatch_against_sql_store(session_factory, stored_users):
    sender = AsyncMock()
    sender.send_push.return_value = "projects/demo/messages/7"
    dispatcher = Dispatcher(users=SqlUserDirectory(session_factory=session_factory), sender=sender)

    delivered = await dispatcher.handle(MessageEvent(recipientId="u1", senderName="Ann", content="Hi!"))
    no_token = await dispatcher.handle(MessageEvent(recipientId="u2"))

    assert delivered.status == DispatchStatus.DELIVERED
    assert no_token.reason == SkipReason.NO_DELIVERY_ADDRESS
    sender.send_push.assert_awaited_once()
    assert sender.send_push.await_args.args[0].token == "TOKEN123"


###############################################################
# Firestore event decoding
###############################################################

def test_itc_003_decodes_created_message_document():
    data = firestore_created_event({
        "recipientId": {"stringValue": "u1"},
        "senderName": {"stringValue": "Ann"},
        "content": {"stringValue": "Hi!"},
        "chatId": {"stringValue": "c1"},
        "createdAt": {"timestampValue": "2026-10-19T10:00:00Z"},
        "attachments": {"arrayValue": {"values": [{"mapValue": {"fields": {"size": {"integerValue": "12"}}}}]}},
    })

    event = message_event_from_document(data)

    assert event == MessageEvent(messageId="m1", recipientId="u1", senderName="Ann", content="Hi!", chatId="c1")


def test_itc_004_decodes_json_bytes_and_null_values():
    data = json.dumps(firestore_created_event({
        "recipientId": {"stringValue": "u2"},
        "chatId": {"nullValue": None},
    })).encode()

    event = message_event_from_document(data)

    assert event.message_id == "m1"
    assert event.recipient_id == "u2"
    assert event.chat_id is None


def test_itc_005_document_without_fields_has_no_event():
    data = {"value": {"name": DOCUMENT_NAME}}
    assert message_event_from_document(data) is None


def test_itc_006_document_outside_collection_is_foreign():
    data = firestore_created_event({"recipientId": {"stringValue": "u1"}},
                                   name="projects/demo/databases/(default)/documents/users/u1")
    with pytest.raises(ForeignDocumentError):
        message_event_from_document(data)


@pytest.mark.parametrize("data", [b"\x0a\x05ab", {"value": {}}, ["not", "a", "document"]])
def test_itc_007_malformed_event_data(data):
    with pytest.raises(MalformedEventError):
        message_event_from_document(data)


def test_itc_011_decodes_protobuf_message_document():
    data = firestore_created_protobuf({"recipientId": "u1", "senderName": "Ann", "content": "Hi!", "chatId": "c1"})

    event = message_event_from_document(data)

    assert event == MessageEvent(messageId="m1", recipientId="u1", senderName="Ann", content="Hi!", chatId="c1")


def test_itc_012_protobuf_document_outside_collection_is_foreign():
    data = firestore_created_protobuf({"recipientId": "u1"}, name="projects/demo/databases/(default)/documents/chats/c1")
    with pytest.raises(ForeignDocumentError):
        message_event_from_document(data)


###############################################################
# Cloud Functions trigger
###############################################################

@pytest.fixture
def trigger_module(mocker):
    mocker.patch("services.firebase.firebase_admin._apps", {"[DEFAULT]": object()})
    mocker.patch("services.firebase.firebase_admin.get_app")
    return importlib.import_module("notification.trigger")


@pytest.fixture
def trigger(trigger_module, mocker):
    module = trigger_module
    dispatcher = AsyncMock(spec=Dispatcher)
    dispatcher.handle.return_value = DispatchOutcome.delivered("projects/demo/messages/1", "m1")
    mocker.patch.object(module, "dispatcher", dispatcher)
    return module


def _cloud_event(data):
    attributes = {
        "type": "google.cloud.firestore.document.v1.created",
        "source": "//firestore.googleapis.com/projects/demo/databases/(default)",
        "subject": "documents/messages/m1",
    }
    return CloudEvent(attributes, data)


def test_itc_008_trigger_dispatches_created_message(trigger):
    data = firestore_created_event({"recipientId": {"stringValue": "u1"}, "senderName": {"stringValue": "Ann"}})

    assert trigger.send_message_notification(_cloud_event(data)) is None

    event = trigger.dispatcher.handle.await_args.args[0]
    assert event == MessageEvent(messageId="m1", recipientId="u1", senderName="Ann")


def test_itc_009_trigger_passes_unreadable_event_as_missing_data(trigger):
    assert trigger.send_message_notification(_cloud_event(b"\x0a\x05ab")) is None
    trigger.dispatcher.handle.assert_awaited_once_with(None)


def test_itc_010_trigger_ignores_other_collections(trigger):
    data = firestore_created_event({"recipientId": {"stringValue": "u1"}},
                                   name="projects/demo/databases/(default)/documents/chats/c1")

    assert trigger.send_message_notification(_cloud_event(data)) is None
    trigger.dispatcher.handle.assert_not_awaited()


def test_itc_013_trigger_dispatches_protobuf_event(trigger):
    data = firestore_created_protobuf({"recipientId": "u1", "content": "Hi!"})

    assert trigger.send_message_notification(_cloud_event(data)) is None

    event = trigger.dispatcher.handle.await_args.args[0]
    assert event == MessageEvent(messageId="m1", recipientId="u1", content="Hi!")


class RecordingDispatcher(Dispatcher):
    def __init__(self, users, sender):
        super().__init__(users=users, sender=sender)
        self.outcomes = []

    async def handle(self, event):
        outcome = await super().handle(event)
        self.outcomes.append(outcome)
        return outcome


def test_itc_014_trigger_handles_consecutive_events_with_one_directory(trigger_module, mocker):
    lookup_threads = []

    def get_document():
        lookup_threads.append(threading.current_thread())
        return MagicMock(exists=False)

    client = MagicMock()
    client.collection.return_value.document.return_value.get.side_effect = get_document
    sender = AsyncMock()
    dispatcher = RecordingDispatcher(users=FirestoreUserDirectory(client=client), sender=sender)
    mocker.patch.object(trigger_module, "dispatcher", dispatcher)
    data = firestore_created_event({"recipientId": {"stringValue": "ghost"}})

    for _ in range(3):
        assert trigger_module.send_message_notification(_cloud_event(data)) is None

    assert [o.reason for o in dispatcher.outcomes] == [SkipReason.RECIPIENT_NOT_FOUND] * 3
    assert all(thread is not threading.main_thread() for thread in lookup_threads)
    sender.send_push.assert_not_awaited()


def test_itc_015_trigger_releases_sql_connections_after_each_event(trigger, mocker):
    mocker.patch.object(trigger.settings, "user_store", "sql")
    engine = mocker.patch.object(trigger, "engine", AsyncMock())
    data = firestore_created_event({"recipientId": {"stringValue": "u1"}})

    trigger.send_message_notification(_cloud_event(data))
    trigger.send_message_notification(_cloud_event(data))

    assert engine.dispose.await_count == 2
