import os

# Required settings must exist before config is imported
os.environ.setdefault("DATABASE_URL", "mongodb://localhost:27017")
os.environ.setdefault("DATABASE_NAME", "chat_test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("MINIO_USERNAME", "minio")
os.environ.setdefault("MINIO_PASSWORD", "minio-secret")
os.environ.setdefault("MINIO_SERVER", "localhost:9000")
os.environ.setdefault("MINIO_BUCKET", "chat-test")

import asyncio
import jwt
import pytest
import pytest_asyncio
from bson import ObjectId
from fastapi import WebSocketDisconnect
from mongomock_motor import AsyncMongoMockClient

from models.enums import MessageType
from models.message_model import SendMessageRequest
from repos.conversation_repo import ConversationRepository
from repos.message_repo import MessageRepository
from repos.user_repo import UserRepository
from services.connection_manager import Channel, ConnectionManager
from services.delivery_service import DeliveryCoordinator
from services.message_service import MessageService
from services.presence_registry import PresenceRegistry

ALICE = "64b000000000000000000001"
BOB = "64b000000000000000000002"
CAROL = "64b000000000000000000003"
MALLORY = "64b000000000000000000004"  # deactivated
UNKNOWN = "64b0000000000000000000ff"


def make_token(user_id: str, secret: str = "test-secret") -> str:
    return jwt.encode({"id": user_id, "sub": user_id}, secret, algorithm="HS256")


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def text(receiver_id: str, content: str = "hello", **kwargs) -> SendMessageRequest:
    return SendMessageRequest(receiver_id=receiver_id, message_type=MessageType.TEXT, content=content, **kwargs)


class FakeWebSocket:
    """Stands in for an accepted WebSocket; records every frame sent to it"""

    def __init__(self, headers=None):
        self.headers = headers or {}
        self.sent = []
        self.accepted = False
        self.closed_code = None
        self._inbox = asyncio.Queue()

    async def accept(self):
        self.accepted = True

    async def close(self, code=1000, reason=None):
        self.closed_code = code

    async def send_json(self, data):
        self.sent.append(data)

    async def receive_text(self):
        item = await self._inbox.get()
        if item is None:
            raise WebSocketDisconnect(code=1000)
        return item

    def feed(self, text):
        self._inbox.put_nowait(text)

    def hang_up(self):
        self._inbox.put_nowait(None)

    def events(self, name):
        return [frame["data"] for frame in self.sent if frame["event"] == name]


@pytest_asyncio.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["chat_test"]
    await database.users.insert_many([
        {"_id": ObjectId(ALICE), "name": "Alice", "avatar": "alice.png", "is_active": True},
        {"_id": ObjectId(BOB), "name": "Bob", "avatar": None, "is_active": True},
        {"_id": ObjectId(CAROL), "name": "Carol", "avatar": None, "is_active": True},
        {"_id": ObjectId(MALLORY), "name": "Mallory", "avatar": None, "is_active": False},
    ])
    yield database


@pytest.fixture
def presence():
    return PresenceRegistry()


@pytest.fixture
def connections():
    return ConnectionManager(typing_timeout=0.05)


@pytest.fixture
def message_repo(db):
    return MessageRepository(db)


@pytest.fixture
def conversation_repo(db):
    return ConversationRepository(db)


@pytest.fixture
def user_repo(db):
    return UserRepository(db)


@pytest.fixture
def coordinator(message_repo, conversation_repo, user_repo, presence, connections):
    return DeliveryCoordinator(message_repo, conversation_repo, user_repo, presence, connections)


@pytest.fixture
def message_service(message_repo, conversation_repo, user_repo):
    return MessageService(message_repo, conversation_repo, user_repo)


@pytest.fixture
def connect(presence, connections):
    """Put a user online with a recording socket and return the socket"""
    def _connect(user_id: str, connection_id: str = None) -> FakeWebSocket:
        socket = FakeWebSocket()
        connection_id = connection_id or f"conn-{user_id}"
        presence.register(user_id, connection_id)
        connections.attach(user_id, Channel(connection_id, socket))
        return socket
    return _connect


@pytest.fixture
def app(db):
    from main import create_app
    from dependencies.db import get_db

    application = create_app(connect_services=False)

    async def override_get_db():
        return db

    application.dependency_overrides[get_db] = override_get_db
    return application
