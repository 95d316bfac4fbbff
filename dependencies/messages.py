from fastapi import Depends
from starlette.requests import HTTPConnection
from typing import Annotated

from repos.conversation_repo import ConversationRepository
from repos.message_repo import MessageRepository
from services.connection_manager import ConnectionManager
from services.delivery_service import DeliveryCoordinator
from services.message_service import MessageService
from services.presence_registry import PresenceRegistry
from services.storage_service import AttachmentStorage
from dependencies.user import UserRepositoryDep
from .db import get_db

def get_presence_registry(connection: HTTPConnection) -> PresenceRegistry:
    """The application's presence registry, created at startup"""
    return connection.app.state.presence

def get_connection_manager(connection: HTTPConnection) -> ConnectionManager:
    """The application's realtime channels, created at startup"""
    return connection.app.state.connections

def get_message_repository(db = Depends(get_db)) -> MessageRepository:
    return MessageRepository(db)

def get_conversation_repository(db = Depends(get_db)) -> ConversationRepository:
    return ConversationRepository(db)

PresenceDep = Annotated[PresenceRegistry, Depends(get_presence_registry)]
ConnectionsDep = Annotated[ConnectionManager, Depends(get_connection_manager)]
MessageRepositoryDep = Annotated[MessageRepository, Depends(get_message_repository)]
ConversationRepositoryDep = Annotated[ConversationRepository, Depends(get_conversation_repository)]

def get_delivery_coordinator(
    message_repo: MessageRepositoryDep,
    conversation_repo: ConversationRepositoryDep,
    user_repo: UserRepositoryDep,
    presence: PresenceDep,
    connections: ConnectionsDep
) -> DeliveryCoordinator:
    return DeliveryCoordinator(message_repo, conversation_repo, user_repo, presence, connections)

def get_message_service(
    message_repo: MessageRepositoryDep,
    conversation_repo: ConversationRepositoryDep,
    user_repo: UserRepositoryDep
) -> MessageService:
    return MessageService(message_repo, conversation_repo, user_repo)

def get_attachment_storage() -> AttachmentStorage:
    return AttachmentStorage()

DeliveryCoordinatorDep = Annotated[DeliveryCoordinator, Depends(get_delivery_coordinator)]
MessageServiceDep = Annotated[MessageService, Depends(get_message_service)]
AttachmentStorageDep = Annotated[AttachmentStorage, Depends(get_attachment_storage)]
