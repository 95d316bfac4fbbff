"""
Inbound realtime payloads.

Clients send camelCase keys; snake_case is accepted as well.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional

from models.enums import MessageType


class SocketPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SocketEnvelope(SocketPayload):
    event: str
    data: Dict[str, Any] = {}


class ConversationTarget(SocketPayload):
    other_user_id: str = Field(alias="otherUserId", min_length=1)


class SendMessagePayload(SocketPayload):
    receiver_id: str = Field(alias="receiverId", min_length=1)
    message_type: MessageType = Field(default=MessageType.TEXT, alias="messageType")
    content: Optional[str] = None
    reply_to: Optional[str] = Field(default=None, alias="replyTo")
    temp_id: Optional[str] = Field(default=None, alias="tempId")


class TypingPayload(SocketPayload):
    receiver_id: str = Field(alias="receiverId", min_length=1)


class MarkAsSeenPayload(SocketPayload):
    sender_id: str = Field(alias="senderId", min_length=1)
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")


class DeleteMessagePayload(SocketPayload):
    message_id: str = Field(alias="messageId", min_length=1)
    receiver_id: Optional[str] = Field(default=None, alias="receiverId")


class UpdateStatusPayload(SocketPayload):
    status: str
