from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from db.schemas.files_schema import FileReference
from models.enums import MessageType, MessageStatus
from models.users_model import UserSummary


class SendMessageRequest(BaseModel):
    """Fields a sender supplies, whichever transport they use"""
    receiver_id: str
    message_type: MessageType = MessageType.TEXT
    content: Optional[str] = None
    reply_to: Optional[str] = None
    duration: Optional[float] = None


class MessageResponse(BaseModel):
    """Model for returning message information to clients"""
    id: str
    sender_id: str
    receiver_id: str
    message_type: MessageType
    content: Optional[str] = None
    file: Optional[FileReference] = None
    duration: Optional[float] = None
    status: MessageStatus
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    reply_to: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ConversationSummary(BaseModel):
    """Conversation state as seen by one participant"""
    id: str
    participants: List[str]
    unread_count: int = 0
    last_activity: Optional[datetime] = None


class Pagination(BaseModel):
    page: int
    limit: int
    has_more: bool


class MessageListResponse(BaseModel):
    """A page of chat history, oldest first for display"""
    messages: List[MessageResponse]
    conversation: Optional[ConversationSummary] = None
    pagination: Pagination


class ConversationListItem(BaseModel):
    id: str
    user: Optional[UserSummary] = None
    last_message: Optional[MessageResponse] = None
    unread_count: int = 0
    last_activity: datetime
    is_accepted: bool = True
    is_archived: bool = False


class ConversationListResponse(BaseModel):
    chats: List[ConversationListItem] = []
    requests: List[ConversationListItem] = []
    pagination: Pagination


class SeenResponse(BaseModel):
    modified_count: int
    conversation_id: Optional[str] = None


class UnreadCountResponse(BaseModel):
    unread_count: int


class ActionResponse(BaseModel):
    success: bool = True
    message: str
