from datetime import datetime
from fastapi import APIRouter, File, Form, Query, UploadFile, status
from typing import List, Optional

from dependencies.auth import CurrentUser
from dependencies.messages import DeliveryCoordinatorDep, MessageServiceDep, AttachmentStorageDep
from mappers.messages_mapper import message_db_to_response
from models.enums import MessageType
from models.message_model import (
    ActionResponse,
    ConversationListResponse,
    MessageListResponse,
    MessageResponse,
    SeenResponse,
    SendMessageRequest,
    UnreadCountResponse,
)
from services.storage_service import validate_attachment
from config import MESSAGES_PAGE_SIZE, CONVERSATIONS_PAGE_SIZE, SEARCH_RESULT_LIMIT

router = APIRouter()

# Fixed paths are declared before /{user_id} so they are not captured by it

@router.post("/send", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    current_user: CurrentUser,
    coordinator: DeliveryCoordinatorDep,
    storage: AttachmentStorageDep,
    receiver_id: str = Form(...),
    message_type: MessageType = Form(...),
    content: Optional[str] = Form(None),
    reply_to: Optional[str] = Form(None),
    duration: Optional[float] = Form(None),
    file: Optional[UploadFile] = File(None)
):
    """Send a new message; non-text messages carry an uploaded file"""
    request = SendMessageRequest(
        receiver_id=receiver_id,
        message_type=message_type,
        content=content,
        reply_to=reply_to,
        duration=duration
    )

    attachment = None
    if file is not None:
        # Reject before anything is uploaded
        await coordinator.validate_send(current_user.id, request, has_attachment=True)
        data = await file.read()
        validate_attachment(message_type.value, file.content_type, len(data))
        attachment = await storage.upload(data, file.filename or "file", file.content_type, message_type.value)

    try:
        message, _ = await coordinator.send_message(current_user.id, request, attachment)
    except Exception:
        if attachment is not None and attachment.object_name:
            await storage.delete(attachment.object_name)
        raise

    return message_db_to_response(message)

@router.get("/conversations", response_model=ConversationListResponse)
async def get_conversations(
    current_user: CurrentUser,
    message_service: MessageServiceDep,
    page: int = Query(1, ge=1),
    limit: int = Query(CONVERSATIONS_PAGE_SIZE, ge=1, le=100),
    archived: bool = Query(False)
):
    """Get all conversations for the current user, split into chats and requests"""
    return await message_service.get_user_conversations(current_user.id, page, limit, archived)

@router.get("/unread/count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: CurrentUser,
    message_service: MessageServiceDep
):
    """Unseen messages across all conversations, for badges"""
    return await message_service.get_unread_count(current_user.id)

@router.get("/search", response_model=List[MessageResponse])
async def search_messages(
    current_user: CurrentUser,
    message_service: MessageServiceDep,
    query: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    message_type: Optional[MessageType] = Query(None),
    limit: int = Query(SEARCH_RESULT_LIMIT, ge=1, le=100)
):
    """Search the current user's messages by content"""
    return await message_service.search_messages(
        current_user.id,
        query,
        peer_id=user_id,
        message_type=message_type.value if message_type else None,
        limit=limit
    )

@router.patch("/requests/{conversation_id}/accept", response_model=ActionResponse)
async def accept_request(
    conversation_id: str,
    current_user: CurrentUser,
    coordinator: DeliveryCoordinatorDep
):
    """Accept a message request"""
    await coordinator.accept_request(current_user.id, conversation_id)
    return ActionResponse(message="Request accepted")

@router.delete("/requests/{conversation_id}", response_model=ActionResponse)
async def decline_request(
    conversation_id: str,
    current_user: CurrentUser,
    coordinator: DeliveryCoordinatorDep
):
    """Decline a message request; the conversation is archived for the caller"""
    await coordinator.set_archived(current_user.id, conversation_id, archived=True)
    return ActionResponse(message="Request declined")

@router.patch("/conversations/{conversation_id}/archive", response_model=ActionResponse)
async def archive_conversation(
    conversation_id: str,
    current_user: CurrentUser,
    coordinator: DeliveryCoordinatorDep
):
    await coordinator.set_archived(current_user.id, conversation_id, archived=True)
    return ActionResponse(message="Conversation archived")

@router.patch("/conversations/{conversation_id}/unarchive", response_model=ActionResponse)
async def unarchive_conversation(
    conversation_id: str,
    current_user: CurrentUser,
    coordinator: DeliveryCoordinatorDep
):
    await coordinator.set_archived(current_user.id, conversation_id, archived=False)
    return ActionResponse(message="Conversation restored")

@router.get("/{user_id}", response_model=MessageListResponse)
async def get_messages(
    user_id: str,
    current_user: CurrentUser,
    coordinator: DeliveryCoordinatorDep,
    page: int = Query(1, ge=1),
    limit: int = Query(MESSAGES_PAGE_SIZE, ge=1, le=100),
    before: Optional[datetime] = Query(None)
):
    """Get messages with a specific user, oldest first; pending ones become delivered"""
    return await coordinator.get_messages(current_user.id, user_id, page, limit, before)

@router.patch("/{user_id}/seen", response_model=SeenResponse)
async def mark_messages_as_seen(
    user_id: str,
    current_user: CurrentUser,
    coordinator: DeliveryCoordinatorDep
):
    """Mark all messages from user_id as seen"""
    return await coordinator.mark_seen(current_user.id, user_id)

@router.delete("/{message_id}", response_model=ActionResponse)
async def delete_message(
    message_id: str,
    current_user: CurrentUser,
    coordinator: DeliveryCoordinatorDep
):
    """Soft-delete one of the current user's messages"""
    await coordinator.delete_message(current_user.id, message_id)
    return ActionResponse(message="Message deleted successfully")
