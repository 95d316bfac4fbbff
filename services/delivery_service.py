"""
Message delivery state machine.

Both the HTTP routes and the realtime gateway send, fetch, mark and delete
messages through DeliveryCoordinator, so validation and side effects are the
same whichever transport a client uses.

Status only moves forward (sent -> delivered -> seen) and every transition is
a conditional write in the store. Pushes to connected clients are
best-effort: they are spawned on the ConnectionManager and never awaited by
the request that caused them. Clients that miss a push catch up by fetching.
"""
from datetime import datetime
from typing import Optional, Tuple

from pymongo.errors import PyMongoError

from db.mongodb import make_pair_key
from db.schemas.conversations_schema import ConversationInDB
from db.schemas.files_schema import FileReference
from db.schemas.messages_schema import MessageInDB
from db.schemas.users_schema import UserInDB
from logger.logger import logger
from mappers.messages_mapper import message_db_to_response, conversation_db_to_summary
from models.enums import MessageType, MessageStatus, SocketEvent
from models.message_model import SendMessageRequest, MessageListResponse, Pagination, SeenResponse
from repos.conversation_repo import ConversationRepository
from repos.message_repo import MessageRepository
from repos.user_repo import UserRepository
from services.connection_manager import ConnectionManager
from services.exceptions import (
    MessagingError,
    ValidationError,
    NotFoundError,
    AuthorizationError,
    PersistenceError,
)
from services.presence_registry import PresenceRegistry
from utils.time import get_current_utc_time


class DeliveryCoordinator:
    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository,
        presence: PresenceRegistry,
        connections: ConnectionManager,
    ):
        self.message_repo = message_repo
        self.conversation_repo = conversation_repo
        self.user_repo = user_repo
        self.presence = presence
        self.connections = connections

    async def validate_send(
        self,
        sender_id: str,
        request: SendMessageRequest,
        has_attachment: bool
    ) -> UserInDB:
        """Reject a send before anything is stored or uploaded; returns the receiver"""
        if not request.receiver_id:
            raise ValidationError("Receiver ID is required")
        if request.receiver_id == sender_id:
            raise ValidationError("Cannot send message to yourself")

        if request.message_type == MessageType.TEXT:
            if not request.content or not request.content.strip():
                raise ValidationError("Content is required for text messages")
            if has_attachment:
                raise ValidationError("Text messages cannot carry a file")
        elif not has_attachment:
            raise ValidationError(f"File is required for {request.message_type.value} messages")

        receiver = await self.user_repo.find_by_id(request.receiver_id)
        if receiver is None:
            raise NotFoundError("Receiver not found")
        return receiver

    async def send_message(
        self,
        sender_id: str,
        request: SendMessageRequest,
        attachment: Optional[FileReference] = None
    ) -> Tuple[MessageInDB, ConversationInDB]:
        """
        Persist a message, update the pair's conversation and, if the
        receiver is connected, mark it delivered and push it to them.
        The returned message is the sender's acknowledgment.
        """
        await self.validate_send(sender_id, request, attachment is not None)

        message_data = {
            "sender_id": sender_id,
            "receiver_id": request.receiver_id,
            "message_type": request.message_type,
            "reply_to": await self._resolve_reply(sender_id, request.receiver_id, request.reply_to),
        }
        if request.message_type == MessageType.TEXT:
            message_data["content"] = request.content
        else:
            message_data["file"] = attachment
            if request.message_type == MessageType.VOICE and request.duration:
                message_data["duration"] = request.duration

        message = await self.message_repo.create(message_data)

        try:
            conversation = await self.conversation_repo.find_or_create(
                sender_id, request.receiver_id, initiator=sender_id
            )
            conversation = await self.conversation_repo.record_message(conversation.id, message)
        except (MessagingError, PyMongoError) as e:
            logger.error(f"Send from {sender_id} failed after insert, rolling back {message.id}: {e}")
            await self._rollback(message.id)
            raise PersistenceError("Failed to send message") from e

        logger.info(f"Message {message.id} sent {sender_id} -> {request.receiver_id}")

        if self.presence.is_online(request.receiver_id):
            message = await self._deliver_now(message)
            self.connections.push(request.receiver_id, SocketEvent.NEW_MESSAGE.value, {
                "message": message_db_to_response(message),
                "conversation": {
                    "id": conversation.id,
                    "participants": conversation.participants,
                    "unreadCount": conversation.get_unread_for(request.receiver_id),
                },
            })

        return message, conversation

    async def catch_up(self, user_id: str, other_user_id: str) -> int:
        """
        Mark everything other_user_id sent to user_id while they were away
        as delivered and tell the sender.
        """
        delivered = await self.message_repo.mark_delivered_batch(other_user_id, user_id)
        if delivered:
            logger.info(f"{delivered} message(s) from {other_user_id} delivered to {user_id}")
            self.connections.push(other_user_id, SocketEvent.MESSAGES_DELIVERED.value, {
                "conversationId": make_pair_key(user_id, other_user_id),
                "deliveredTo": user_id,
            })
        return delivered

    async def mark_seen(self, reader_id: str, sender_id: str) -> SeenResponse:
        """Reader consumed the conversation: everything from sender becomes seen"""
        if not sender_id or sender_id == reader_id:
            raise ValidationError("Cannot mark messages as seen with yourself")

        modified = await self.message_repo.mark_seen_batch(sender_id, reader_id)

        conversation = await self.conversation_repo.get_for_pair(reader_id, sender_id)
        if conversation is not None:
            await self.conversation_repo.reset_unread(conversation.id, reader_id)

        conversation_id = conversation.id if conversation else None
        self.connections.push(sender_id, SocketEvent.MESSAGES_SEEN.value, {
            "seenBy": reader_id,
            "conversationId": conversation_id,
            "seenAt": get_current_utc_time(),
        })
        return SeenResponse(modified_count=modified, conversation_id=conversation_id)

    async def delete_message(self, user_id: str, message_id: str) -> MessageInDB:
        """Soft-delete; only the sender may do it"""
        message = await self.message_repo.get(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        if message.sender_id != user_id:
            raise AuthorizationError("Not authorized to delete this message")
        if message.is_deleted:
            return message

        deleted = await self.message_repo.soft_delete(message_id, user_id)
        if deleted is None:
            # Lost a race with another delete of the same message
            return await self.message_repo.get(message_id)

        self.connections.push(message.receiver_id, SocketEvent.MESSAGE_DELETED.value, {
            "messageId": message_id,
            "senderId": user_id,
        })
        return deleted

    async def get_messages(
        self,
        user_id: str,
        other_user_id: str,
        page: int = 1,
        limit: int = 50,
        before: Optional[datetime] = None
    ) -> MessageListResponse:
        """A page of history, oldest first. Fetching counts as delivery."""
        if user_id == other_user_id:
            raise ValidationError("Cannot get messages with yourself")
        if await self.user_repo.find_by_id(other_user_id) is None:
            raise NotFoundError("User not found")

        await self.catch_up(user_id, other_user_id)

        messages = await self.message_repo.list_conversation(
            user_id, other_user_id, limit=limit, skip=(page - 1) * limit, before=before
        )
        messages.reverse()

        conversation = await self.conversation_repo.get_for_pair(user_id, other_user_id)
        return MessageListResponse(
            messages=[message_db_to_response(m) for m in messages],
            conversation=conversation_db_to_summary(conversation, user_id),
            pagination=Pagination(page=page, limit=limit, has_more=len(messages) == limit),
        )

    async def accept_request(self, user_id: str, conversation_id: str) -> ConversationInDB:
        conversation = await self.conversation_repo.accept(conversation_id, user_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation

    async def set_archived(self, user_id: str, conversation_id: str, archived: bool) -> ConversationInDB:
        """Archive or restore a conversation for one participant; declining a request archives it"""
        conversation = await self.conversation_repo.set_archived(conversation_id, user_id, archived)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation

    async def _deliver_now(self, message: MessageInDB) -> MessageInDB:
        try:
            if await self.message_repo.mark_delivered(message.id):
                return message.model_copy(update={"status": MessageStatus.DELIVERED.value})
        except PyMongoError as e:
            # Stays 'sent'; the receiver's next fetch or join delivers it
            logger.warning(f"Could not mark {message.id} delivered: {e}")
        return message

    async def _resolve_reply(self, sender_id: str, receiver_id: str, reply_to: Optional[str]) -> Optional[str]:
        """Keep reply_to only if it points at a message between the same pair"""
        if not reply_to:
            return None
        original = await self.message_repo.get(reply_to)
        if original is None or {original.sender_id, original.receiver_id} != {sender_id, receiver_id}:
            logger.debug(f"Dropping reply_to {reply_to}: not in this conversation")
            return None
        return original.id

    async def _rollback(self, message_id: str) -> None:
        try:
            await self.message_repo.remove(message_id)
        except PyMongoError as e:
            logger.error(f"Rollback of message {message_id} failed: {e}")
