from typing import List, Optional

from mappers.messages_mapper import message_db_to_response
from models.message_model import (
    ConversationListItem,
    ConversationListResponse,
    MessageResponse,
    Pagination,
    UnreadCountResponse,
)
from models.users_model import UserSummary
from repos.conversation_repo import ConversationRepository
from repos.message_repo import MessageRepository
from repos.user_repo import UserRepository
from services.exceptions import ValidationError


class MessageService:
    """Read-only queries over conversations and messages"""

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository
    ):
        self.message_repo = message_repo
        self.conversation_repo = conversation_repo
        self.user_repo = user_repo

    async def get_user_conversations(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        archived: bool = False
    ) -> ConversationListResponse:
        """Conversations for a user, split into accepted chats and pending requests"""
        conversations = await self.conversation_repo.list_for_user(
            user_id, skip=(page - 1) * limit, limit=limit, archived=archived
        )

        others = [c.other_participant(user_id) for c in conversations]
        users = await self.user_repo.find_many(others)
        last_messages = await self.message_repo.get_many(
            [c.last_message_id for c in conversations if c.last_message_id]
        )

        response = ConversationListResponse(
            pagination=Pagination(page=page, limit=limit, has_more=len(conversations) == limit)
        )
        for conversation, other_id in zip(conversations, others):
            user = users.get(other_id)
            last_message = last_messages.get(conversation.last_message_id)
            item = ConversationListItem(
                id=conversation.id,
                user=UserSummary.from_db(user) if user else UserSummary(id=other_id),
                last_message=message_db_to_response(last_message) if last_message else None,
                unread_count=conversation.get_unread_for(user_id),
                last_activity=conversation.last_activity,
                is_accepted=conversation.is_accepted_by(user_id),
                is_archived=user_id in conversation.archived_by,
            )
            if item.is_accepted:
                response.chats.append(item)
            else:
                response.requests.append(item)

        return response

    async def get_unread_count(self, user_id: str) -> UnreadCountResponse:
        return UnreadCountResponse(unread_count=await self.message_repo.count_unseen_for(user_id))

    async def search_messages(
        self,
        user_id: str,
        query: Optional[str],
        peer_id: Optional[str] = None,
        message_type: Optional[str] = None,
        limit: int = 20
    ) -> List[MessageResponse]:
        if not query or not query.strip():
            raise ValidationError("Search query is required")

        messages = await self.message_repo.search(
            user_id, query.strip(), peer_id=peer_id, message_type=message_type, limit=limit
        )
        return [message_db_to_response(m) for m in messages]
