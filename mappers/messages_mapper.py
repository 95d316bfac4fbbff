from typing import Optional

from db.schemas.messages_schema import MessageInDB
from db.schemas.conversations_schema import ConversationInDB
from models.message_model import MessageResponse, ConversationSummary

def message_db_to_response(message_db: MessageInDB) -> MessageResponse:
    """Convert database message schema to API response model"""
    message_dict = message_db.model_dump(by_alias=False)

    # Only include fields that are in the MessageResponse model
    response_fields = MessageResponse.model_fields.keys()
    filtered = {k: v for k, v in message_dict.items() if k in response_fields}

    return MessageResponse(**filtered)

def conversation_db_to_summary(
    conversation: Optional[ConversationInDB],
    user_id: str
) -> Optional[ConversationSummary]:
    """Conversation as seen by user_id, or None when the pair never talked"""
    if conversation is None:
        return None
    return ConversationSummary(
        id=conversation.id,
        participants=conversation.participants,
        unread_count=conversation.get_unread_for(user_id),
        last_activity=conversation.last_activity,
    )
