from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from db.mongodb import make_pair_key
from db.schemas.conversations_schema import ConversationInDB
from db.schemas.messages_schema import MessageInDB
from services.exceptions import PersistenceError
from utils.time import get_current_utc_time


class ConversationRepository:
    """
    Repository for per-pair conversation aggregates.
    Counters are only touched through atomic $inc / $set updates.
    """

    def __init__(self, db):
        self.db = db
        self.conversations = db.conversations

    async def get(self, conversation_id: str) -> Optional[ConversationInDB]:
        doc = await self.conversations.find_one({"_id": conversation_id})
        return ConversationInDB(**doc) if doc else None

    async def get_for_pair(self, user_a: str, user_b: str) -> Optional[ConversationInDB]:
        return await self.get(make_pair_key(user_a, user_b))

    async def find_or_create(
        self,
        user_a: str,
        user_b: str,
        initiator: Optional[str] = None
    ) -> ConversationInDB:
        """
        Return the aggregate for the pair, creating it on first contact.
        Upsert on the pair key; a concurrent insert that loses the race
        surfaces as DuplicateKeyError and is resolved by re-reading.
        """
        pair_key = make_pair_key(user_a, user_b)
        now = get_current_utc_time()
        accepted_by = {}
        if initiator:
            accepted_by = {user_a: user_a == initiator, user_b: user_b == initiator}

        try:
            doc = await self.conversations.find_one_and_update(
                {"_id": pair_key},
                {"$setOnInsert": {
                    "participants": sorted([user_a, user_b]),
                    "last_message_id": None,
                    "last_activity": now,
                    "unread_count": {user_a: 0, user_b: 0},
                    "accepted_by": accepted_by,
                    "archived_by": [],
                    "created_at": now,
                    "updated_at": now
                }},
                upsert=True,
                return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            doc = await self.conversations.find_one({"_id": pair_key})
        except PyMongoError as e:
            raise PersistenceError(f"Error creating conversation: {str(e)}") from e

        if doc is None:
            raise PersistenceError("Conversation could not be created")
        return ConversationInDB(**doc)

    async def record_message(self, conversation_id: str, message: MessageInDB) -> ConversationInDB:
        """
        Point the aggregate at a new message and bump the receiver's counter
        in a single update. Sending also accepts the conversation for the sender.
        """
        try:
            doc = await self.conversations.find_one_and_update(
                {"_id": conversation_id},
                {
                    "$set": {
                        "last_message_id": message.id,
                        "last_activity": message.created_at,
                        "updated_at": get_current_utc_time(),
                        f"accepted_by.{message.sender_id}": True
                    },
                    "$inc": {f"unread_count.{message.receiver_id}": 1}
                },
                return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            raise PersistenceError(f"Error updating conversation: {str(e)}") from e

        if doc is None:
            raise PersistenceError("Conversation disappeared while sending")
        return ConversationInDB(**doc)

    async def increment_unread(self, conversation_id: str, user_id: str) -> int:
        doc = await self.conversations.find_one_and_update(
            {"_id": conversation_id},
            {"$inc": {f"unread_count.{user_id}": 1}},
            return_document=ReturnDocument.AFTER
        )
        return ConversationInDB(**doc).get_unread_for(user_id) if doc else 0

    async def reset_unread(self, conversation_id: str, user_id: str) -> None:
        await self.conversations.update_one(
            {"_id": conversation_id},
            {"$set": {f"unread_count.{user_id}": 0, "updated_at": get_current_utc_time()}}
        )

    async def get_unread_for(self, conversation_id: str, user_id: str) -> int:
        conversation = await self.get(conversation_id)
        return conversation.get_unread_for(user_id) if conversation else 0

    async def list_for_user(
        self,
        user_id: str,
        skip: int = 0,
        limit: int = 20,
        archived: bool = False
    ) -> List[ConversationInDB]:
        """Conversations with at least one message, most recent activity first"""
        query = {
            "participants": user_id,
            "last_message_id": {"$ne": None},
            "archived_by": user_id if archived else {"$ne": user_id}
        }
        cursor = (
            self.conversations.find(query)
            .sort([("last_activity", -1), ("_id", 1)])
            .skip(skip)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)
        return [ConversationInDB(**doc) for doc in docs]

    async def accept(self, conversation_id: str, user_id: str) -> Optional[ConversationInDB]:
        doc = await self.conversations.find_one_and_update(
            {"_id": conversation_id, "participants": user_id},
            {"$set": {f"accepted_by.{user_id}": True, "updated_at": get_current_utc_time()}},
            return_document=ReturnDocument.AFTER
        )
        return ConversationInDB(**doc) if doc else None

    async def set_archived(self, conversation_id: str, user_id: str, archived: bool) -> Optional[ConversationInDB]:
        operator = "$addToSet" if archived else "$pull"
        doc = await self.conversations.find_one_and_update(
            {"_id": conversation_id, "participants": user_id},
            {
                operator: {"archived_by": user_id},
                "$set": {"updated_at": get_current_utc_time()}
            },
            return_document=ReturnDocument.AFTER
        )
        return ConversationInDB(**doc) if doc else None
