import re
from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import ValidationError as SchemaValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from db.mongodb import convert_to_object_id, is_valid_object_id
from db.schemas.messages_schema import MessageInDB
from models.enums import MessageStatus
from services.exceptions import ValidationError, PersistenceError
from utils.time import get_current_utc_time, to_naive_utc


class MessageRepository:
    """
    Repository for direct messages.
    Status updates are conditional writes so a status never moves backwards.
    """

    def __init__(self, db):
        self.db = db
        self.messages = db.messages

    @staticmethod
    def _pair_filter(user_id: str, other_user_id: str) -> Dict[str, Any]:
        return {
            "$or": [
                {"sender_id": user_id, "receiver_id": other_user_id},
                {"sender_id": other_user_id, "receiver_id": user_id}
            ]
        }

    async def create(self, message_data: Dict[str, Any]) -> MessageInDB:
        """Validate and insert a new message with status 'sent'"""
        try:
            message = MessageInDB(**{**message_data, "status": MessageStatus.SENT})
        except SchemaValidationError as e:
            first = e.errors()[0]
            raise ValidationError(first.get("msg", "Invalid message")) from e

        try:
            await self.messages.insert_one(message.to_document())
        except PyMongoError as e:
            raise PersistenceError(f"Error creating message: {str(e)}") from e

        return message

    async def get(self, message_id: str) -> Optional[MessageInDB]:
        if not is_valid_object_id(message_id):
            return None
        doc = await self.messages.find_one({"_id": convert_to_object_id(message_id)})
        return MessageInDB(**doc) if doc else None

    async def remove(self, message_id: str) -> None:
        """Undo an insert whose send could not complete"""
        await self.messages.delete_one({"_id": convert_to_object_id(message_id)})

    async def list_conversation(
        self,
        user_id: str,
        other_user_id: str,
        limit: int = 50,
        skip: int = 0,
        before: Optional[datetime] = None
    ) -> List[MessageInDB]:
        """Messages between two users, newest first, soft-deleted excluded"""
        query = self._pair_filter(user_id, other_user_id)
        query["is_deleted"] = False
        if before is not None:
            query["created_at"] = {"$lt": to_naive_utc(before)}

        cursor = (
            self.messages.find(query)
            .sort([("created_at", -1), ("_id", -1)])
            .skip(skip)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)
        return [MessageInDB(**doc) for doc in docs]

    async def mark_delivered(self, message_id: str) -> bool:
        """sent -> delivered for one message; False if it already moved on"""
        result = await self.messages.update_one(
            {"_id": convert_to_object_id(message_id), "status": MessageStatus.SENT.value},
            {"$set": {"status": MessageStatus.DELIVERED.value, "updated_at": get_current_utc_time()}}
        )
        return result.modified_count == 1

    async def mark_delivered_batch(self, sender_id: str, receiver_id: str) -> int:
        """sent -> delivered for everything sender_id sent to receiver_id"""
        result = await self.messages.update_many(
            {
                "sender_id": sender_id,
                "receiver_id": receiver_id,
                "status": MessageStatus.SENT.value,
                "is_deleted": False
            },
            {"$set": {"status": MessageStatus.DELIVERED.value, "updated_at": get_current_utc_time()}}
        )
        return result.modified_count

    async def mark_seen_batch(self, sender_id: str, receiver_id: str) -> int:
        """Anything not yet seen -> seen"""
        result = await self.messages.update_many(
            {
                "sender_id": sender_id,
                "receiver_id": receiver_id,
                "status": {"$ne": MessageStatus.SEEN.value},
                "is_deleted": False
            },
            {"$set": {"status": MessageStatus.SEEN.value, "updated_at": get_current_utc_time()}}
        )
        return result.modified_count

    async def count_unseen_for(self, user_id: str) -> int:
        """Badge count across all conversations"""
        return await self.messages.count_documents({
            "receiver_id": user_id,
            "status": {"$ne": MessageStatus.SEEN.value},
            "is_deleted": False
        })

    async def soft_delete(self, message_id: str, sender_id: str) -> Optional[MessageInDB]:
        """Flag a message as deleted; only matches the sender's live messages"""
        now = get_current_utc_time()
        doc = await self.messages.find_one_and_update(
            {
                "_id": convert_to_object_id(message_id),
                "sender_id": sender_id,
                "is_deleted": False
            },
            {"$set": {"is_deleted": True, "deleted_at": now, "updated_at": now}},
            return_document=ReturnDocument.AFTER
        )
        return MessageInDB(**doc) if doc else None

    async def search(
        self,
        user_id: str,
        query: str,
        peer_id: Optional[str] = None,
        message_type: Optional[str] = None,
        limit: int = 20
    ) -> List[MessageInDB]:
        """Case-insensitive substring match over the caller's messages"""
        if peer_id:
            search_filter = self._pair_filter(user_id, peer_id)
        else:
            search_filter = {"$or": [{"sender_id": user_id}, {"receiver_id": user_id}]}

        search_filter["content"] = {"$regex": re.escape(query), "$options": "i"}
        search_filter["is_deleted"] = False
        if message_type:
            search_filter["message_type"] = message_type

        cursor = self.messages.find(search_filter).sort([("created_at", -1), ("_id", -1)]).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [MessageInDB(**doc) for doc in docs]

    async def get_many(self, message_ids: List[str]) -> Dict[str, MessageInDB]:
        ids = [convert_to_object_id(m) for m in message_ids if is_valid_object_id(m)]
        if not ids:
            return {}
        docs = await self.messages.find({"_id": {"$in": ids}}).to_list(length=len(ids))
        messages = [MessageInDB(**doc) for doc in docs]
        return {m.id: m for m in messages}
