from typing import Dict, Iterable, Optional

from db.schemas.users_schema import UserInDB
from db.mongodb import convert_to_object_id, is_valid_object_id

class UserRepository:
    """
    Read-only access to user documents.
    Users are owned by the auth service; messaging only looks them up.
    """

    def __init__(self, db):
        self.db = db

    async def find_by_id(self, user_id: str) -> Optional[UserInDB]:
        """Find a user by id, None for unknown or malformed ids"""
        if not is_valid_object_id(user_id):
            return None

        user_dict = await self.db.users.find_one(
            {"_id": convert_to_object_id(user_id)},
            {"name": 1, "avatar": 1, "is_active": 1}
        )
        return UserInDB(**user_dict) if user_dict else None

    async def find_many(self, user_ids: Iterable[str]) -> Dict[str, UserInDB]:
        """Batch lookup keyed by id"""
        ids = [convert_to_object_id(u) for u in set(user_ids) if is_valid_object_id(u)]
        if not ids:
            return {}

        cursor = self.db.users.find({"_id": {"$in": ids}}, {"name": 1, "avatar": 1, "is_active": 1})
        users = [UserInDB(**doc) for doc in await cursor.to_list(length=len(ids))]
        return {user.id: user for user in users}
