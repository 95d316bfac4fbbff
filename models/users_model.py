from pydantic import BaseModel
from typing import Optional

from db.schemas.users_schema import UserInDB


class UserSummary(BaseModel):
    """Public identity attached to conversations and presence"""
    id: str
    name: str = ""
    avatar: Optional[str] = None

    @classmethod
    def from_db(cls, user: UserInDB) -> "UserSummary":
        return cls(id=user.id, name=user.name, avatar=user.avatar)
