from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime

from utils.time import get_current_utc_time


class ConversationInDB(BaseModel):
    """
    Aggregate for an unordered pair of users.
    The _id is the canonical pair key, so one document per pair is enforced
    by the primary key.
    """
    id: str = Field(alias="_id")
    participants: List[str]
    last_message_id: Optional[str] = None
    last_activity: datetime = Field(default_factory=get_current_utc_time)
    unread_count: Dict[str, int] = {}
    accepted_by: Dict[str, bool] = {}
    archived_by: List[str] = []
    created_at: datetime = Field(default_factory=get_current_utc_time)
    updated_at: datetime = Field(default_factory=get_current_utc_time)

    model_config = {
        "populate_by_name": True,
    }

    def get_unread_for(self, user_id: str) -> int:
        return max(self.unread_count.get(user_id, 0), 0)

    def is_accepted_by(self, user_id: str) -> bool:
        # Conversations without acceptance data count as accepted
        return self.accepted_by.get(user_id, True)

    def other_participant(self, user_id: str) -> str:
        return next((p for p in self.participants if p != user_id), user_id)
