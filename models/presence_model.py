from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from models.enums import PresenceStatus
from utils.time import get_current_utc_time


class PresenceEntry(BaseModel):
    """A live realtime connection for one user; never persisted"""
    user_id: str
    connection_id: str
    name: str = ""
    avatar: Optional[str] = None
    status: PresenceStatus = PresenceStatus.ONLINE
    last_seen: datetime = Field(default_factory=get_current_utc_time)

    model_config = {
        "use_enum_values": True,
    }
