from datetime import datetime
from typing import Dict, List, Optional

from logger.logger import logger
from models.enums import PresenceStatus
from models.presence_model import PresenceEntry
from utils.time import get_current_utc_time


class PresenceRegistry:
    """
    In-memory map of user id to live connection.

    One instance is created per application and shared by reference. Every
    method runs without awaiting, so on a single event loop each call is
    applied atomically with respect to other handlers. A user holds at most
    one entry: the most recent connection wins.
    """

    def __init__(self):
        self._entries: Dict[str, PresenceEntry] = {}
        self._last_seen: Dict[str, datetime] = {}

    def register(self, user_id: str, connection_id: str, name: str = "", avatar: Optional[str] = None) -> PresenceEntry:
        entry = PresenceEntry(
            user_id=user_id,
            connection_id=connection_id,
            name=name,
            avatar=avatar,
        )
        replaced = self._entries.get(user_id)
        self._entries[user_id] = entry
        if replaced is not None and replaced.connection_id != connection_id:
            logger.info(f"Presence for {user_id} moved to connection {connection_id}")
        return entry

    def unregister(self, user_id: str, connection_id: Optional[str] = None) -> bool:
        """
        Drop the user's entry. With connection_id, only drop it if that
        connection is still the current one, so an old tab closing does not
        take a newer tab offline.
        """
        entry = self._entries.get(user_id)
        if entry is None:
            return False
        if connection_id is not None and entry.connection_id != connection_id:
            return False

        del self._entries[user_id]
        self._last_seen[user_id] = get_current_utc_time()
        return True

    def is_online(self, user_id: str) -> bool:
        return user_id in self._entries

    def get(self, user_id: str) -> Optional[PresenceEntry]:
        return self._entries.get(user_id)

    def set_status(self, user_id: str, status: str) -> bool:
        """Change a connected user's status; unknown statuses are ignored"""
        if status not in {s.value for s in PresenceStatus}:
            return False
        entry = self._entries.get(user_id)
        if entry is None:
            return False
        self._entries[user_id] = entry.model_copy(update={"status": status})
        return True

    def last_seen(self, user_id: str) -> Optional[datetime]:
        return self._last_seen.get(user_id)

    def snapshot(self) -> List[PresenceEntry]:
        return list(self._entries.values())
