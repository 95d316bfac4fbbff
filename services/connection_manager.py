"""Realtime transport state shared by every connection of the application.

Holds one private channel per user (the most recent connection wins),
conversation rooms keyed by the canonical pair key, per-sender typing
timers, and the set of in-flight best-effort pushes.

Every outbound frame is a JSON envelope: {"event": <name>, "data": <payload>}.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from config import TYPING_TIMEOUT_SECONDS
from logger.logger import logger


class Channel:
    """One accepted WebSocket; sends are serialized per socket"""

    def __init__(self, connection_id: str, websocket: WebSocket):
        self.connection_id = connection_id
        self.websocket = websocket
        self._lock = asyncio.Lock()

    async def send(self, event: str, data: Any) -> None:
        frame = {"event": event, "data": jsonable_encoder(data)}
        async with self._lock:
            await self.websocket.send_json(frame)


class ConnectionManager:
    """Manages private channels, rooms and typing timers for all users."""

    def __init__(self, typing_timeout: float = TYPING_TIMEOUT_SECONDS):
        self.typing_timeout = typing_timeout
        self._channels: Dict[str, Channel] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._typing: Dict[str, asyncio.Task] = {}
        self._pending: Set[asyncio.Task] = set()

    # Channels

    def attach(self, user_id: str, channel: Channel) -> None:
        self._channels[user_id] = channel
        logger.info(f"Channel attached for {user_id}. Connected users: {len(self._channels)}")

    def detach(self, user_id: str, connection_id: str) -> bool:
        """Remove the user's channel if it still belongs to connection_id"""
        channel = self._channels.get(user_id)
        if channel is None or channel.connection_id != connection_id:
            return False
        del self._channels[user_id]
        logger.info(f"Channel detached for {user_id}. Connected users: {len(self._channels)}")
        return True

    def is_connected(self, user_id: str) -> bool:
        return user_id in self._channels

    async def emit_to_user(self, user_id: str, event: str, data: Any) -> bool:
        """Send to a user's private channel; False when nothing was sent"""
        channel = self._channels.get(user_id)
        if channel is None:
            logger.debug(f"Skipping {event} for {user_id}: not connected")
            return False
        try:
            await channel.send(event, data)
            return True
        except Exception as e:
            logger.warning(f"Failed to emit {event} to {user_id}: {e}")
            return False

    async def broadcast(self, event: str, data: Any, exclude: Optional[str] = None) -> None:
        targets = [user_id for user_id in self._channels if user_id != exclude]
        if not targets:
            return
        await asyncio.gather(
            *(self.emit_to_user(user_id, event, data) for user_id in targets)
        )

    # Best-effort pushes

    def push(self, user_id: str, event: str, data: Any) -> None:
        """
        Fire-and-continue emit. The caller never awaits the outcome; the
        task is kept referenced until it finishes and its result is only logged.
        """
        task = asyncio.create_task(self.emit_to_user(user_id, event, data))
        self._pending.add(task)
        task.add_done_callback(self._push_done)

    def _push_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Push task failed: {error}")

    async def drain(self) -> None:
        """Wait for in-flight pushes"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Rooms

    def join_room(self, room_id: str, user_id: str) -> None:
        self._rooms.setdefault(room_id, set()).add(user_id)

    def leave_room(self, room_id: str, user_id: str) -> None:
        members = self._rooms.get(room_id)
        if members is None:
            return
        members.discard(user_id)
        if not members:
            del self._rooms[room_id]

    def leave_all_rooms(self, user_id: str) -> None:
        for room_id in [r for r, members in self._rooms.items() if user_id in members]:
            self.leave_room(room_id, user_id)

    def room_members(self, room_id: str) -> Set[str]:
        return set(self._rooms.get(room_id, set()))

    # Typing indicators

    def start_typing(self, sender_id: str, on_expire: Callable[[], Awaitable[None]]) -> None:
        """(Re)start the sender's quiet-period timer"""
        self.stop_typing(sender_id)
        self._typing[sender_id] = asyncio.create_task(self._expire_typing(sender_id, on_expire))

    def stop_typing(self, sender_id: str) -> bool:
        task = self._typing.pop(sender_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def is_typing(self, sender_id: str) -> bool:
        return sender_id in self._typing

    async def _expire_typing(self, sender_id: str, on_expire: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self.typing_timeout)
        # Still the live timer for this sender; a restart would have cancelled us
        self._typing.pop(sender_id, None)
        await on_expire()
