"""
Realtime connection gateway.

One ConnectionGateway serves one WebSocket: it authenticates the handshake,
registers presence, routes inbound events to the DeliveryCoordinator and
cleans up on disconnect.
"""
import json
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError as SchemaValidationError

from db.mongodb import make_pair_key
from db.schemas.users_schema import UserInDB
from logger.logger import logger
from mappers.messages_mapper import message_db_to_response
from models.enums import SocketEvent
from models.message_model import SendMessageRequest
from models.socket_model import (
    SocketEnvelope,
    ConversationTarget,
    SendMessagePayload,
    TypingPayload,
    MarkAsSeenPayload,
    DeleteMessagePayload,
    UpdateStatusPayload,
)
from models.users_model import UserSummary
from repos.user_repo import UserRepository
from services.auth_service import TokenVerifier
from services.connection_manager import Channel, ConnectionManager
from services.delivery_service import DeliveryCoordinator
from services.exceptions import AuthenticationError, MessagingError
from services.presence_registry import PresenceRegistry
from utils.time import get_current_utc_time


class ConnectionGateway:
    def __init__(
        self,
        websocket: WebSocket,
        coordinator: DeliveryCoordinator,
        presence: PresenceRegistry,
        connections: ConnectionManager,
        user_repo: UserRepository,
        token_verifier: TokenVerifier,
    ):
        self.websocket = websocket
        self.coordinator = coordinator
        self.presence = presence
        self.connections = connections
        self.user_repo = user_repo
        self.token_verifier = token_verifier

        self.connection_id = str(uuid.uuid4())
        self.channel = Channel(self.connection_id, websocket)
        self.user: Optional[UserInDB] = None

        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[None]]] = {
            SocketEvent.JOIN_CONVERSATION.value: self.on_join_conversation,
            SocketEvent.LEAVE_CONVERSATION.value: self.on_leave_conversation,
            SocketEvent.SEND_MESSAGE.value: self.on_send_message,
            SocketEvent.START_TYPING.value: self.on_start_typing,
            SocketEvent.STOP_TYPING.value: self.on_stop_typing,
            SocketEvent.MARK_AS_SEEN.value: self.on_mark_as_seen,
            SocketEvent.DELETE_MESSAGE.value: self.on_delete_message,
            SocketEvent.UPDATE_STATUS.value: self.on_update_status,
        }

    @property
    def user_id(self) -> str:
        return self.user.id

    async def authenticate(self, token: Optional[str]) -> UserInDB:
        """Resolve the handshake credential to a known user"""
        if not token:
            token = self.token_verifier.token_from_header(self.websocket.headers.get("authorization"))

        token_data = self.token_verifier.verify(token)
        user = await self.user_repo.find_by_id(token_data.user_id)
        if user is None:
            raise AuthenticationError("Authentication error: User not found")
        if not user.is_active:
            raise AuthenticationError("Authentication error: Account is deactivated")
        return user

    async def serve(self, token: Optional[str] = None) -> None:
        try:
            self.user = await self.authenticate(token)
        except AuthenticationError as e:
            logger.warning(f"Rejected realtime connection: {e.message}")
            await self.websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
            return

        await self.websocket.accept()
        try:
            await self.on_connect()
            while True:
                raw = await self.websocket.receive_text()
                await self.dispatch(raw)
        except WebSocketDisconnect:
            pass
        except RuntimeError as e:
            # Sending on a socket the client already dropped
            logger.warning(f"Realtime connection for {self.user_id} lost: {e}")
        finally:
            await self.on_disconnect()

    async def on_connect(self) -> None:
        logger.info(f"User connected: {self.user.name} ({self.user_id})")
        self.presence.register(self.user_id, self.connection_id, self.user.name, self.user.avatar)
        self.connections.attach(self.user_id, self.channel)

        await self.connections.broadcast(SocketEvent.USER_ONLINE.value, {
            "userId": self.user_id,
            "user": UserSummary.from_db(self.user),
        }, exclude=self.user_id)

        await self.emit(SocketEvent.ONLINE_USERS.value, [
            {
                "id": entry.user_id,
                "name": entry.name,
                "avatar": entry.avatar,
                "status": entry.status,
                "lastSeen": entry.last_seen,
            }
            for entry in self.presence.snapshot()
        ])

    async def on_disconnect(self) -> None:
        logger.info(f"User disconnected: {self.user.name} ({self.user_id})")
        # A newer connection for the same user keeps its rooms, timers and presence
        if not self.connections.detach(self.user_id, self.connection_id):
            return
        self.connections.stop_typing(self.user_id)
        self.connections.leave_all_rooms(self.user_id)

        if self.presence.unregister(self.user_id, self.connection_id):
            await self.connections.broadcast(SocketEvent.USER_OFFLINE.value, {
                "userId": self.user_id,
                "lastSeen": self.presence.last_seen(self.user_id),
            }, exclude=self.user_id)

    async def emit(self, event: str, data: Any) -> None:
        """Send to this connection only"""
        await self.channel.send(event, data)

    async def dispatch(self, raw: str) -> None:
        try:
            envelope = SocketEnvelope(**json.loads(raw))
        except (json.JSONDecodeError, TypeError, SchemaValidationError):
            await self.emit(SocketEvent.ERROR.value, {"message": "Malformed event"})
            return

        handler = self._handlers.get(envelope.event)
        if handler is None:
            await self.emit(SocketEvent.ERROR.value, {"message": f"Unknown event: {envelope.event}"})
            return

        try:
            await handler(envelope.data)
        except SchemaValidationError:
            await self.emit(SocketEvent.ERROR.value, {"message": "Missing required fields"})
        except MessagingError as e:
            await self.emit(SocketEvent.ERROR.value, {"message": e.message})
        except Exception:
            logger.exception(f"Realtime handler {envelope.event} failed for {self.user_id}")
            await self.emit(SocketEvent.ERROR.value, {"message": f"Failed to process {envelope.event}"})

    # Inbound events

    async def on_join_conversation(self, data: Dict[str, Any]) -> None:
        payload = ConversationTarget.model_validate(data)
        room_id = make_pair_key(self.user_id, payload.other_user_id)
        self.connections.join_room(room_id, self.user_id)
        logger.info(f"User {self.user_id} joined conversation room: {room_id}")

        await self.coordinator.catch_up(self.user_id, payload.other_user_id)

    async def on_leave_conversation(self, data: Dict[str, Any]) -> None:
        payload = ConversationTarget.model_validate(data)
        room_id = make_pair_key(self.user_id, payload.other_user_id)
        self.connections.leave_room(room_id, self.user_id)
        logger.info(f"User {self.user_id} left conversation room: {room_id}")

    async def on_send_message(self, data: Dict[str, Any]) -> None:
        payload = SendMessagePayload.model_validate(data)
        request = SendMessageRequest(
            receiver_id=payload.receiver_id,
            message_type=payload.message_type,
            content=payload.content,
            reply_to=payload.reply_to,
        )
        # Attachments are uploaded over HTTP, so non-text sends fail validation here
        message, _ = await self.coordinator.send_message(self.user_id, request)

        await self.emit(SocketEvent.MESSAGE_SENT.value, {
            "tempId": payload.temp_id,
            "message": message_db_to_response(message),
        })

    async def on_start_typing(self, data: Dict[str, Any]) -> None:
        payload = TypingPayload.model_validate(data)
        receiver_id = payload.receiver_id
        conversation_id = make_pair_key(self.user_id, receiver_id)
        stop_event = {"userId": self.user_id, "conversationId": conversation_id}

        async def expire() -> None:
            await self.connections.emit_to_user(receiver_id, SocketEvent.STOP_TYPING.value, stop_event)

        self.connections.start_typing(self.user_id, expire)
        self.connections.push(receiver_id, SocketEvent.START_TYPING.value, {
            "userId": self.user_id,
            "user": UserSummary.from_db(self.user),
            "conversationId": conversation_id,
        })

    async def on_stop_typing(self, data: Dict[str, Any]) -> None:
        payload = TypingPayload.model_validate(data)
        self.connections.stop_typing(self.user_id)
        self.connections.push(payload.receiver_id, SocketEvent.STOP_TYPING.value, {
            "userId": self.user_id,
            "conversationId": make_pair_key(self.user_id, payload.receiver_id),
        })

    async def on_mark_as_seen(self, data: Dict[str, Any]) -> None:
        payload = MarkAsSeenPayload.model_validate(data)
        await self.coordinator.mark_seen(self.user_id, payload.sender_id)

    async def on_delete_message(self, data: Dict[str, Any]) -> None:
        payload = DeleteMessagePayload.model_validate(data)
        await self.coordinator.delete_message(self.user_id, payload.message_id)
        await self.emit(SocketEvent.MESSAGE_DELETED_CONFIRM.value, {"messageId": payload.message_id})

    async def on_update_status(self, data: Dict[str, Any]) -> None:
        payload = UpdateStatusPayload.model_validate(data)
        if not self.presence.set_status(self.user_id, payload.status):
            return
        await self.connections.broadcast(SocketEvent.USER_STATUS_UPDATE.value, {
            "userId": self.user_id,
            "status": payload.status,
            "lastSeen": get_current_utc_time(),
        }, exclude=self.user_id)
