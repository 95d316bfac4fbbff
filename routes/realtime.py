from fastapi import APIRouter, Query, WebSocket
from typing import Optional

from dependencies.auth import TokenVerifierDep
from dependencies.messages import DeliveryCoordinatorDep, PresenceDep, ConnectionsDep
from dependencies.user import UserRepositoryDep
from services.gateway_service import ConnectionGateway

router = APIRouter()

@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    coordinator: DeliveryCoordinatorDep,
    presence: PresenceDep,
    connections: ConnectionsDep,
    user_repo: UserRepositoryDep,
    verifier: TokenVerifierDep,
    token: Optional[str] = Query(None)
):
    """
    Realtime channel. The access token is passed at handshake time, either
    as ?token= or an Authorization header; frames are {"event", "data"} JSON.
    """
    gateway = ConnectionGateway(websocket, coordinator, presence, connections, user_repo, verifier)
    await gateway.serve(token)
