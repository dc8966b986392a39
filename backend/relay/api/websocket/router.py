"""
WebSocket Router - Signaling Endpoint

This is the thin routing layer that delegates to SignalingSession
for all WebSocket handling.
"""
from fastapi import APIRouter, Depends, WebSocket

from relay.services.session import SignalingSession
from relay.services.signaling import SignalRouter, get_signal_router

router = APIRouter()


@router.websocket("/ws")
async def ws_endpoint(
    websocket: WebSocket,
    signal_router: SignalRouter = Depends(get_signal_router),
):
    """
    WebSocket endpoint for caller/admin signaling.

    Message Types (JSON, client -> server):
        - register: {"type": "register", "id", "role"} (or userId / user.id / user.role)
        - signal: {"type": "signal", "targetUserId"?, "data", "fromUserId"?}
        - ping: replies {"type": "pong"}

    Message Types (JSON, server -> client):
        - signal: {"type": "signal", "data", "fromUserId"}
    """
    session = SignalingSession(websocket=websocket, router=signal_router)
    await session.run()
