"""
Schemas Package

Pydantic models for WebSocket events.
"""

from relay.schemas.websocket_events import (
    WebSocketEventBase,
    RegisterEvent,
    SignalEvent,
    PingEvent,
    SignalMessage,
    PongMessage,
)

__all__ = [
    "WebSocketEventBase",
    "RegisterEvent",
    "SignalEvent",
    "PingEvent",
    "SignalMessage",
    "PongMessage",
]
