"""
WebSocket Event Schemas

Pydantic models for the frames exchanged on the signaling WebSocket.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict


Identifier = Union[str, int]


def _as_text(value: Any) -> Optional[str]:
    """Normalize a client supplied id/role to a non-empty string or None."""
    if value is None or value == "" or value is False:
        return None
    return str(value)


# =============================================================================
# Inbound Events
# =============================================================================

class WebSocketEventBase(BaseModel):
    """Base model for all WebSocket events."""
    model_config = ConfigDict(extra="ignore")

    type: str


class RegisteredUser(BaseModel):
    """Nested ``user`` object some clients send on register."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[Identifier] = None
    role: Optional[Identifier] = None


class RegisterEvent(WebSocketEventBase):
    """
    Peer declares its identity and role.

    The identity may arrive as ``id``, ``userId`` or ``user.id`` and the
    role as ``role`` or ``user.role``; the first non-empty one wins.
    """
    type: Literal["register"] = "register"
    id: Optional[Identifier] = None
    userId: Optional[Identifier] = None
    role: Optional[Identifier] = None
    user: Optional[RegisteredUser] = None

    @property
    def user_id(self) -> Optional[str]:
        nested = self.user.id if self.user else None
        return _as_text(self.id) or _as_text(self.userId) or _as_text(nested)

    @property
    def user_role(self) -> Optional[str]:
        nested = self.user.role if self.user else None
        return _as_text(self.role) or _as_text(nested)


class SignalEvent(WebSocketEventBase):
    """Opaque signaling payload, either a broadcast or a targeted reply."""
    type: Literal["signal"] = "signal"
    targetUserId: Optional[Identifier] = None
    data: Any = None
    fromUserId: Optional[Identifier] = None

    @property
    def target_user_id(self) -> Optional[str]:
        return _as_text(self.targetUserId)

    @property
    def from_user_id(self) -> Optional[str]:
        return _as_text(self.fromUserId)


class PingEvent(WebSocketEventBase):
    """Simple ping for liveness checks."""
    type: Literal["ping"] = "ping"


# =============================================================================
# Outbound Messages
# =============================================================================

class SignalMessage(BaseModel):
    """Signaling payload delivered to a peer."""
    type: Literal["signal"] = "signal"
    data: Any = None
    fromUserId: str


class PongMessage(BaseModel):
    type: Literal["pong"] = "pong"
