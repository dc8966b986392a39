"""
Connection Management Module

WebSocket handles and the user id / role registry.
"""
from .models import Outbound, PeerConnection
from .registry import ConnectionRegistry

__all__ = [
    "Outbound",
    "PeerConnection",
    "ConnectionRegistry",
]
