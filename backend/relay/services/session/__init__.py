"""
Session management module.

Provides the SignalingSession driving each signaling WebSocket.
"""
from .orchestrator import SignalingSession

__all__ = ["SignalingSession"]
