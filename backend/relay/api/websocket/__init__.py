"""
WebSocket API module.

Provides the WebSocket router for signaling.
"""
from .router import router

__all__ = ["router"]
