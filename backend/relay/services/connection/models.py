"""
Connection Models

Data classes representing WebSocket connections.
"""
import asyncio
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Deque, Dict, Any, List, Optional
import logging

from fastapi import WebSocket

from relay.config.constants import DEFAULT_SEND_TIMEOUT_SEC

logger = logging.getLogger(__name__)


@dataclass
class Outbound:
    """A message queued for a connection.

    ``recipient_id`` is set for payloads addressed to a user id, so they can
    be buffered again if the connection dies before they go out.
    """
    message: Dict[str, Any]
    recipient_id: Optional[str] = None


class PeerConnection:
    """
    A single live WebSocket connection.

    ``connection_id`` is the opaque transport handle: unique per accepted
    socket and never reused. ``is_open`` turns False once the socket is
    gone (or a send to it failed) and stays False.

    Messages are queued with ``enqueue`` and written by ``drain`` in queue
    order, one writer at a time. Queueing never blocks, so it is safe while
    holding the router lock; draining happens after the lock is released.
    """

    def __init__(
        self,
        websocket: WebSocket,
        connection_id: Optional[str] = None,
        send_timeout: float = DEFAULT_SEND_TIMEOUT_SEC,
    ):
        self.websocket = websocket
        self.connection_id = connection_id or uuid.uuid4().hex
        self.connected_at = datetime.now(UTC)
        self.send_timeout = send_timeout
        self.is_open = True
        self._outbox: Deque[Outbound] = deque()
        self._send_lock = asyncio.Lock()

    def mark_closed(self) -> List[Outbound]:
        """Stop accepting messages. Returns whatever was still queued."""
        self.is_open = False
        undelivered = list(self._outbox)
        self._outbox.clear()
        return undelivered

    def enqueue(self, message: Dict[str, Any], recipient_id: Optional[str] = None) -> bool:
        """Queue ``message``; False if the connection is already closed."""
        if not self.is_open:
            return False
        self._outbox.append(Outbound(message=message, recipient_id=recipient_id))
        return True

    def get_queued_count(self) -> int:
        return len(self._outbox)

    async def drain(self) -> List[Outbound]:
        """
        Send queued messages in order.

        If a send fails the connection is closed and the unsent messages
        (the failed one first) are returned; otherwise returns [].
        """
        async with self._send_lock:
            while self._outbox and self.is_open:
                item = self._outbox.popleft()
                if not await self.send_json(item.message):
                    return [item] + self.mark_closed()
        return []

    async def send_json(self, data: Dict[str, Any]) -> bool:
        """Send JSON message to this connection."""
        if not self.is_open:
            return False
        try:
            await asyncio.wait_for(self.websocket.send_json(data), timeout=self.send_timeout)
            return True
        except Exception as e:
            logger.error(f"Error sending JSON to {self.connection_id}: {e!r}")
            self.is_open = False
            return False

    def __repr__(self) -> str:
        return f"PeerConnection({self.connection_id})"
