"""
Pending Signal Store

Holds signaling payloads for recipients that are not connected yet, and
owns the recurring retry broadcasts of callers nobody has claimed.

The two concerns are kept in separate maps keyed by the same user id
space: ``_buffers`` (ordered payloads for an offline recipient) and
``_retries`` (one asyncio task per broadcasting caller).
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
import logging

from relay.config.constants import DEFAULT_RETRY_INTERVAL_MS
from relay.schemas.websocket_events import SignalMessage
from relay.services.connection import Outbound, PeerConnection
from relay.services.metrics import active_retries_gauge

logger = logging.getLogger(__name__)

# Called while holding the guard. Queues the broadcast and returns the
# connections to drain afterwards, or None once the broadcast should stop.
BroadcastFn = Callable[[], Optional[List[PeerConnection]]]


@dataclass
class PendingSignal:
    """A payload waiting for its recipient to register."""
    data: Any
    from_user_id: str

    def to_message(self) -> Dict[str, Any]:
        return SignalMessage(data=self.data, fromUserId=self.from_user_id).model_dump()


async def drain_all(connections: List[PeerConnection]) -> List[Outbound]:
    """Drain several connections concurrently; returns everything left unsent."""
    if not connections:
        return []
    results = await asyncio.gather(*(conn.drain() for conn in connections))
    return [item for undelivered in results for item in undelivered]


class PendingSignalStore:
    """
    Per-recipient buffers and per-caller retry broadcasts.

    ``guard`` is the lock that serializes all relay state. A retry tick
    decides and queues its broadcast while holding it, then sends after
    releasing it, so a slow peer never holds up other events.
    """

    def __init__(self, guard: Optional[asyncio.Lock] = None):
        self._buffers: Dict[str, List[PendingSignal]] = {}
        self._retries: Dict[str, asyncio.Task] = {}
        self._guard = guard or asyncio.Lock()

    # === Buffered payloads ===

    def buffer(self, recipient_id: str, data: Any, from_user_id: str) -> int:
        """Queue a payload for ``recipient_id``. Returns the queue length."""
        queue = self._buffers.setdefault(recipient_id, [])
        queue.append(PendingSignal(data=data, from_user_id=from_user_id))
        return len(queue)

    def pending_for(self, recipient_id: str) -> List[PendingSignal]:
        return list(self._buffers.get(recipient_id, []))

    def flush_to(self, connection: PeerConnection, recipient_id: str) -> int:
        """
        Move everything buffered for ``recipient_id`` onto ``connection``'s
        outbox, in arrival order. The caller drains the connection.
        """
        if not connection.is_open:
            return 0
        queue = self._buffers.pop(recipient_id, None)
        if not queue:
            return 0

        for pending in queue:
            connection.enqueue(pending.to_message(), recipient_id=recipient_id)
        logger.info(f"Delivering {len(queue)} pending signals to {recipient_id}")
        return len(queue)

    def requeue(self, undelivered: List[Outbound]) -> List[str]:
        """
        Put payloads that never reached their recipient back in front of
        that recipient's buffer. Messages without a recipient are dropped.

        Returns the recipient ids that got payloads back.
        """
        grouped: Dict[str, List[PendingSignal]] = {}
        for item in undelivered:
            if item.recipient_id is None:
                continue
            grouped.setdefault(item.recipient_id, []).append(
                PendingSignal(data=item.message.get("data"), from_user_id=item.message.get("fromUserId"))
            )

        for recipient_id, signals in grouped.items():
            self._buffers[recipient_id] = signals + self._buffers.get(recipient_id, [])
            logger.warning(f"{len(signals)} undelivered signals for {recipient_id} buffered again")
        return list(grouped)

    def get_buffered_count(self) -> int:
        return sum(len(queue) for queue in self._buffers.values())

    # === Retry broadcasts ===

    def has_retry(self, caller_id: str) -> bool:
        return caller_id in self._retries

    def start_retry_broadcast(
        self,
        caller_id: str,
        broadcast_fn: BroadcastFn,
        interval_ms: int = DEFAULT_RETRY_INTERVAL_MS,
    ) -> Optional[List[PeerConnection]]:
        """
        Run ``broadcast_fn`` now, then every ``interval_ms`` until cancelled.

        Must be called while holding the guard. Returns the connections the
        first broadcast was queued on (drain them after releasing the guard),
        or None when nothing was started because the caller already has a
        retry running or ``broadcast_fn`` asked to stop.
        """
        if caller_id in self._retries:
            return None

        connections = broadcast_fn()
        if connections is None:
            return None

        task = asyncio.create_task(
            self._retry_loop(caller_id, broadcast_fn, interval_ms / 1000),
            name=f"retry-broadcast:{caller_id}",
        )
        self._retries[caller_id] = task
        active_retries_gauge.set(len(self._retries))
        return connections

    def cancel_retry_broadcast(self, caller_id: str) -> bool:
        """Stop the retry broadcast for ``caller_id``. Safe to repeat."""
        task = self._retries.pop(caller_id, None)
        if task is None:
            return False
        task.cancel()
        active_retries_gauge.set(len(self._retries))
        logger.debug(f"Retry broadcast for {caller_id} cancelled")
        return True

    def get_active_retry_count(self) -> int:
        return len(self._retries)

    async def _retry_loop(self, caller_id: str, broadcast_fn: BroadcastFn, interval_sec: float):
        task = asyncio.current_task()
        while True:
            await asyncio.sleep(interval_sec)
            async with self._guard:
                if self._retries.get(caller_id) is not task:
                    return
                try:
                    connections = broadcast_fn()
                except Exception as e:
                    logger.error(f"Retry broadcast for {caller_id} failed: {e}")
                    continue
                if connections is None:
                    self._retries.pop(caller_id, None)
                    active_retries_gauge.set(len(self._retries))
                    logger.info(f"Retry broadcast for {caller_id} stopped")
                    return

            # Broadcasts go to admins only; nothing addressed to requeue
            await drain_all(connections)

    async def shutdown(self):
        """Cancel every retry broadcast and wait for the tasks to finish."""
        tasks = list(self._retries.values())
        self._retries.clear()
        active_retries_gauge.set(0)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
