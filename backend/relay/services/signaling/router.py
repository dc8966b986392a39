"""
Signal Router

Protocol state machine of the relay. Owns the connection registry, the
pending signal store and the binding table, and serializes every event
touching them behind one asyncio lock.

Routing rules:
- A signal without ``targetUserId`` is a caller looking for any admin. It
  is sent to every admin now and re-sent every retry interval until some
  admin claims the caller.
- A signal with ``targetUserId`` is an admin answering a caller. The first
  admin connection to answer claims the caller; answers from any other
  admin are dropped. Claimed callers that are offline get the answer
  buffered until they register.

Decisions are made and messages queued on connection outboxes under the
lock; the outboxes are drained after it is released.
"""
import asyncio
from typing import Any, Dict, List, Optional, Tuple
import logging

from relay.config.constants import DEFAULT_RETRY_INTERVAL_MS, ROLE_ADMIN
from relay.schemas.websocket_events import SignalMessage
from relay.services.connection import ConnectionRegistry, Outbound, PeerConnection
from relay.services.metrics import (
    admin_connections_gauge,
    registered_connections_gauge,
    signals_routed,
)
from .bindings import BindingTable
from .pending import BroadcastFn, PendingSignalStore, drain_all

logger = logging.getLogger(__name__)

# Outcomes of route_signal
ROUTE_BROADCAST = "broadcast"
ROUTE_SUPPRESSED = "suppressed"
ROUTE_DIRECT = "direct"
ROUTE_BUFFERED = "buffered"
ROUTE_CONFLICT = "conflict"
ROUTE_DROPPED = "dropped"


class SignalRouter:
    """
    Routes signaling payloads between callers and admins.

    State changes of all public coroutines are atomic with respect to each
    other and to retry ticks. Sends are not: a peer that is slow to read
    only delays the event that is writing to it.
    """

    def __init__(
        self,
        retry_interval_ms: int = DEFAULT_RETRY_INTERVAL_MS,
        cancel_retry_on_caller_disconnect: bool = False,
    ):
        self._lock = asyncio.Lock()
        self.registry = ConnectionRegistry()
        self.pending = PendingSignalStore(guard=self._lock)
        self.bindings = BindingTable()
        self.retry_interval_ms = retry_interval_ms
        self.cancel_retry_on_caller_disconnect = cancel_retry_on_caller_disconnect

    # === Connection lifecycle ===

    async def connect(self, connection: PeerConnection):
        async with self._lock:
            self.registry.attach(connection)
        logger.info(f"Client connected: {connection.connection_id}")

    async def register(
        self,
        connection: PeerConnection,
        user_id: Optional[str],
        role: Optional[str],
    ) -> bool:
        """Register ``connection`` as ``user_id``/``role`` and flush its buffer."""
        async with self._lock:
            if not self.registry.register(connection, user_id, role):
                logger.warning(
                    f"Invalid registration from connection {connection.connection_id}: "
                    f"id={user_id!r} role={role!r}"
                )
                return False

            logger.info(
                f"Registered user with connection {connection.connection_id}: "
                f"id={user_id} role={role}"
            )
            self._update_gauges()
            flushed = self.pending.flush_to(connection, user_id)

        if flushed:
            signals_routed.labels(route="flushed").inc(flushed)
            await self._deliver([connection])
        return True

    async def disconnect(self, connection: PeerConnection) -> Optional[str]:
        """Drop ``connection`` and release every caller it had claimed."""
        async with self._lock:
            self.pending.requeue(connection.mark_closed())
            role = self.registry.role_of(connection)
            user_id = self.registry.unregister(connection)
            self.bindings.release_bindings_for(connection)

            if (
                self.cancel_retry_on_caller_disconnect
                and user_id
                and role != ROLE_ADMIN
                and self.registry.lookup_connection(user_id) is None
            ):
                self.pending.cancel_retry_broadcast(user_id)

            self._update_gauges()

        logger.info(
            f"Client disconnected: {connection.connection_id} "
            f"({user_id or 'unregistered'}, {role or 'unknown role'})"
        )
        return user_id

    async def shutdown(self):
        """Stop all retry broadcasts."""
        await self.pending.shutdown()

    async def send_to_connection(self, connection: PeerConnection, message: Dict[str, Any]) -> bool:
        """Queue a control message (e.g. pong) behind anything already queued."""
        if not connection.enqueue(message):
            return False
        await self._deliver([connection])
        return True

    # === Signaling ===

    async def route_signal(
        self,
        connection: PeerConnection,
        data: Any,
        target_user_id: Optional[str] = None,
        from_user_id: Optional[str] = None,
    ) -> str:
        """
        Handle one inbound ``signal`` event from ``connection``.

        Returns one of the ROUTE_* outcomes.
        """
        targets: List[PeerConnection] = []
        async with self._lock:
            sender = from_user_id or self.registry.lookup_identity(connection)
            if not sender:
                logger.warning(
                    f"Signal received from unknown connection {connection.connection_id}. "
                    f"No user ID found."
                )
                outcome = ROUTE_DROPPED
            elif not target_user_id:
                outcome, targets = self._broadcast_to_admins(sender, data)
            else:
                outcome, targets = self._reply_to_caller(connection, sender, target_user_id, data)

        signals_routed.labels(route=outcome).inc()
        await self._deliver(targets)
        return outcome

    def _broadcast_to_admins(self, caller_id: str, data: Any) -> Tuple[str, List[PeerConnection]]:
        if self.bindings.is_bound(caller_id):
            logger.info(f"Caller {caller_id} already assigned to an admin.")
            return ROUTE_SUPPRESSED, []

        if self.pending.has_retry(caller_id):
            logger.debug(f"Caller {caller_id} already broadcasting, ignoring duplicate")
            return ROUTE_SUPPRESSED, []

        logger.info(f"Broadcasting signal from caller {caller_id} to all admins")
        targets = self.pending.start_retry_broadcast(
            caller_id,
            self._admin_broadcast(caller_id, data),
            self.retry_interval_ms,
        )
        return ROUTE_BROADCAST, targets or []

    def _admin_broadcast(self, caller_id: str, data: Any) -> BroadcastFn:
        message = SignalMessage(data=data, fromUserId=caller_id).model_dump()

        def queue_for_admins() -> Optional[List[PeerConnection]]:
            if self.bindings.is_bound(caller_id):
                return None

            admins = self.registry.admin_connections()
            if not admins:
                logger.info(f"No admins connected. Will retry sending signal from {caller_id}")
                return []

            queued = [admin for admin in admins if admin.enqueue(message)]
            logger.info(f"Sending signal from {caller_id} to {len(queued)} admin connections")
            return queued

        return queue_for_admins

    def _reply_to_caller(
        self,
        connection: PeerConnection,
        sender: str,
        caller_id: str,
        data: Any,
    ) -> Tuple[str, List[PeerConnection]]:
        if not self.bindings.try_bind(caller_id, connection):
            holder = self.bindings.admin_for(caller_id)
            logger.warning(
                f"Admin {connection.connection_id} tried to respond to caller {caller_id}, "
                f"but already handled by {holder.connection_id if holder else 'unknown'}"
            )
            return ROUTE_CONFLICT, []

        self.pending.cancel_retry_broadcast(caller_id)

        message = SignalMessage(data=data, fromUserId=sender).model_dump()
        recipient = self.registry.lookup_connection(caller_id)
        if recipient is not None and recipient.enqueue(message, recipient_id=caller_id):
            logger.info(f"Sending signal from admin {connection.connection_id} to caller {caller_id}")
            return ROUTE_DIRECT, [recipient]

        self.pending.buffer(caller_id, data, sender)
        logger.info(f"Stored signal for offline caller {caller_id}")
        return ROUTE_BUFFERED, []

    # === Delivery ===

    async def _deliver(self, connections: List[PeerConnection]):
        """Drain ``connections`` without the lock; buffer whatever didn't go out."""
        while connections:
            undelivered = await drain_all(connections)
            connections = await self._requeue(undelivered)

    async def _requeue(self, undelivered: List[Outbound]) -> List[PeerConnection]:
        if not any(item.recipient_id for item in undelivered):
            return []

        retry: List[PeerConnection] = []
        async with self._lock:
            for recipient_id in self.pending.requeue(undelivered):
                # The recipient may have re-registered while we were sending
                live = self.registry.lookup_connection(recipient_id)
                if live is not None and self.pending.flush_to(live, recipient_id):
                    retry.append(live)
        return retry

    # === Query Methods ===

    def _update_gauges(self):
        registered_connections_gauge.set(self.registry.get_registered_count())
        admin_connections_gauge.set(self.registry.get_admin_count())

    def get_stats(self) -> dict:
        return {
            "total_connections": self.registry.get_total_connections(),
            "registered_connections": self.registry.get_registered_count(),
            "admin_connections": self.registry.get_admin_count(),
            "bound_callers": self.bindings.get_bound_count(),
            "active_retry_broadcasts": self.pending.get_active_retry_count(),
            "buffered_signals": self.pending.get_buffered_count(),
        }
