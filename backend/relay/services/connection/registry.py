"""
Connection Registry

Bidirectional mapping between application user ids and live connections,
plus the role each connection last declared. Pure bookkeeping, no I/O.
"""
from typing import Dict, List, Optional, Set
import logging

from relay.config.constants import ROLE_ADMIN
from .models import PeerConnection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Tracks which connection speaks for which user id.

    Last registration wins: registering a user id that is already mapped
    moves the mapping to the newer connection. The admin set always holds
    exactly the connections currently registered with role ``admin``.
    """

    def __init__(self):
        # connection_id -> PeerConnection (every attached, still open socket)
        self._connections: Dict[str, PeerConnection] = {}
        # user_id -> connection_id
        self._user_connections: Dict[str, str] = {}
        # connection_id -> user_id
        self._connection_users: Dict[str, str] = {}
        # connection_id -> role
        self._connection_roles: Dict[str, str] = {}
        # connection_ids registered as admin
        self._admins: Set[str] = set()

    # === Lifecycle ===

    def attach(self, connection: PeerConnection):
        """Track a freshly accepted connection before it registers."""
        self._connections[connection.connection_id] = connection

    def register(self, connection: PeerConnection, user_id: Optional[str], role: Optional[str]) -> bool:
        """
        Bind ``user_id`` and ``role`` to ``connection``.

        Returns False (and changes nothing) when either value is missing.
        """
        if not user_id or not role:
            return False

        cid = connection.connection_id
        self._connections[cid] = connection

        previous_user = self._connection_users.get(cid)
        if previous_user is not None and previous_user != user_id:
            if self._user_connections.get(previous_user) == cid:
                del self._user_connections[previous_user]

        self._user_connections[user_id] = cid
        self._connection_users[cid] = user_id
        self._connection_roles[cid] = role

        if role == ROLE_ADMIN:
            self._admins.add(cid)
        else:
            self._admins.discard(cid)

        return True

    def unregister(self, connection: PeerConnection) -> Optional[str]:
        """
        Forget everything about ``connection``.

        Returns the user id it was registered under, if any.
        """
        cid = connection.connection_id
        self._connections.pop(cid, None)
        self._connection_roles.pop(cid, None)
        self._admins.discard(cid)

        user_id = self._connection_users.pop(cid, None)
        if user_id is not None and self._user_connections.get(user_id) == cid:
            del self._user_connections[user_id]

        return user_id

    # === Lookups ===

    def lookup_connection(self, user_id: str) -> Optional[PeerConnection]:
        """Live connection currently registered for ``user_id``."""
        cid = self._user_connections.get(user_id)
        if cid is None:
            return None
        connection = self._connections.get(cid)
        if connection is None or not connection.is_open:
            return None
        return connection

    def lookup_identity(self, connection: PeerConnection) -> Optional[str]:
        return self._connection_users.get(connection.connection_id)

    def role_of(self, connection: PeerConnection) -> Optional[str]:
        return self._connection_roles.get(connection.connection_id)

    def is_admin(self, connection: PeerConnection) -> bool:
        return connection.connection_id in self._admins

    def admin_connections(self) -> List[PeerConnection]:
        """Snapshot of the admin set."""
        return [
            self._connections[cid]
            for cid in self._admins
            if cid in self._connections
        ]

    def get_admin_count(self) -> int:
        return len(self._admins)

    def get_registered_count(self) -> int:
        return len(self._connection_users)

    def get_total_connections(self) -> int:
        return len(self._connections)
