"""
Caller-Admin Binding Table

Sticky claim of a caller by the first admin connection that answers it.
"""
from typing import Dict, List, Optional
import logging

from relay.services.connection import PeerConnection
from relay.services.metrics import bound_callers_gauge

logger = logging.getLogger(__name__)


class BindingTable:
    """caller user id -> admin connection that claimed it."""

    def __init__(self):
        self._bindings: Dict[str, PeerConnection] = {}

    def try_bind(self, caller_id: str, admin: PeerConnection) -> bool:
        """
        Claim ``caller_id`` for ``admin``.

        Accepted when the caller is unclaimed or already claimed by this
        same connection; rejected (state untouched) otherwise.
        """
        current = self._bindings.get(caller_id)
        if current is not None and current.connection_id != admin.connection_id:
            return False
        if current is None:
            self._bindings[caller_id] = admin
            bound_callers_gauge.set(len(self._bindings))
            logger.info(f"Caller {caller_id} bound to admin connection {admin.connection_id}")
        return True

    def release_bindings_for(self, admin: PeerConnection) -> List[str]:
        """Drop every binding held by ``admin``. Returns the released callers."""
        released = [
            caller_id
            for caller_id, bound in self._bindings.items()
            if bound.connection_id == admin.connection_id
        ]
        for caller_id in released:
            del self._bindings[caller_id]
        if released:
            bound_callers_gauge.set(len(self._bindings))
            logger.info(f"Released callers {released} from admin connection {admin.connection_id}")
        return released

    def is_bound(self, caller_id: str) -> bool:
        return caller_id in self._bindings

    def admin_for(self, caller_id: str) -> Optional[PeerConnection]:
        return self._bindings.get(caller_id)

    def get_bound_count(self) -> int:
        return len(self._bindings)
