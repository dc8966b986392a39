"""
Signaling Module

Routing and pairing state for callers and admins.
"""
from relay.config.settings import settings

from .bindings import BindingTable
from .pending import PendingSignal, PendingSignalStore
from .router import (
    SignalRouter,
    ROUTE_BROADCAST,
    ROUTE_SUPPRESSED,
    ROUTE_DIRECT,
    ROUTE_BUFFERED,
    ROUTE_CONFLICT,
    ROUTE_DROPPED,
)

# Singleton instance
signal_router = SignalRouter(
    retry_interval_ms=settings.SIGNAL_RETRY_INTERVAL_MS,
    cancel_retry_on_caller_disconnect=settings.CANCEL_RETRY_ON_CALLER_DISCONNECT,
)


def get_signal_router() -> SignalRouter:
    """FastAPI dependency returning the process-wide router."""
    return signal_router


__all__ = [
    "BindingTable",
    "PendingSignal",
    "PendingSignalStore",
    "SignalRouter",
    "signal_router",
    "get_signal_router",
    "ROUTE_BROADCAST",
    "ROUTE_SUPPRESSED",
    "ROUTE_DIRECT",
    "ROUTE_BUFFERED",
    "ROUTE_CONFLICT",
    "ROUTE_DROPPED",
]
