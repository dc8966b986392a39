"""
Relay Service Exceptions

Custom exceptions for errors surfaced outside the signaling core.
"""


class RelayError(Exception):
    """Base exception for relay service errors"""
    pass


class IceServiceError(RelayError):
    """Raised when ICE servers can't be obtained from the provider"""
    pass
