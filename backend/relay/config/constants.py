"""
Application-wide constants for the signaling relay.

Environment-dependent settings (ports, credentials, CORS) belong in settings.py.
This file is for protocol names and operational parameters that rarely change.
"""

# ==============================================================================
# ROLES
# ==============================================================================

# Peers that claim and answer callers
ROLE_ADMIN: str = "admin"

# Peers that broadcast looking for any admin
ROLE_CALLER: str = "caller"

# ==============================================================================
# WEBSOCKET EVENT TYPES
# ==============================================================================

EVENT_REGISTER: str = "register"
EVENT_SIGNAL: str = "signal"
EVENT_PING: str = "ping"
EVENT_PONG: str = "pong"

# ==============================================================================
# RETRY BROADCAST
# ==============================================================================

# Interval between re-broadcasts of an unclaimed caller's signal (milliseconds)
DEFAULT_RETRY_INTERVAL_MS: int = 3000

# ==============================================================================
# ICE CREDENTIALS PROVIDER
# ==============================================================================

# Path template on the provider host, filled with the channel name
XIRSYS_TURN_PATH: str = "/_turn/{channel}"

# Request body asking the provider for URL-formatted ice servers
XIRSYS_REQUEST_BODY: dict = {"format": "urls"}

# Error message returned when the provider response can't be used
INVALID_PROVIDER_RESPONSE: str = "Invalid Xirsys response"

# ==============================================================================
# DELIVERY
# ==============================================================================

# Max time a single WebSocket send may take before the peer is treated as gone (seconds)
DEFAULT_SEND_TIMEOUT_SEC: float = 10.0
