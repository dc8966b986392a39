"""Relay Services.

This package contains the service modules behind the signaling relay.

Service Categories:
- Connection: WebSocket handles and the identity/role registry
- Signaling: pending signal store, caller-admin bindings, signal routing
- Session: per-WebSocket receive loop

External integrations:
- ice_service: ICE server credentials from Xirsys
"""
