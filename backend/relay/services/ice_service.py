"""
ICE Server Service

Fetches TURN/STUN server credentials from Xirsys on behalf of clients,
so the provider secret never leaves the server.
"""
import logging
from typing import Any, List, Optional

import httpx

from relay.config.constants import (
    INVALID_PROVIDER_RESPONSE,
    XIRSYS_REQUEST_BODY,
    XIRSYS_TURN_PATH,
)
from relay.config.settings import settings
from relay.services.exceptions import IceServiceError

logger = logging.getLogger(__name__)


class IceService:
    """Thin client for the Xirsys ``_turn`` endpoint."""

    def __init__(
        self,
        user: str,
        secret: str,
        host: str = "global.xirsys.net",
        channel: str = "AI-Documentation",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user = user
        self.secret = secret
        self.url = f"https://{host}{XIRSYS_TURN_PATH.format(channel=channel)}"
        self.timeout = timeout
        self._transport = transport

    async def fetch_ice_servers(self) -> List[Any]:
        """
        Ask the provider for a fresh set of ICE servers.

        Raises:
            IceServiceError: request failed or the response had no ice servers
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.put(
                    self.url,
                    json=XIRSYS_REQUEST_BODY,
                    auth=(self.user, self.secret),
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Xirsys request error: {e}")
            raise IceServiceError(str(e) or e.__class__.__name__) from e

        try:
            return response.json()["v"]["iceServers"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Xirsys parse error: {e}")
            raise IceServiceError(INVALID_PROVIDER_RESPONSE) from e


def get_ice_service() -> IceService:
    """FastAPI dependency building the service from settings."""
    return IceService(
        user=settings.XIRSYS_USER,
        secret=settings.XIRSYS_SECRET,
        host=settings.XIRSYS_HOST,
        channel=settings.XIRSYS_CHANNEL,
        timeout=settings.ICE_REQUEST_TIMEOUT_SEC,
    )
