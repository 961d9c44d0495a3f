"""
Client for the companion presence endpoints.
"""

import logging
from typing import Dict, List, Optional

import httpx

from ..utils.network import fetch_reflected_address

logger = logging.getLogger(__name__)


class PresenceClient:
    """
    Talks to a companion service's /api/heartbeat and /api/remote-servers.

    Failures are logged and reported as empty results; the registry is a
    discovery fallback, never a hard dependency.
    """

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def report(self, identity: str, addresses: List[str]) -> bool:
        """Send a heartbeat for identity with its current addresses."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/api/heartbeat",
                    json={"user_id": identity, "ips": addresses},
                )
                response.raise_for_status()
                return bool(response.json().get("success"))
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to report presence to {self.base_url}: {e}")
            return False

    async def list_servers(self) -> List[Dict[str, str]]:
        """Fetch [{"user_id", "ip"}] entries that are still fresh."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}/api/remote-servers")
                response.raise_for_status()
                servers = response.json().get("servers", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to list remote servers from {self.base_url}: {e}")
            return []
        return [s for s in servers if isinstance(s, dict) and isinstance(s.get("ip"), str)]

    async def known_addresses(self) -> List[str]:
        return [server["ip"] for server in await self.list_servers()]

    async def local_ip(self) -> Optional[str]:
        """Address the companion service sees this client connecting from."""
        return await fetch_reflected_address(self.base_url, timeout=self.timeout)
