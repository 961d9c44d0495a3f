"""
Gateway HTTP discovery.

Asks the local machine and the gateway-like hosts of each local /24 for
the service's addresses over the control API:

    GET http://<host>:<api_port>/discover     -> {"ips": [...], "ws_url"?: "..."}
    GET http://<host>:<api_port>/backend/ip   -> {"ips": [...]}
"""

import asyncio
import logging
from typing import List

import httpx

from ...utils.address import format_host, is_ipv4, subnet_prefix
from ..models import Candidate
from .base import DiscoveryStrategy, addresses_from_payload

logger = logging.getLogger(__name__)

GATEWAY_SUFFIXES = (1, 100, 254, 50, 101)
DISCOVERY_PATHS = ("/discover", "/backend/ip")


class GatewayStrategy(DiscoveryStrategy):
    """Queries well-known control endpoints for candidate addresses."""

    name = "gateway"

    def __init__(self, api_port: int, timeout: float = 2.0, **kwargs):
        # both paths may be tried per host
        super().__init__(timeout=timeout * len(DISCOVERY_PATHS), **kwargs)
        self.api_port = api_port
        self.http_timeout = timeout

    def gateway_hosts(self) -> List[str]:
        hosts = ["127.0.0.1"]
        for local in self.local_addresses():
            if not is_ipv4(local):
                continue
            prefix = subnet_prefix(local)
            for suffix in GATEWAY_SUFFIXES:
                host = f"{prefix}.{suffix}"
                if host not in hosts:
                    hosts.append(host)
        return hosts

    async def query_host(self, client: httpx.AsyncClient, host: str) -> List[str]:
        """Try /discover, then /backend/ip; first non-empty answer wins."""
        base = f"http://{format_host(host)}:{self.api_port}"
        for path in DISCOVERY_PATHS:
            try:
                response = await client.get(f"{base}{path}")
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.debug(f"[gateway] {base}{path} failed: {e}")
                continue

            addresses = addresses_from_payload(data)
            if addresses:
                logger.info(f"[gateway] {base}{path} reported {addresses}")
                return addresses
        return []

    async def find_candidates(self) -> List[Candidate]:
        hosts = self.gateway_hosts()
        async with httpx.AsyncClient(timeout=self.http_timeout) as client:
            results = await asyncio.gather(*(self.query_host(client, host) for host in hosts))

        addresses: List[str] = []
        for reported in results:
            addresses.extend(reported)
        return self.to_candidates(addresses)
