"""
SSDP (multicast M-SEARCH) discovery.

Sends one search request for the service's search target, waits a short
window for a reply carrying a LOCATION header, then fetches that location
and reads the target URL from its JSON body.
"""

import asyncio
import logging
import socket
from typing import Dict, List, Optional

import httpx

from ..models import Candidate
from .base import DiscoveryStrategy, addresses_from_payload

logger = logging.getLogger(__name__)

SSDP_ADDRESS = ("239.255.255.250", 1900)


def build_msearch(search_target: str, mx: int = 1) -> bytes:
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {SSDP_ADDRESS[0]}:{SSDP_ADDRESS[1]}\r\n"
        "MAN: \"ssdp:discover\"\r\n"
        f"MX: {mx}\r\n"
        f"ST: {search_target}\r\n"
        "\r\n"
    ).encode("utf-8")


def parse_ssdp_response(data: bytes) -> Dict[str, str]:
    """Parse an SSDP reply into a dict of upper-cased header names."""
    text = data.decode("utf-8", errors="ignore")
    lines = text.split("\r\n")
    if not lines or not lines[0].upper().startswith("HTTP/"):
        return {}

    headers: Dict[str, str] = {}
    for line in lines[1:]:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        headers[key.strip().upper()] = value.strip()
    return headers


class _SearchProtocol(asyncio.DatagramProtocol):
    def __init__(self, search_target: str):
        self.search_target = search_target
        self.locations: List[str] = []
        self.found = asyncio.Event()

    def datagram_received(self, data: bytes, addr):
        headers = parse_ssdp_response(data)
        location = headers.get("LOCATION")
        st = headers.get("ST")
        if not location or (st and st != self.search_target):
            return
        if location not in self.locations:
            logger.info(f"[ssdp] reply from {addr[0]}: LOCATION={location}")
            self.locations.append(location)
            self.found.set()

    def error_received(self, exc):
        logger.debug(f"[ssdp] socket error: {exc}")


class SSDPStrategy(DiscoveryStrategy):
    """Multicast search for the service's search target."""

    name = "ssdp"

    def __init__(self, search_target: str, timeout: float = 3.0, http_timeout: float = 2.0, **kwargs):
        super().__init__(timeout=timeout, **kwargs)
        self.search_target = search_target
        self.http_timeout = http_timeout

    def time_limit(self, probe_timeout: float) -> float:
        return self.timeout + self.http_timeout + 2 * probe_timeout

    async def search(self) -> List[str]:
        """Send one M-SEARCH and return LOCATION values seen in the window."""
        loop = asyncio.get_running_loop()
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: _SearchProtocol(self.search_target),
            local_addr=("0.0.0.0", 0),
            family=socket.AF_INET,
        )
        try:
            sock = transport.get_extra_info("socket")
            if sock is not None:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            transport.sendto(build_msearch(self.search_target), SSDP_ADDRESS)
            try:
                await asyncio.wait_for(protocol.found.wait(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.info(f"[ssdp] no replies within {self.timeout:.0f}s")
        finally:
            transport.close()

        return list(protocol.locations)

    async def resolve_location(self, client: httpx.AsyncClient, location: str) -> List[str]:
        """Fetch a LOCATION URL and extract the addresses it names."""
        try:
            response = await client.get(location)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"[ssdp] could not resolve {location}: {e}")
            return []
        return addresses_from_payload(data)

    async def find_candidates(self) -> List[Candidate]:
        locations = await self.search()
        if not locations:
            return []

        addresses: List[str] = []
        async with httpx.AsyncClient(timeout=self.http_timeout) as client:
            for location in locations:
                addresses.extend(await self.resolve_location(client, location))
        return self.to_candidates(addresses)
