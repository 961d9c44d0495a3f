"""
Common interface for address-finding strategies.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional
from urllib.parse import urlsplit

from ...utils.address import is_loopback, is_private_range, is_valid_address, normalize_address
from ...utils.network import NetworkDiscovery
from ..models import Candidate, VerifiedService
from ..probe import ServiceProbe, probe_in_batches

logger = logging.getLogger(__name__)

LocalAddressProvider = Callable[[], List[str]]


def addresses_from_payload(data: Any) -> List[str]:
    """
    Pull candidate addresses out of a gateway/SSDP JSON body.

    Accepts {"ws_url": "ws://host:port", "ips": [...]}; the ws_url host
    comes first. Nothing here is trusted - callers still validate.
    """
    if not isinstance(data, dict):
        return []

    addresses: List[str] = []
    ws_url = data.get("ws_url")
    if isinstance(ws_url, str) and ws_url:
        try:
            host = urlsplit(ws_url).hostname
        except ValueError:
            host = None
        if host:
            addresses.append(host)

    ips = data.get("ips")
    if isinstance(ips, list):
        addresses.extend(ip for ip in ips if isinstance(ip, str))

    return addresses


class DiscoveryStrategy:
    """
    One independent way of producing candidate addresses.

    Subclasses implement find_candidates(); probe_candidates() runs them
    through the probe in batches and returns the first verified service.
    """

    name = "strategy"

    def __init__(
        self,
        timeout: float,
        batch_size: Optional[int] = None,
        allow_public: bool = True,
        local_addresses: Optional[LocalAddressProvider] = None,
    ):
        self.timeout = timeout
        self.batch_size = batch_size
        self.allow_public = allow_public
        self._local_addresses = local_addresses or NetworkDiscovery.get_local_addresses

    def local_addresses(self) -> List[str]:
        return self._local_addresses()

    def time_limit(self, probe_timeout: float) -> float:
        """Upper bound the orchestrator allows this strategy, probing included."""
        return self.timeout + 2 * probe_timeout

    def to_candidates(self, addresses: Iterable[str]) -> List[Candidate]:
        """Validate, de-duplicate and wrap raw addresses."""
        candidates: List[Candidate] = []
        seen = set()
        for raw in addresses:
            address = normalize_address(raw) if isinstance(raw, str) else raw
            if not is_valid_address(address):
                logger.debug(f"[{self.name}] dropping invalid address {raw!r}")
                continue
            if address in seen:
                continue
            if not self.allow_public and not (is_private_range(address) or is_loopback(address)):
                logger.debug(f"[{self.name}] skipping public address {address}")
                continue
            seen.add(address)
            candidates.append(Candidate(address=address, strategy=self.name))
        return candidates

    async def find_candidates(self) -> List[Candidate]:
        raise NotImplementedError

    async def probe_candidates(self, probe: ServiceProbe) -> Optional[VerifiedService]:
        candidates = await self.find_candidates()
        if not candidates:
            logger.debug(f"[{self.name}] no candidates")
            return None
        logger.info(f"[{self.name}] probing {len(candidates)} candidate(s)")
        return await probe_in_batches(probe, candidates, self.batch_size)
