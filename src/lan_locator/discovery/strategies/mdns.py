"""
mDNS / DNS-SD discovery of advertised service instances.
"""

import asyncio
import logging
from typing import List, Set

from zeroconf import ServiceStateChange
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from ..models import Candidate
from .base import DiscoveryStrategy

logger = logging.getLogger(__name__)


class MDNSStrategy(DiscoveryStrategy):
    """
    Browses for instances of a service type.

    Collection stops as soon as one instance resolves to at least one
    address, or when the timeout expires.
    """

    name = "mdns"

    def __init__(self, service_type: str, timeout: float = 10.0, resolve_timeout: float = 3.0, **kwargs):
        super().__init__(timeout=timeout, **kwargs)
        self.service_type = service_type
        self.resolve_timeout = resolve_timeout

    async def browse(self) -> List[str]:
        """Return advertised addresses, de-duplicated, in resolution order."""
        found: List[str] = []
        found_event = asyncio.Event()
        pending: Set[asyncio.Task] = set()

        async def resolve(zc, service_type: str, name: str):
            info = AsyncServiceInfo(service_type, name)
            if not await info.async_request(zc, int(self.resolve_timeout * 1000)):
                logger.debug(f"[mdns] could not resolve {name}")
                return
            for address in info.parsed_addresses():
                if address not in found:
                    found.append(address)
            if found:
                logger.info(f"[mdns] {name} advertises {info.parsed_addresses()}")
                found_event.set()

        def on_service_state_change(zeroconf, service_type, name, state_change):
            if state_change is not ServiceStateChange.Added:
                return
            task = asyncio.ensure_future(resolve(zeroconf, service_type, name))
            pending.add(task)
            task.add_done_callback(pending.discard)

        aiozc = AsyncZeroconf()
        browser = None
        try:
            browser = AsyncServiceBrowser(
                aiozc.zeroconf, [self.service_type], handlers=[on_service_state_change]
            )
            await asyncio.wait_for(found_event.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.info(f"[mdns] no {self.service_type} instances within {self.timeout:.0f}s")
        finally:
            outstanding = list(pending)
            for task in outstanding:
                task.cancel()
            await asyncio.gather(*outstanding, return_exceptions=True)
            if browser is not None:
                await browser.async_cancel()
            await aiozc.async_close()

        return found

    async def find_candidates(self) -> List[Candidate]:
        return self.to_candidates(await self.browse())
