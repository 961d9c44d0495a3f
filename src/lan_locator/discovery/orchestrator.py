"""
Discovery orchestration.

Tries the cached address first, then each strategy in priority order
(mDNS, SSDP, gateway HTTP, brute force), each under its own time limit.
The first verified service wins and is cached.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

import httpx

from ..config import LocatorConfig, get_config
from ..errors import AllStrategiesFailed
from ..events import EventBus, EventType, event_bus
from ..utils.address import format_host, require_valid_address
from .cache import AddressCache
from .models import Candidate, DiscoveryState, VerifiedService
from .probe import ServiceProbe
from .strategies import (
    BruteForceStrategy,
    DiscoveryStrategy,
    GatewayStrategy,
    MDNSStrategy,
    SSDPStrategy,
)
from .strategies.base import LocalAddressProvider

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]


def default_strategies(
    config: LocatorConfig,
    local_addresses: Optional[LocalAddressProvider] = None,
) -> List[DiscoveryStrategy]:
    """The four strategies in priority order."""
    common = {
        "batch_size": config.probe_batch_size,
        "allow_public": config.dial_public_addresses,
        "local_addresses": local_addresses,
    }
    return [
        MDNSStrategy(config.mdns_service_type, timeout=config.mdns_timeout, **common),
        SSDPStrategy(
            config.ssdp_search_target,
            timeout=config.ssdp_timeout,
            http_timeout=config.gateway_timeout,
            **common,
        ),
        GatewayStrategy(config.api_port, timeout=config.gateway_timeout, **common),
        BruteForceStrategy(timeout=config.brute_force_timeout, **common),
    ]


class DiscoveryOrchestrator:
    """
    Finds one verified service.

    Usage:
        orchestrator = DiscoveryOrchestrator()
        orchestrator.add_log_sink(print)
        service = await orchestrator.discover()   # raises AllStrategiesFailed
    """

    def __init__(
        self,
        config: Optional[LocatorConfig] = None,
        probe: Optional[ServiceProbe] = None,
        strategies: Optional[List[DiscoveryStrategy]] = None,
        cache: Optional[AddressCache] = None,
        bus: Optional[EventBus] = None,
        check_api: bool = False,
    ):
        self.config = config or get_config()
        self.probe = probe or ServiceProbe(port=self.config.ws_port, timeout=self.config.probe_timeout)
        self.strategies = strategies if strategies is not None else default_strategies(self.config)
        self.cache = cache if cache is not None else AddressCache(
            self.config.cache_file, self.config.cache_failure_threshold
        )
        self.bus = bus or event_bus
        self.check_api = check_api

        self.state = DiscoveryState.IDLE
        self.service: Optional[VerifiedService] = None
        self.logs: List[str] = []
        self._log_sinks: List[LogSink] = []

    # ------------------------------------------------------------------
    # Log sinks
    # ------------------------------------------------------------------

    def add_log_sink(self, sink: LogSink) -> None:
        self._log_sinks.append(sink)

    def remove_log_sink(self, sink: LogSink) -> None:
        if sink in self._log_sinks:
            self._log_sinks.remove(sink)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        logger.log(level, message)
        line = f"{datetime.now().strftime('%H:%M:%S')}: {message}"
        self.logs.append(line)
        for sink in list(self._log_sinks):
            try:
                sink(line)
            except Exception as e:
                logger.error(f"Error in discovery log sink: {e}")
        self.bus.emit(EventType.DISCOVERY_LOG, {"message": line}, source="discovery")

    def _set_state(self, state: DiscoveryState) -> None:
        if state is self.state:
            return
        previous = self.state
        self.state = state
        self.bus.emit(
            EventType.DISCOVERY_STATE_CHANGED,
            {"previous": previous.value, "state": state.value},
            source="discovery",
        )

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover(self) -> VerifiedService:
        """
        Run the cached fast path, then every strategy until one verifies.

        Raises:
            AllStrategiesFailed: nothing verified; the caller should offer
                manual address entry (use_manual_address).
            RuntimeError: a scan is already running.
        """
        if self.state is DiscoveryState.SCANNING:
            raise RuntimeError("Discovery already in progress")

        self._set_state(DiscoveryState.SCANNING)
        self._log("Starting service discovery")
        attempted: List[str] = []

        try:
            service = await self._try_cached()
            if service is None:
                for strategy in self.strategies:
                    attempted.append(strategy.name)
                    service = await self._run_strategy(strategy)
                    if service is not None:
                        break
        except asyncio.CancelledError:
            self._set_state(DiscoveryState.IDLE)
            raise

        if service is None:
            self.service = None
            self._set_state(DiscoveryState.ERROR)
            self._log("All discovery methods failed", logging.WARNING)
            self.bus.emit(EventType.DISCOVERY_FAILED, {"strategies": attempted}, source="discovery")
            raise AllStrategiesFailed(attempted)

        self._commit(service)
        if self.check_api:
            await self.verify_api_access(service.address)
        return service

    async def _try_cached(self) -> Optional[VerifiedService]:
        address = self.cache.load()
        if address is None:
            return None

        self._log(f"Trying cached address {address}")
        service = await self.probe.check(Candidate(address=address, strategy="cache"))
        if service is None:
            self._log(f"Cached address {address} failed verification, discarding", logging.WARNING)
            self.cache.clear()
        return service

    async def _run_strategy(self, strategy: DiscoveryStrategy) -> Optional[VerifiedService]:
        limit = strategy.time_limit(self.probe.timeout)
        self._log(f"Trying {strategy.name} discovery (limit {limit:.0f}s)")
        try:
            service = await asyncio.wait_for(strategy.probe_candidates(self.probe), timeout=limit)
        except asyncio.TimeoutError:
            self._log(f"{strategy.name} discovery timed out", logging.WARNING)
            return None
        except Exception as e:
            self._log(f"{strategy.name} discovery failed: {e}", logging.WARNING)
            return None

        if service is None:
            self._log(f"{strategy.name} discovery found nothing")
        return service

    def _commit(self, service: VerifiedService) -> None:
        self.service = service
        self.cache.save(service.address)
        self._log(f"Discovered service at {service.address} (via {service.strategy})")
        self._set_state(DiscoveryState.CONNECTED)
        self.bus.emit(EventType.SERVICE_VERIFIED, service.to_dict(), source="discovery")

    # ------------------------------------------------------------------
    # Manual control
    # ------------------------------------------------------------------

    def use_manual_address(self, address: str) -> VerifiedService:
        """Accept a user-supplied address (raises InvalidAddress)."""
        require_valid_address(address)
        service = VerifiedService(address=address, port=self.probe.port, strategy="manual")
        self._commit(service)
        return service

    def reset(self) -> None:
        """Forget the cached address and return to idle."""
        self.cache.clear()
        self.service = None
        self._set_state(DiscoveryState.IDLE)
        self._log("Cached address cleared")

    async def verify_api_access(self, address: str) -> bool:
        """Check the control API of a found host. Logged, never raised."""
        url = f"http://{format_host(address)}:{self.config.api_port}/backend/ip"
        self._log(f"Checking API access: {url}")
        try:
            async with httpx.AsyncClient(timeout=self.config.gateway_timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self._log(f"API check failed: {e}", logging.WARNING)
            return False

        self._log(f"API check succeeded: {data}")
        return True
