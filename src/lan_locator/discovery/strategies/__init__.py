"""
Address-finding strategies, in the order the orchestrator runs them.
"""

from .base import DiscoveryStrategy, addresses_from_payload
from .mdns import MDNSStrategy
from .ssdp import SSDPStrategy, build_msearch, parse_ssdp_response
from .gateway import GatewayStrategy
from .brute_force import BruteForceStrategy

__all__ = [
    "DiscoveryStrategy", "addresses_from_payload",
    "MDNSStrategy",
    "SSDPStrategy", "build_msearch", "parse_ssdp_response",
    "GatewayStrategy",
    "BruteForceStrategy",
]
