"""
Discovery module - finds and verifies the status service.
"""

from .models import Candidate, VerifiedService, DiscoveryState
from .candidates import CandidateGenerator, HOTSPOT_CANDIDATES
from .probe import ServiceProbe, probe_in_batches, HEALTHCHECK_PAYLOAD
from .cache import AddressCache
from .selector import SubnetSelector, select_preferred_address
from .orchestrator import DiscoveryOrchestrator, default_strategies

__all__ = [
    "Candidate", "VerifiedService", "DiscoveryState",
    "CandidateGenerator", "HOTSPOT_CANDIDATES",
    "ServiceProbe", "probe_in_batches", "HEALTHCHECK_PAYLOAD",
    "AddressCache",
    "SubnetSelector", "select_preferred_address",
    "DiscoveryOrchestrator", "default_strategies",
]
