"""
Candidate address generation for subnet probing.

The smart list is tried first; the full /24 sweep is only generated
when nothing in the smart list answers.
"""

import logging
import random
from typing import Iterable, List, Optional, Set

from ..utils.address import is_ipv4, subnet_prefix

logger = logging.getLogger(__name__)

# Hosts that are usually routers, DHCP servers or statically assigned boxes
HIGH_PROBABILITY_SUFFIXES = (1, 2, 50, 100, 101, 254)

# Numeric sweep (.50 - .69) where small home servers tend to land
SWEEP_RANGE = range(50, 70)

# Gateways of mobile hotspots and host-only virtual adapters
HOTSPOT_CANDIDATES = (
    "192.168.43.1",   # Android hotspot
    "172.20.10.1",    # iOS personal hotspot
    "192.168.137.1",  # Windows mobile hotspot / ICS
    "192.168.56.1",   # VirtualBox host-only adapter
)


def _ipv4_only(local_addresses: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for ip in local_addresses:
        if is_ipv4(ip) and ip not in seen:
            seen.append(ip)
    return seen


class CandidateGenerator:
    """
    Builds ordered, de-duplicated candidate lists from local addresses.

    Ordering is shuffled inside each tier so many clients on the same
    network do not all hammer the same host first.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def _add_tier(self, tier: List[str], result: List[str], seen: Set[str]) -> None:
        fresh = [ip for ip in tier if ip not in seen]
        # drop duplicates inside the tier while keeping first occurrence
        fresh = list(dict.fromkeys(fresh))
        self._rng.shuffle(fresh)
        result.extend(fresh)
        seen.update(fresh)

    def smart_candidates(self, local_addresses: Iterable[str]) -> List[str]:
        """Gateway offsets, the .50-.69 sweep and hotspot bases; own addresses last."""
        own = _ipv4_only(local_addresses)
        if not own:
            return []

        prefixes = list(dict.fromkeys(subnet_prefix(ip) for ip in own))
        result: List[str] = []
        seen: Set[str] = set(own)

        self._add_tier(
            [f"{prefix}.{suffix}" for prefix in prefixes for suffix in HIGH_PROBABILITY_SUFFIXES],
            result, seen,
        )
        self._add_tier(
            [f"{prefix}.{suffix}" for prefix in prefixes for suffix in SWEEP_RANGE],
            result, seen,
        )
        self._add_tier(list(HOTSPOT_CANDIDATES), result, seen)

        own_tier = list(own)
        self._rng.shuffle(own_tier)
        result.extend(own_tier)

        logger.debug(f"Generated {len(result)} smart candidates for {len(prefixes)} subnet(s)")
        return result

    def full_sweep(self, local_addresses: Iterable[str], exclude: Iterable[str] = ()) -> List[str]:
        """Every host address (.1 - .254) of each local /24, minus exclude."""
        excluded = set(exclude)
        prefixes = list(dict.fromkeys(subnet_prefix(ip) for ip in _ipv4_only(local_addresses)))
        result: List[str] = []
        seen: Set[str] = set(excluded)

        for prefix in prefixes:
            self._add_tier([f"{prefix}.{host}" for host in range(1, 255)], result, seen)

        logger.debug(f"Generated {len(result)} full-sweep candidates")
        return result
