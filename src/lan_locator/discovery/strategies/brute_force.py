"""
Brute-force probing of the local /24 subnets.
"""

import logging
from typing import List, Optional

from ..candidates import CandidateGenerator
from ..models import Candidate, VerifiedService
from ..probe import ServiceProbe, probe_in_batches
from .base import DiscoveryStrategy

logger = logging.getLogger(__name__)


class BruteForceStrategy(DiscoveryStrategy):
    """
    Probes the smart candidate list, then - only if that finds nothing -
    every host of each local /24.
    """

    name = "brute_force"

    def __init__(self, timeout: float = 180.0, generator: Optional[CandidateGenerator] = None, **kwargs):
        super().__init__(timeout=timeout, **kwargs)
        self.generator = generator or CandidateGenerator()

    def time_limit(self, probe_timeout: float) -> float:
        return self.timeout

    async def find_candidates(self) -> List[Candidate]:
        return self.to_candidates(self.generator.smart_candidates(self.local_addresses()))

    async def probe_candidates(self, probe: ServiceProbe) -> Optional[VerifiedService]:
        local = self.local_addresses()
        if not local:
            logger.info("[brute_force] no local addresses, nothing to scan")
            return None

        smart = await self.find_candidates()
        logger.info(f"[brute_force] probing {len(smart)} smart candidate(s)")
        service = await probe_in_batches(probe, smart, self.batch_size)
        if service is not None:
            return service

        sweep = self.to_candidates(
            self.generator.full_sweep(local, exclude=[c.address for c in smart])
        )
        logger.info(f"[brute_force] smart list empty-handed, sweeping {len(sweep)} address(es)")
        return await probe_in_batches(probe, sweep, self.batch_size)
