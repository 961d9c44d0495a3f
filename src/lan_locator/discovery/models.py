"""
Discovery data types.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class DiscoveryState(Enum):
    """Orchestrator state."""
    IDLE = "idle"
    SCANNING = "scanning"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class Candidate:
    """An address under consideration, not yet verified."""
    address: str
    strategy: str
    discovered_at: float = field(default_factory=time.time, compare=False)


@dataclass(frozen=True)
class VerifiedService:
    """A candidate that answered the liveness handshake."""
    address: str
    port: int
    strategy: str
    verified_at: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "port": self.port,
            "strategy": self.strategy,
            "verified_at": self.verified_at,
        }
