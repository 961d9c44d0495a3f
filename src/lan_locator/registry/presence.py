"""
Presence registry - last-seen table of service hosts.

Hosts that can see the service report their addresses by heartbeat;
peers that cannot discover it directly list the recent reports.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from ..events import EventBus, EventType, event_bus
from ..utils.address import is_private_range, is_valid_address

logger = logging.getLogger(__name__)

DEFAULT_TTL = 600.0  # 10 minutes

Clock = Callable[[], float]


@dataclass(frozen=True)
class RegistryEntry:
    """One reporter's latest heartbeat."""
    identity: str
    addresses: List[str] = field(default_factory=list)
    last_seen: float = 0.0
    public_address: Optional[str] = None

    @property
    def address(self) -> Optional[str]:
        """Address advertised to peers: the public one when known."""
        if self.public_address:
            return self.public_address
        return self.addresses[0] if self.addresses else None

    def to_dict(self) -> Dict:
        return {
            "user_id": self.identity,
            "ips": list(self.addresses),
            "public_ip": self.public_address,
            "last_seen": self.last_seen,
        }


class PresenceRegistry:
    """
    Keyed table of RegistryEntry with passive expiry.

    Every heartbeat replaces one key with a new immutable entry, so
    concurrent writers never see partial updates and writes to different
    keys do not contend on a registry-wide lock. Reads filter out entries
    older than the TTL without deleting them.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Optional[Clock] = None, bus: Optional[EventBus] = None):
        self.ttl = ttl
        self._clock = clock or time.time
        self._entries: Dict[str, RegistryEntry] = {}
        self.bus = bus or event_bus

    def report_presence(self, identity: str, addresses: Iterable[str]) -> RegistryEntry:
        """Store a heartbeat; invalid addresses are dropped."""
        if not identity:
            raise ValueError("identity is required")

        reported = list(addresses or [])
        valid: List[str] = []
        for address in reported:
            if is_valid_address(address) and address not in valid:
                valid.append(address)

        rejected = len(reported) - len(valid)
        if rejected:
            logger.debug(f"Heartbeat from {identity}: dropped {rejected} invalid/duplicate address(es)")

        public = next((a for a in valid if not is_private_range(a)), None)
        entry = RegistryEntry(
            identity=identity,
            addresses=valid,
            last_seen=self._clock(),
            public_address=public,
        )
        self._entries[identity] = entry

        logger.debug(f"Heartbeat from {identity}: {valid} (public={public})")
        self.bus.emit(EventType.PRESENCE_REPORTED, entry.to_dict(), source="registry")
        return entry

    def _is_fresh(self, entry: RegistryEntry, now: float) -> bool:
        return now - entry.last_seen < self.ttl

    def list_presence(self) -> List[Dict[str, str]]:
        """Fresh entries as [{"user_id", "ip"}]; stale or address-less entries are skipped."""
        now = self._clock()
        servers = []
        for identity, entry in list(self._entries.items()):
            if not self._is_fresh(entry, now) or entry.address is None:
                continue
            servers.append({"user_id": identity, "ip": entry.address})
        return servers

    def get_entry(self, identity: str) -> Optional[RegistryEntry]:
        """Return the entry for identity if it is still fresh."""
        entry = self._entries.get(identity)
        if entry is None or not self._is_fresh(entry, self._clock()):
            return None
        return entry

    def purge_stale(self) -> int:
        """Delete expired entries. Returns how many were removed."""
        now = self._clock()
        stale = [identity for identity, entry in list(self._entries.items()) if not self._is_fresh(entry, now)]
        for identity in stale:
            self._entries.pop(identity, None)
        if stale:
            logger.info(f"Purged {len(stale)} stale presence entr{'y' if len(stale) == 1 else 'ies'}")
        return len(stale)

    def get_stats(self) -> Dict[str, int]:
        now = self._clock()
        entries = list(self._entries.values())
        fresh = sum(1 for entry in entries if self._is_fresh(entry, now))
        return {
            "total_entries": len(entries),
            "fresh_entries": fresh,
            "stale_entries": len(entries) - fresh,
        }


# Global presence registry instance
_presence_registry: Optional[PresenceRegistry] = None


def get_presence_registry() -> PresenceRegistry:
    """Get or create the presence registry singleton."""
    global _presence_registry
    if _presence_registry is None:
        from ..config import get_config
        _presence_registry = PresenceRegistry(ttl=get_config().registry_ttl)
    return _presence_registry


def set_presence_registry(registry: Optional[PresenceRegistry]) -> None:
    """Replace the singleton, e.g. with a registry on a different clock."""
    global _presence_registry
    _presence_registry = registry
