"""
Preferred-target selection among already known addresses.
"""

import logging
from typing import Callable, Iterable, List, Optional

from ..events import EventBus, EventType
from ..utils.address import is_private_range, is_valid_address, same_subnet

logger = logging.getLogger(__name__)


def select_preferred_address(known: Iterable[str], own_address: Optional[str]) -> Optional[str]:
    """
    Pick one address: same /24 as own_address first, then the first
    public (non-private) address as a relay candidate, then the first
    address. Invalid entries are ignored.
    """
    addresses: List[str] = [a for a in known if is_valid_address(a)]
    if not addresses:
        return None

    if own_address:
        for address in addresses:
            if same_subnet(address, own_address):
                return address

    for address in addresses:
        if not is_private_range(address):
            return address

    return addresses[0]


class SubnetSelector:
    """
    Tracks the known-address list and the client's own address, and
    reports a new selection only when it actually changes.
    """

    def __init__(
        self,
        on_change: Optional[Callable[[Optional[str]], None]] = None,
        bus: Optional[EventBus] = None,
    ):
        self.known: List[str] = []
        self.own_address: Optional[str] = None
        self.current: Optional[str] = None
        self._on_change = on_change
        self._bus = bus

    def update(self, known: Optional[Iterable[str]] = None, own_address: Optional[str] = None) -> Optional[str]:
        """
        Update either input and recompute.

        Returns the new selection when it differs from the current one,
        otherwise None.
        """
        if known is not None:
            self.known = list(known)
        if own_address is not None:
            self.own_address = own_address

        selection = select_preferred_address(self.known, self.own_address)
        if selection == self.current:
            return None

        logger.info(f"Selected target changed: {self.current} -> {selection}")
        self.current = selection
        if self._bus is not None:
            self._bus.emit(EventType.TARGET_SELECTED, {"address": selection}, source="selector")
        if self._on_change:
            self._on_change(selection)
        return selection
