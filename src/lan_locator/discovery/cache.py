"""
Persistence of the last known-good service address.
"""

import json
import logging
import os
from datetime import datetime
from typing import Optional

from ..utils.address import is_valid_address

logger = logging.getLogger(__name__)

CACHE_KEY = "server_ip"


class AddressCache:
    """
    Stores a single address under CACHE_KEY in a JSON file.

    Written on every successful verification, read once at startup and
    cleared on manual reset or after `failure_threshold` consecutive
    connection failures. A `path` of None keeps the address in memory only.
    """

    def __init__(self, path: Optional[str] = "server_address.json", failure_threshold: int = 3):
        self.path = path
        self.failure_threshold = failure_threshold
        self._address: Optional[str] = None
        self._loaded = False
        self._consecutive_failures = 0

    def load(self) -> Optional[str]:
        """Return the cached address, reading the file on first use."""
        if self._loaded:
            return self._address
        self._loaded = True

        if not self.path or not os.path.exists(self.path):
            return None

        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading cached address from {self.path}: {e}")
            return None

        address = data.get(CACHE_KEY) if isinstance(data, dict) else None
        if not is_valid_address(address):
            logger.warning(f"Ignoring invalid cached address: {address!r}")
            return None

        self._address = address
        logger.info(f"Loaded cached address {address} from {self.path}")
        return address

    def save(self, address: str) -> bool:
        """Persist address; invalid addresses are refused."""
        if not is_valid_address(address):
            logger.warning(f"Refusing to cache invalid address: {address!r}")
            return False

        self._address = address
        self._loaded = True
        self._consecutive_failures = 0

        if not self.path:
            return True

        try:
            with open(self.path, 'w') as f:
                json.dump({CACHE_KEY: address, "saved_at": datetime.now().isoformat()}, f, indent=2)
            logger.debug(f"Cached address {address} to {self.path}")
            return True
        except OSError as e:
            logger.error(f"Error saving cached address: {e}")
            return False

    def clear(self) -> None:
        """Forget the cached address."""
        self._address = None
        self._loaded = True
        self._consecutive_failures = 0

        if self.path and os.path.exists(self.path):
            try:
                os.remove(self.path)
                logger.info(f"Cleared cached address ({self.path})")
            except OSError as e:
                logger.error(f"Error removing {self.path}: {e}")

    def record_success(self) -> None:
        self._consecutive_failures = 0

    def record_failure(self) -> bool:
        """
        Count a connection failure. Returns True when the threshold was hit
        and the cache was cleared.
        """
        self._consecutive_failures += 1
        if self.failure_threshold > 0 and self._consecutive_failures >= self.failure_threshold:
            if self._address is not None:
                logger.warning(
                    f"{self._consecutive_failures} consecutive failures, "
                    f"dropping cached address {self._address}"
                )
            self.clear()
            return True
        return False

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures
