"""
lan-locator
Finds a WebSocket status service on the local network and keeps a
resilient connection to it, plus a small companion presence service.
"""

__version__ = "1.0.0"

from .config import LocatorConfig, get_config, set_config
from .errors import (
    LocatorError,
    InvalidAddress,
    ProbeError,
    ConnectError,
    RetriesExhausted,
    AllStrategiesFailed,
)
from .events import EventBus, EventType, event_bus
from .discovery import DiscoveryOrchestrator, ServiceProbe, VerifiedService
from .connection import ConnectionManager, ConnectionState

__all__ = [
    "__version__",
    "LocatorConfig", "get_config", "set_config",
    "LocatorError", "InvalidAddress", "ProbeError", "ConnectError",
    "RetriesExhausted", "AllStrategiesFailed",
    "EventBus", "EventType", "event_bus",
    "DiscoveryOrchestrator", "ServiceProbe", "VerifiedService",
    "ConnectionManager", "ConnectionState",
]
