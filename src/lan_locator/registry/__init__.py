"""
Presence registry and its HTTP client.
"""

from .presence import (
    DEFAULT_TTL,
    PresenceRegistry,
    RegistryEntry,
    get_presence_registry,
    set_presence_registry,
)
from .client import PresenceClient

__all__ = [
    "DEFAULT_TTL", "PresenceRegistry", "RegistryEntry",
    "get_presence_registry", "set_presence_registry",
    "PresenceClient",
]
