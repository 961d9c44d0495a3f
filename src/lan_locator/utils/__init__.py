"""
Address and local network utilities.
"""

from .address import (
    is_valid_address,
    is_private_range,
    is_loopback,
    same_subnet,
    subnet_prefix,
    normalize_address,
    require_valid_address,
)
from .network import NetworkDiscovery, fetch_reflected_address

__all__ = [
    "is_valid_address", "is_private_range", "is_loopback",
    "same_subnet", "subnet_prefix", "normalize_address", "require_valid_address",
    "NetworkDiscovery", "fetch_reflected_address",
]
