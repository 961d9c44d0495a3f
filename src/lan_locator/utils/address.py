"""
Address validation helpers.

Pure functions only - nothing in this module touches the network.
"""

import ipaddress
import re
from typing import Optional

from ..errors import InvalidAddress

_OCTET = r"(?:25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)"
_IPV4_RE = re.compile(rf"{_OCTET}\.{_OCTET}\.{_OCTET}\.{_OCTET}")

_PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("fe80::/10"),
)

_MAPPED_PREFIX = "::ffff:"


def is_ipv4(s) -> bool:
    """True for a strict dotted quad (no leading zeros, no whitespace)."""
    return isinstance(s, str) and _IPV4_RE.fullmatch(s) is not None


def is_ipv6(s) -> bool:
    """True for IPv6 text form. Zone identifiers (fe80::1%eth0) are rejected."""
    if not isinstance(s, str) or ":" not in s or "%" in s:
        return False
    try:
        ipaddress.IPv6Address(s)
        return True
    except ValueError:
        return False


def is_valid_address(s) -> bool:
    """True iff s is a valid IPv4 or IPv6 address string."""
    return is_ipv4(s) or is_ipv6(s)


def require_valid_address(s) -> str:
    """Return s unchanged, or raise InvalidAddress."""
    if not is_valid_address(s):
        raise InvalidAddress(s)
    return s


def is_private_range(addr) -> bool:
    """True iff addr is in 10/8, 172.16/12, 192.168/16, 169.254/16 or fe80::/10."""
    if not is_valid_address(addr):
        return False
    ip = ipaddress.ip_address(addr)
    return any(ip.version == net.version and ip in net for net in _PRIVATE_NETWORKS)


def is_loopback(addr) -> bool:
    if not is_valid_address(addr):
        return False
    return ipaddress.ip_address(addr).is_loopback


def subnet_prefix(addr) -> Optional[str]:
    """First three octets of an IPv4 address ("192.168.1"), else None."""
    if not is_ipv4(addr):
        return None
    return addr.rsplit(".", 1)[0]


def same_subnet(a, b) -> bool:
    """Two IPv4 addresses share the same /24 prefix."""
    prefix = subnet_prefix(a)
    return prefix is not None and prefix == subnet_prefix(b)


def normalize_address(addr: Optional[str]) -> Optional[str]:
    """
    Normalize an observed socket address.

    Strips the IPv4-mapped IPv6 prefix (::ffff:192.168.1.5 -> 192.168.1.5)
    and maps IPv6 loopback to 127.0.0.1.
    """
    if not addr:
        return addr
    addr = addr.strip()
    if addr.lower().startswith(_MAPPED_PREFIX) and is_ipv4(addr[len(_MAPPED_PREFIX):]):
        addr = addr[len(_MAPPED_PREFIX):]
    if addr == "::1":
        return "127.0.0.1"
    return addr


def format_host(addr: str) -> str:
    """Host part for a URL - IPv6 addresses need brackets."""
    return f"[{addr}]" if is_ipv6(addr) else addr
