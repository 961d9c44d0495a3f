"""
Local network interface discovery.

Enumerates this machine's own LAN addresses; they seed candidate
generation and subnet selection.
"""

import logging
import socket
from typing import List, Optional

import httpx
import psutil

from .address import is_ipv4, is_loopback, normalize_address

logger = logging.getLogger(__name__)

# Interfaces that never lead to the target service
_SKIPPED_INTERFACE_PREFIXES = ("lo", "docker", "veth", "br-", "virbr")


class NetworkDiscovery:
    """Local interface helpers."""

    @staticmethod
    def get_host_ip() -> str:
        """Get the primary host IP address."""
        try:
            # Connect to a remote address to determine which local interface is used
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
                s.connect(("8.8.8.8", 80))
                host_ip = s.getsockname()[0]
                logger.debug(f"Detected host IP: {host_ip}")
                return host_ip
        except OSError as e:
            logger.debug(f"Error detecting host IP: {e}")
            return "127.0.0.1"

    @staticmethod
    def get_local_addresses() -> List[str]:
        """
        Enumerate the IPv4 addresses of active, non-loopback interfaces.

        Falls back to the primary route address, and finally to an empty
        list when nothing usable is found.
        """
        addresses: List[str] = []

        try:
            interfaces = psutil.net_if_addrs()
            stats = psutil.net_if_stats()

            for interface_name, interface_addrs in interfaces.items():
                if interface_name.startswith(_SKIPPED_INTERFACE_PREFIXES):
                    continue
                interface_stats = stats.get(interface_name) if stats else None
                if interface_stats is not None and not interface_stats.isup:
                    continue

                for addr in interface_addrs:
                    if addr.family != socket.AF_INET:
                        continue
                    ip = addr.address
                    if not is_ipv4(ip) or is_loopback(ip) or ip in addresses:
                        continue
                    addresses.append(ip)
                    logger.debug(f"Local address {ip} on interface {interface_name}")

        except (OSError, RuntimeError) as e:
            logger.warning(f"Error enumerating network interfaces: {e}")

        if not addresses:
            host_ip = NetworkDiscovery.get_host_ip()
            if not is_loopback(host_ip):
                addresses.append(host_ip)

        return addresses

    @staticmethod
    def get_network_info() -> dict:
        """Get basic network information."""
        return {
            "host_ip": NetworkDiscovery.get_host_ip(),
            "local_addresses": NetworkDiscovery.get_local_addresses(),
        }


async def fetch_reflected_address(base_url: str, timeout: float = 2.0) -> Optional[str]:
    """
    Ask a companion service which address it sees us connecting from.

    Returns None when the service is unreachable or reports loopback.
    """
    url = f"{base_url.rstrip('/')}/api/local-ip"
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(url)
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"Address reflection via {url} failed: {e}")
        return None

    ip = normalize_address(data.get("ip")) if isinstance(data, dict) else None
    if not is_ipv4(ip) or is_loopback(ip):
        return None
    return ip
