"""
Configuration for the LAN locator client and companion service.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class LocatorConfig:
    """Discovery, connection and companion service settings."""

    # Target service ports
    ws_port: int = 37521
    api_port: int = 37520

    # Probe settings
    probe_timeout: float = 5.0
    probe_batch_size: int = 12

    # Strategy settings
    mdns_service_type: str = "_lanlocator._tcp.local."
    mdns_timeout: float = 10.0
    ssdp_search_target: str = "uuid:ETS2LA-WS-1.0"
    ssdp_timeout: float = 3.0
    gateway_timeout: float = 2.0
    brute_force_timeout: float = 180.0

    # Cached address
    cache_file: str = "server_address.json"
    cache_failure_threshold: int = 3

    # Connection settings
    max_retries: int = 32
    backoff_cap: float = 30.0
    connect_timeout: float = 10.0
    message_log_size: int = 500  # 0 keeps every message
    dial_public_addresses: bool = True

    # Presence registry
    registry_ttl: float = 600.0

    # Companion service
    host: str = "0.0.0.0"
    port: int = 3000

    # Logging
    log_level: str = "INFO"
    log_file: str = ""

    @classmethod
    def from_env(cls) -> "LocatorConfig":
        """Load configuration from environment variables."""
        return cls(
            ws_port=int(os.getenv("LOCATOR_WS_PORT", "37521")),
            api_port=int(os.getenv("LOCATOR_API_PORT", "37520")),
            probe_timeout=float(os.getenv("LOCATOR_PROBE_TIMEOUT", "5.0")),
            probe_batch_size=int(os.getenv("LOCATOR_PROBE_BATCH_SIZE", "12")),
            mdns_service_type=os.getenv("LOCATOR_MDNS_SERVICE_TYPE", "_lanlocator._tcp.local."),
            mdns_timeout=float(os.getenv("LOCATOR_MDNS_TIMEOUT", "10.0")),
            ssdp_search_target=os.getenv("LOCATOR_SSDP_SEARCH_TARGET", "uuid:ETS2LA-WS-1.0"),
            ssdp_timeout=float(os.getenv("LOCATOR_SSDP_TIMEOUT", "3.0")),
            gateway_timeout=float(os.getenv("LOCATOR_GATEWAY_TIMEOUT", "2.0")),
            brute_force_timeout=float(os.getenv("LOCATOR_BRUTE_FORCE_TIMEOUT", "180.0")),
            cache_file=os.getenv("LOCATOR_CACHE_FILE", "server_address.json"),
            cache_failure_threshold=int(os.getenv("LOCATOR_CACHE_FAILURE_THRESHOLD", "3")),
            max_retries=int(os.getenv("LOCATOR_MAX_RETRIES", "32")),
            backoff_cap=float(os.getenv("LOCATOR_BACKOFF_CAP", "30.0")),
            connect_timeout=float(os.getenv("LOCATOR_CONNECT_TIMEOUT", "10.0")),
            message_log_size=int(os.getenv("LOCATOR_MESSAGE_LOG_SIZE", "500")),
            dial_public_addresses=_env_bool("LOCATOR_DIAL_PUBLIC", True),
            registry_ttl=float(os.getenv("LOCATOR_REGISTRY_TTL", "600")),
            host=os.getenv("LOCATOR_HOST", "0.0.0.0"),
            port=int(os.getenv("LOCATOR_PORT", "3000")),
            log_level=os.getenv("LOCATOR_LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOCATOR_LOG_FILE", ""),
        )


# Global config instance
_config: Optional[LocatorConfig] = None


def get_config() -> LocatorConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = LocatorConfig.from_env()
    return _config


def set_config(config: LocatorConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
