"""
Error types raised by discovery and connection management.

Per-candidate failures (InvalidAddress, ProbeTimeout, ProbeProtocolError,
ConnectError) are swallowed by the strategies; only AllStrategiesFailed and
RetriesExhausted reach the caller.
"""

from typing import List, Optional


class LocatorError(Exception):
    """Base class for all lan-locator errors."""
    pass


class InvalidAddress(LocatorError, ValueError):
    """Raised when a string is not a valid IPv4/IPv6 address."""

    def __init__(self, address):
        self.address = address
        super().__init__(f"Invalid address: {address!r}")


class ProbeError(LocatorError):
    """A candidate failed verification."""

    def __init__(self, address: str, message: str):
        self.address = address
        super().__init__(f"{address}: {message}")


class ProbeTimeout(ProbeError):
    """No handshake reply arrived within the probe timeout."""
    pass


class ProbeProtocolError(ProbeError):
    """The reply was not JSON or did not match the handshake contract."""
    pass


class ConnectError(LocatorError):
    """A socket could not be opened, or the connection is not available."""
    pass


class UnexpectedClose(LocatorError):
    """The connection closed with a non-normal close code."""

    def __init__(self, code: Optional[int], reason: str = ""):
        self.code = code
        self.reason = reason
        super().__init__(f"Connection closed unexpectedly (code={code}, reason={reason!r})")


class RetriesExhausted(LocatorError):
    """The reconnect budget is spent; a manual address or retry is required."""

    def __init__(self, address: Optional[str], attempts: int):
        self.address = address
        self.attempts = attempts
        super().__init__(
            f"Gave up reconnecting to {address} after {attempts} attempts. "
            "Supply an address manually or retry."
        )


class AllStrategiesFailed(LocatorError):
    """Every discovery strategy was exhausted without a verified service."""

    def __init__(self, strategies: List[str]):
        self.strategies = list(strategies)
        tried = ", ".join(self.strategies) if self.strategies else "none"
        super().__init__(
            f"No service found (tried: {tried}). "
            "Enter the server address manually with --address."
        )
