"""
Liveness handshake against a candidate address.

A candidate is verified when it accepts a WebSocket connection on the
status port, receives {"text": "ping", "type": "healthcheck"} and answers
with JSON containing text == "pong" or status == "received" within the
probe timeout. The probe always closes its own socket; the connection
manager opens a fresh session afterwards.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence, Union

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..config import get_config
from ..errors import (
    ConnectError,
    LocatorError,
    ProbeError,
    ProbeProtocolError,
    ProbeTimeout,
)
from ..utils.address import format_host, require_valid_address
from .models import Candidate, VerifiedService

logger = logging.getLogger(__name__)

HEALTHCHECK_PAYLOAD = {"text": "ping", "type": "healthcheck"}


def build_ws_uri(address: str, port: int) -> str:
    return f"ws://{format_host(address)}:{port}"


def is_healthcheck_reply(message: Any) -> bool:
    """True when a decoded reply satisfies the handshake contract."""
    return isinstance(message, dict) and (
        message.get("text") == "pong" or message.get("status") == "received"
    )


def _parse_reply(address: str, raw: Union[str, bytes]) -> dict:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise ProbeProtocolError(address, "reply is not UTF-8")
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        raise ProbeProtocolError(address, f"reply is not JSON: {raw[:80]!r}")
    if not is_healthcheck_reply(message):
        raise ProbeProtocolError(address, f"unexpected reply: {raw[:80]!r}")
    return message


class ServiceProbe:
    """
    Verifies candidates with the healthcheck handshake.

    Usage:
        probe = ServiceProbe()
        service = await probe.probe("192.168.1.20")      # raises on failure
        service = await probe.check(candidate)             # None on failure

    `connect` defaults to websockets.connect and can be replaced with any
    callable returning an async context manager around a connection that
    offers send() and recv().
    """

    def __init__(
        self,
        port: Optional[int] = None,
        timeout: Optional[float] = None,
        connect: Optional[Callable[..., Any]] = None,
    ):
        config = get_config()
        self.port = port if port is not None else config.ws_port
        self.timeout = timeout if timeout is not None else config.probe_timeout
        self._connect = connect or websockets.connect

    async def probe(self, address: str, strategy: str = "direct") -> VerifiedService:
        """
        Run the handshake against address.

        Raises:
            InvalidAddress: address is not a valid IPv4/IPv6 string
            ProbeTimeout: no open or no reply within the timeout
            ProbeProtocolError: reply malformed or semantically wrong
            ConnectError: connection refused, reset or rejected
        """
        require_valid_address(address)
        uri = build_ws_uri(address, self.port)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout

        try:
            async with self._connect(
                uri,
                open_timeout=self.timeout,
                close_timeout=1,
                ping_interval=None,
            ) as ws:
                await ws.send(json.dumps(HEALTHCHECK_PAYLOAD))
                remaining = max(deadline - loop.time(), 0.0)
                try:
                    raw = await asyncio.wait_for(ws.recv(), timeout=remaining)
                except asyncio.TimeoutError:
                    # leaving the context manager closes the opened socket
                    raise ProbeTimeout(address, f"no reply within {self.timeout:.1f}s")
                _parse_reply(address, raw)

        except ProbeError:
            raise
        except asyncio.TimeoutError:
            raise ProbeTimeout(address, f"no connection within {self.timeout:.1f}s")
        except ConnectionClosed as e:
            raise ConnectError(f"{address}: closed before replying ({e})")
        except (OSError, WebSocketException) as e:
            raise ConnectError(f"{address}: {e}")

        logger.info(f"Verified service at {address}:{self.port} (via {strategy})")
        return VerifiedService(address=address, port=self.port, strategy=strategy)

    async def check(self, candidate: Union[Candidate, str]) -> Optional[VerifiedService]:
        """Swallowing form of probe(): None when the candidate fails."""
        if isinstance(candidate, Candidate):
            address, strategy = candidate.address, candidate.strategy
        else:
            address, strategy = candidate, "direct"
        try:
            return await self.probe(address, strategy=strategy)
        except LocatorError as e:
            logger.debug(f"Candidate rejected: {e}")
            return None


def _chunks(items: Sequence, size: int) -> Iterable[Sequence]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def probe_in_batches(
    probe: ServiceProbe,
    candidates: List[Candidate],
    batch_size: Optional[int] = None,
) -> Optional[VerifiedService]:
    """
    Probe candidates in fixed-size concurrent batches.

    Returns the first verified service. Remaining probes of the winning
    batch are cancelled and awaited so none of their sockets stay open.
    """
    size = max(1, batch_size or get_config().probe_batch_size)

    for batch in _chunks(candidates, size):
        tasks = [asyncio.ensure_future(probe.check(candidate)) for candidate in batch]
        try:
            for next_done in asyncio.as_completed(tasks):
                service = await next_done
                if service is not None:
                    return service
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    return None
