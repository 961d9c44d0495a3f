"""
Shared fixtures: an in-memory WebSocket stand-in and isolated config/bus.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import pytest
from websockets.exceptions import ConnectionClosedOK

from lan_locator.config import LocatorConfig, set_config
from lan_locator.events import EventBus


class FakeSocket:
    """
    Minimal server-side stand-in for a websockets connection.

    `replies` answer recv() in order (after `reply_delay` seconds); when
    they run out recv() blocks until close. Iterating yields `messages`
    and then waits for close unless `end_after_messages` is set.
    """

    def __init__(
        self,
        replies: Optional[List[Any]] = None,
        reply_delay: float = 0.0,
        messages: Optional[List[Any]] = None,
        end_after_messages: bool = False,
        close_code: int = 1000,
    ):
        self.replies = list(replies or [])
        self.reply_delay = reply_delay
        self.messages = list(messages or [])
        self.end_after_messages = end_after_messages
        self.close_code = close_code
        self.close_reason = ""
        self.sent: List[Any] = []
        self.closed = False
        self._closed_event: Optional[asyncio.Event] = None

    def _closed(self) -> asyncio.Event:
        if self._closed_event is None:
            self._closed_event = asyncio.Event()
            if self.closed:
                self._closed_event.set()
        return self._closed_event

    async def send(self, data):
        self.sent.append(data)

    async def recv(self):
        if self.reply_delay:
            await asyncio.sleep(self.reply_delay)
        if self.replies:
            reply = self.replies.pop(0)
            return json.dumps(reply) if isinstance(reply, dict) else reply
        await self._closed().wait()
        raise ConnectionClosedOK(None, None)

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed = True
        self._closed().set()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message
        if not self.end_after_messages:
            await self._closed().wait()


class _FakeContext:
    def __init__(self, connector: "FakeConnector", uri: str):
        self.connector = connector
        self.uri = uri
        self.socket: Optional[FakeSocket] = None

    async def __aenter__(self):
        behaviour = self.connector.behaviour_for(self.uri)
        if isinstance(behaviour, BaseException):
            raise behaviour
        self.socket = behaviour
        self.connector.opened.append(behaviour)
        return behaviour

    async def __aexit__(self, exc_type, exc, tb):
        if self.socket is not None:
            await self.socket.close()
        return False


class FakeConnector:
    """
    Replacement for websockets.connect keyed by host.

    Each value is a FakeSocket, an exception instance to raise on open,
    or a zero-argument callable producing either. Unknown hosts refuse.
    """

    def __init__(self, hosts: Optional[Dict[str, Any]] = None):
        self.hosts = dict(hosts or {})
        self.uris: List[str] = []
        self.kwargs: List[Dict[str, Any]] = []
        self.opened: List[FakeSocket] = []

    def behaviour_for(self, uri: str):
        host = urlsplit(uri).hostname
        behaviour = self.hosts.get(host)
        if behaviour is None:
            return ConnectionRefusedError(f"connection refused: {host}")
        if callable(behaviour):
            behaviour = behaviour()
        return behaviour

    @property
    def hosts_tried(self) -> List[str]:
        return [urlsplit(uri).hostname for uri in self.uris]

    def __call__(self, uri: str, **kwargs):
        self.uris.append(uri)
        self.kwargs.append(kwargs)
        return _FakeContext(self, uri)


def pong_socket(**kwargs) -> FakeSocket:
    return FakeSocket(replies=[{"text": "pong"}], **kwargs)


@pytest.fixture
def config(tmp_path):
    """Fast settings with the cache file in a temp dir."""
    cfg = LocatorConfig(
        probe_timeout=0.5,
        probe_batch_size=4,
        connect_timeout=0.5,
        gateway_timeout=0.2,
        cache_file=str(tmp_path / "server_address.json"),
    )
    set_config(cfg)
    yield cfg
    set_config(LocatorConfig())


@pytest.fixture
def bus():
    return EventBus()


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
