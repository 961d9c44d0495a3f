"""
Tests for the individual discovery strategies with the network stubbed out.
"""

import asyncio
import random
from types import SimpleNamespace

import httpx
import pytest
from zeroconf import BadTypeInNameException, ServiceStateChange

from lan_locator.discovery.candidates import CandidateGenerator
from lan_locator.discovery.probe import ServiceProbe
from lan_locator.discovery.strategies import (
    BruteForceStrategy,
    GatewayStrategy,
    MDNSStrategy,
    SSDPStrategy,
    addresses_from_payload,
)
from lan_locator.discovery.strategies import gateway as gateway_module
from lan_locator.discovery.strategies import mdns as mdns_module
from lan_locator.discovery.strategies.ssdp import _SearchProtocol, build_msearch, parse_ssdp_response

from conftest import FakeConnector, pong_socket


def _local(*addresses):
    return lambda: list(addresses)


class TestPayloadParsing:
    """Gateway/SSDP JSON bodies."""

    def test_ws_url_host_first(self):
        data = {"ws_url": "ws://192.168.1.20:37521", "ips": ["10.0.0.2", 7]}
        assert addresses_from_payload(data) == ["192.168.1.20", "10.0.0.2"]

    def test_ipv6_ws_url(self):
        assert addresses_from_payload({"ws_url": "ws://[fe80::2]:37521"}) == ["fe80::2"]

    def test_garbage(self):
        assert addresses_from_payload(["10.0.0.2"]) == []
        assert addresses_from_payload({"ips": "10.0.0.2"}) == []


class TestToCandidates:
    """Shared candidate filtering."""

    def test_validates_normalizes_and_dedupes(self):
        strategy = GatewayStrategy(37520, local_addresses=_local())
        candidates = strategy.to_candidates(["::ffff:10.0.0.2", "10.0.0.2", "bogus", "10.0.0.3"])

        assert [c.address for c in candidates] == ["10.0.0.2", "10.0.0.3"]
        assert all(c.strategy == "gateway" for c in candidates)

    def test_public_filter(self):
        strategy = GatewayStrategy(37520, allow_public=False, local_addresses=_local())
        candidates = strategy.to_candidates(["8.8.8.8", "127.0.0.1", "192.168.0.4"])

        assert [c.address for c in candidates] == ["127.0.0.1", "192.168.0.4"]


class TestSSDP:
    """M-SEARCH framing and reply handling."""

    def test_msearch(self):
        message = build_msearch("uuid:ETS2LA-WS-1.0").decode()
        assert message.startswith("M-SEARCH * HTTP/1.1\r\n")
        assert "ST: uuid:ETS2LA-WS-1.0\r\n" in message
        assert 'MAN: "ssdp:discover"' in message
        assert message.endswith("\r\n\r\n")

    def test_parse_response(self):
        headers = parse_ssdp_response(
            b"HTTP/1.1 200 OK\r\nst: uuid:ETS2LA-WS-1.0\r\nLocation: http://10.0.0.2:37520/ws\r\n\r\n"
        )
        assert headers["ST"] == "uuid:ETS2LA-WS-1.0"
        assert headers["LOCATION"] == "http://10.0.0.2:37520/ws"

    def test_parse_rejects_requests(self):
        assert parse_ssdp_response(b"M-SEARCH * HTTP/1.1\r\nST: x\r\n\r\n") == {}

    @pytest.mark.asyncio
    async def test_protocol_filters_search_target(self):
        protocol = _SearchProtocol("uuid:ETS2LA-WS-1.0")

        protocol.datagram_received(b"HTTP/1.1 200 OK\r\nST: other\r\nLOCATION: http://a/\r\n\r\n", ("10.0.0.9", 1900))
        assert not protocol.found.is_set()

        reply = b"HTTP/1.1 200 OK\r\nST: uuid:ETS2LA-WS-1.0\r\nLOCATION: http://10.0.0.2/\r\n\r\n"
        protocol.datagram_received(reply, ("10.0.0.2", 1900))
        protocol.datagram_received(reply, ("10.0.0.2", 1900))

        assert protocol.found.is_set()
        assert protocol.locations == ["http://10.0.0.2/"]

    @pytest.mark.asyncio
    async def test_find_candidates_resolves_locations(self, monkeypatch):
        strategy = SSDPStrategy("uuid:ETS2LA-WS-1.0", local_addresses=_local())

        async def fake_search():
            return ["http://10.0.0.2:37520/ws", "http://10.0.0.3:37520/ws"]

        real_client = httpx.AsyncClient

        def handler(request):
            if request.url.host == "10.0.0.2":
                return httpx.Response(200, json={"ws_url": "ws://10.0.0.2:37521", "ips": ["10.0.0.2"]})
            return httpx.Response(404)

        monkeypatch.setattr(strategy, "search", fake_search)
        monkeypatch.setattr(
            httpx, "AsyncClient",
            lambda *a, **kw: real_client(*a, transport=httpx.MockTransport(handler), **kw),
        )

        candidates = await strategy.find_candidates()

        assert [c.address for c in candidates] == ["10.0.0.2"]
        assert candidates[0].strategy == "ssdp"


class TestGateway:
    """Control endpoint queries."""

    def test_gateway_hosts(self):
        strategy = GatewayStrategy(37520, local_addresses=_local("192.168.1.7", "fe80::1"))
        assert strategy.gateway_hosts() == [
            "127.0.0.1",
            "192.168.1.1", "192.168.1.100", "192.168.1.254", "192.168.1.50", "192.168.1.101",
        ]

    def test_time_limit_covers_both_paths(self):
        strategy = GatewayStrategy(37520, timeout=2.0, local_addresses=_local())
        assert strategy.timeout == 4.0
        assert strategy.time_limit(5.0) == 14.0

    @pytest.mark.asyncio
    async def test_find_candidates(self, monkeypatch):
        requested = []

        def handler(request):
            requested.append((request.url.host, request.url.path))
            if request.url.host == "127.0.0.1" and request.url.path == "/discover":
                return httpx.Response(500)
            if request.url.host == "127.0.0.1" and request.url.path == "/backend/ip":
                return httpx.Response(200, json={"ips": ["192.168.1.20", "bogus"]})
            if request.url.host == "192.168.1.1" and request.url.path == "/discover":
                return httpx.Response(200, json={"ips": ["192.168.1.20", "192.168.1.21"]})
            raise httpx.ConnectError("unreachable", request=request)

        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            gateway_module.httpx, "AsyncClient",
            lambda *a, **kw: real_client(*a, transport=httpx.MockTransport(handler), **kw),
        )

        strategy = GatewayStrategy(37520, timeout=0.2, local_addresses=_local("192.168.1.7"))
        candidates = await strategy.find_candidates()

        assert [c.address for c in candidates] == ["192.168.1.20", "192.168.1.21"]
        assert ("127.0.0.1", "/backend/ip") in requested
        assert ("192.168.1.1", "/backend/ip") not in requested


class TestBruteForce:
    """Smart list first, full sweep second."""

    @pytest.mark.asyncio
    async def test_smart_list_hit_skips_sweep(self, config):
        connector = FakeConnector({"192.168.1.254": pong_socket})
        probe = ServiceProbe(port=37521, timeout=0.2, connect=connector)
        strategy = BruteForceStrategy(
            timeout=5,
            batch_size=50,
            generator=CandidateGenerator(rng=random.Random(1)),
            local_addresses=_local("192.168.1.7"),
        )

        service = await strategy.probe_candidates(probe)

        assert service.address == "192.168.1.254"
        assert service.strategy == "brute_force"
        assert "192.168.1.200" not in connector.hosts_tried

    @pytest.mark.asyncio
    async def test_sweep_after_smart_list(self, config):
        connector = FakeConnector({"192.168.1.200": pong_socket})
        probe = ServiceProbe(port=37521, timeout=0.2, connect=connector)
        strategy = BruteForceStrategy(
            timeout=5,
            batch_size=64,
            local_addresses=_local("192.168.1.7"),
        )

        service = await strategy.probe_candidates(probe)

        assert service.address == "192.168.1.200"
        assert connector.hosts_tried.count("192.168.1.1") == 1

    @pytest.mark.asyncio
    async def test_no_local_addresses(self, config):
        connector = FakeConnector()
        strategy = BruteForceStrategy(timeout=5, local_addresses=_local())

        assert await strategy.probe_candidates(ServiceProbe(connect=connector)) is None
        assert connector.uris == []

    @pytest.mark.asyncio
    async def test_smart_list_comes_from_find_candidates(self, config):
        class PinnedBruteForce(BruteForceStrategy):
            async def find_candidates(self):
                return self.to_candidates(["10.0.0.9"])

        connector = FakeConnector({"10.0.0.9": pong_socket})
        strategy = PinnedBruteForce(timeout=5, batch_size=64, local_addresses=_local("192.168.1.7"))

        service = await strategy.probe_candidates(ServiceProbe(port=37521, timeout=0.2, connect=connector))

        assert service.address == "10.0.0.9"
        assert connector.hosts_tried == ["10.0.0.9"]


class FakeAsyncZeroconf:
    def __init__(self, state):
        self.zeroconf = object()
        self.closed = False
        state.zc = self

    async def async_close(self):
        self.closed = True


class FakeServiceBrowser:
    """Announces `state.announce` entries through the registered handlers."""

    def __init__(self, state, zc, types, handlers):
        if state.browser_error is not None:
            raise state.browser_error
        self.cancelled = False
        state.browser = self
        for name, change in state.announce:
            for handler in handlers:
                handler(zeroconf=zc, service_type=types[0], name=name, state_change=change)

    async def async_cancel(self):
        self.cancelled = True


class FakeServiceInfo:
    """Resolves names from `state.services`: name -> (delay, addresses or None)."""

    def __init__(self, state, service_type, name):
        self.state = state
        self.name = name
        self.addresses = []

    async def async_request(self, zc, timeout_ms):
        delay, addresses = self.state.services.get(self.name, (0, None))
        await asyncio.sleep(delay)
        if addresses is None:
            return False
        self.addresses = list(addresses)
        return True

    def parsed_addresses(self):
        return list(self.addresses)


@pytest.fixture
def zeroconf_state(monkeypatch):
    state = SimpleNamespace(announce=[], services={}, browser_error=None, browser=None, zc=None)
    monkeypatch.setattr(mdns_module, "AsyncZeroconf", lambda: FakeAsyncZeroconf(state))
    monkeypatch.setattr(
        mdns_module, "AsyncServiceBrowser",
        lambda zc, types, handlers: FakeServiceBrowser(state, zc, types, handlers),
    )
    monkeypatch.setattr(
        mdns_module, "AsyncServiceInfo",
        lambda service_type, name: FakeServiceInfo(state, service_type, name),
    )
    return state


class TestMDNS:
    """Browsing, resolution and cleanup of zeroconf resources."""

    SERVICE_TYPE = "_lanlocator._tcp.local."

    @pytest.mark.asyncio
    async def test_first_resolved_instance_ends_browse(self, zeroconf_state):
        zeroconf_state.announce = [
            ("gone._lanlocator._tcp.local.", ServiceStateChange.Removed),
            ("status._lanlocator._tcp.local.", ServiceStateChange.Added),
            ("slow._lanlocator._tcp.local.", ServiceStateChange.Added),
        ]
        zeroconf_state.services = {
            "gone._lanlocator._tcp.local.": (0, ["10.0.0.66"]),
            "status._lanlocator._tcp.local.": (0, ["192.168.1.20", "192.168.1.20", "fe80::2"]),
            "slow._lanlocator._tcp.local.": (30, ["10.0.0.9"]),
        }
        strategy = MDNSStrategy(self.SERVICE_TYPE, timeout=5, local_addresses=_local())

        loop = asyncio.get_running_loop()
        started = loop.time()
        candidates = await strategy.find_candidates()

        assert loop.time() - started < 1.0
        assert [c.address for c in candidates] == ["192.168.1.20", "fe80::2"]
        assert candidates[0].strategy == "mdns"
        assert zeroconf_state.browser.cancelled
        assert zeroconf_state.zc.closed

    @pytest.mark.asyncio
    async def test_nothing_resolves_before_timeout(self, zeroconf_state):
        zeroconf_state.announce = [("missing._lanlocator._tcp.local.", ServiceStateChange.Added)]
        strategy = MDNSStrategy(self.SERVICE_TYPE, timeout=0.1, local_addresses=_local())

        assert await strategy.browse() == []
        assert zeroconf_state.browser.cancelled
        assert zeroconf_state.zc.closed

    @pytest.mark.asyncio
    async def test_zeroconf_closed_when_browser_fails(self, zeroconf_state):
        zeroconf_state.browser_error = BadTypeInNameException("bad service type")
        strategy = MDNSStrategy("bogus", timeout=5, local_addresses=_local())

        with pytest.raises(BadTypeInNameException):
            await strategy.browse()

        assert zeroconf_state.browser is None
        assert zeroconf_state.zc.closed
