"""
lan-locator command line client.

Discovers the status service (or takes --address), then keeps a session
open to it until interrupted, logging status changes and inbound messages.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from . import __version__
from .config import LocatorConfig, set_config
from .connection import ConnectionManager
from .discovery import DiscoveryOrchestrator, SubnetSelector
from .errors import AllStrategiesFailed, InvalidAddress
from .events import Event, EventType, event_bus
from .registry import PresenceClient
from .utils import NetworkDiscovery

logger = logging.getLogger("lan_locator.client")

BANNER = r"""
  _                      _                 _
 | | __ _ _ __    ___  | | ___   ___ __ _| |_ ___  _ __
 | |/ _` | '_ \  |___| | |/ _ \ / __/ _` | __/ _ \| '__|
 | | (_| | | | |       | | (_) | (_| (_| | || (_) | |
 |_|\__,_|_| |_|       |_|\___/ \___\__,_|\__\___/|_|

                  v{version}
"""


def _on_status(event: Event):
    data = event.data
    logger.info(f"Connection {data['previous']} -> {data['state']} (retries={data['retry_count']})")


def _on_message(event: Event):
    logger.info(f"Message from {event.data['address']}: {event.data['message']!r}")


def _on_reconnect(event: Event):
    logger.info(f"Reconnecting to {event.data['address']} in {event.data['delay']:.0f}s")


async def _select_from_registry(url: str, config: LocatorConfig) -> Optional[str]:
    """Pick a target among servers known to the companion registry."""
    client = PresenceClient(url, timeout=config.gateway_timeout)
    known = await client.known_addresses()
    if not known:
        logger.warning(f"Registry {url} knows no servers")
        return None

    own = await client.local_ip() or NetworkDiscovery.get_host_ip()
    selector = SubnetSelector(bus=event_bus)
    return selector.update(known=known, own_address=own)


async def run(args, config: LocatorConfig) -> int:
    orchestrator = DiscoveryOrchestrator(config, check_api=True)

    if args.reset:
        orchestrator.reset()

    address = args.address
    if not address and args.registry:
        address = await _select_from_registry(args.registry, config)

    try:
        if address:
            service = orchestrator.use_manual_address(address)
        else:
            service = await orchestrator.discover()
    except InvalidAddress as e:
        logger.error(str(e))
        return 2
    except AllStrategiesFailed as e:
        logger.error(str(e))
        return 1

    finished = asyncio.Event()

    def _on_finished(event: Event):
        if event.event_type is EventType.RETRIES_EXHAUSTED or event.data["state"] == "disconnected":
            finished.set()

    event_bus.subscribe(EventType.CONNECTION_STATUS_CHANGED, _on_status)
    event_bus.subscribe(EventType.MESSAGE_RECEIVED, _on_message)
    event_bus.subscribe(EventType.RECONNECT_SCHEDULED, _on_reconnect)
    event_bus.subscribe(EventType.CONNECTION_STATUS_CHANGED, _on_finished)
    event_bus.subscribe(EventType.RETRIES_EXHAUSTED, _on_finished)

    manager = ConnectionManager(config, cache=orchestrator.cache)
    try:
        await manager.connect_to(service.address)
        if args.send is not None:
            if await manager.wait_connected(timeout=config.connect_timeout):
                await manager.send(args.send)
                logger.info(f"Sent {args.send!r}")
            else:
                logger.warning("Not connected yet, payload not sent")

        await finished.wait()
        if manager.last_error is not None:
            logger.error(f"Giving up on {service.address}: {manager.last_error}")
            return 1
        logger.info(f"Server at {service.address} closed the connection")
        return 0
    finally:
        await manager.close()


def main():
    """Main entry point for the lan-locator client"""
    parser = argparse.ArgumentParser(
        description="Find the status service on the local network and stay connected to it",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--address",
        type=str,
        metavar="IP",
        help="Connect directly to this address (IPv4 or IPv6). Skips discovery."
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Forget the cached server address before discovering"
    )
    parser.add_argument(
        "--send",
        type=str,
        metavar="TEXT",
        help="Send TEXT once the connection is open"
    )
    parser.add_argument(
        "--registry",
        type=str,
        metavar="URL",
        help="Companion service URL (e.g. http://10.0.0.2:3000) to pick a known server from"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging for verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"lan-locator {__version__}"
    )
    args = parser.parse_args()

    print(BANNER.format(version=__version__))

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if args.debug:
        print("[DEBUG MODE ENABLED]")

    config = LocatorConfig.from_env()
    set_config(config)

    try:
        code = asyncio.run(run(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
