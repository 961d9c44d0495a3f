"""
Companion service - FastAPI application entry point.

Serves the presence registry and the address reflection endpoints that
clients fall back to when they cannot discover the status service.
"""

import argparse
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from . import __version__
from .config import get_config, set_config, LocatorConfig
from .registry import get_presence_registry
from .utils import NetworkDiscovery
from .api import presence_router, network_router, health_router

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    config = get_config()

    # Add file handler if configured
    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)
        logger.info(f"Logging to file: {config.log_file}")

    # Startup
    logger.info("=" * 60)
    logger.info(f"lan-locator companion service v{__version__}")
    logger.info("=" * 60)
    logger.info(f"Host: {config.host}:{config.port}")
    network = NetworkDiscovery.get_network_info()
    logger.info(f"Host IP: {network['host_ip']}")
    logger.info(f"Local addresses: {network['local_addresses']}")
    logger.info(f"Presence TTL: {config.registry_ttl:.0f}s")
    logger.info("=" * 60)

    registry = get_presence_registry()

    yield

    # Shutdown
    logger.info(f"Shutting down companion service (presence: {registry.get_stats()})")
    logger.info("Companion service stopped")


# FastAPI app with lifespan
app = FastAPI(
    title="lan-locator companion service",
    description="Presence registry and address reflection for service discovery",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers with /api prefix
app.include_router(presence_router, prefix="/api")
app.include_router(network_router, prefix="/api")
app.include_router(health_router)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="lan-locator companion service")
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to run the service on (default: LOCATOR_PORT or 3000)"
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: LOCATOR_HOST or 0.0.0.0)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: LOCATOR_LOG_LEVEL or INFO)"
    )

    return parser


def load_config(args: argparse.Namespace) -> LocatorConfig:
    """Environment settings, overridden by the flags that were given."""
    config = LocatorConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.log_level is not None:
        config.log_level = args.log_level
    return config


def main():
    """Run the companion service."""
    args = build_parser().parse_args()

    config = load_config(args)
    set_config(config)

    # Set log level
    level = config.log_level.upper()
    if level not in LOG_LEVELS:
        level = "INFO"
    logging.getLogger().setLevel(getattr(logging, level))

    logger.info(f"Starting companion service on {config.host}:{config.port}")

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=level.lower(),
    )


if __name__ == "__main__":
    main()
