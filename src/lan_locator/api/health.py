"""
Health API endpoints for the companion service.
"""

from fastapi import APIRouter

from .. import __version__
from ..config import get_config
from ..registry import get_presence_registry

router = APIRouter()


@router.get("/health")
async def health():
    """Basic health check endpoint."""
    registry = get_presence_registry()

    return {
        "status": "healthy",
        "service": "lan-locator",
        "version": __version__,
        "presence": registry.get_stats(),
    }


@router.get("/")
async def root():
    """Root endpoint with service information."""
    config = get_config()

    return {
        "service": "lan-locator companion service",
        "version": __version__,
        "port": config.port,
        "ws_port": config.ws_port,
        "api_port": config.api_port,
        "endpoints": {
            "heartbeat": "/api/heartbeat",
            "remote_servers": "/api/remote-servers",
            "local_ip": "/api/local-ip",
            "discover": "/api/discover",
            "health": "/health",
        },
    }
