"""
Companion service API endpoints.
"""

from .presence import router as presence_router
from .network import router as network_router
from .health import router as health_router

__all__ = ["presence_router", "network_router", "health_router"]
