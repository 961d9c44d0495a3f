"""
Network helper endpoints - caller address reflection and gateway lookup.
"""

import logging

import httpx
from fastapi import APIRouter, HTTPException, Request

from ..config import get_config
from ..discovery.strategies import addresses_from_payload
from ..utils.address import is_loopback, normalize_address

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/local-ip")
async def local_ip(request: Request):
    """
    Reflect the caller's address as seen on the socket.

    IPv4-mapped IPv6 addresses are unwrapped and IPv6 loopback is reported
    as 127.0.0.1; isLocal is true for callers on this machine.
    """
    raw = request.client.host if request.client else None
    ip = normalize_address(raw)
    if not ip:
        raise HTTPException(status_code=400, detail="Caller address unavailable")
    return {"ip": ip, "isLocal": is_loopback(ip)}


@router.get("/discover")
async def discover():
    """Ask the local gateway which addresses the service listens on."""
    config = get_config()
    url = f"http://127.0.0.1:{config.api_port}/backend/ip"
    try:
        async with httpx.AsyncClient(timeout=config.gateway_timeout) as client:
            response = await client.get(url)
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Gateway lookup via {url} failed: {e}")
        raise HTTPException(status_code=502, detail=f"Unable to fetch server addresses: {e}")

    return {"ips": addresses_from_payload(data)}
