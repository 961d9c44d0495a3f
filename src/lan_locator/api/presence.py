"""
Presence API endpoints - heartbeat ingest and remote server listing.
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..registry import get_presence_registry

logger = logging.getLogger(__name__)
router = APIRouter()


class HeartbeatRequest(BaseModel):
    user_id: str
    ips: List[str] = Field(default_factory=list)


class HeartbeatResponse(BaseModel):
    success: bool


class RemoteServer(BaseModel):
    user_id: str
    ip: str


class RemoteServersResponse(BaseModel):
    servers: List[RemoteServer]


@router.post("/heartbeat", response_model=HeartbeatResponse)
async def heartbeat(request: HeartbeatRequest):
    """
    Record that user_id is alive at the given addresses.

    Invalid addresses are dropped; the first public address becomes the
    entry's advertised address.
    """
    if not request.user_id:
        raise HTTPException(status_code=400, detail="user_id is required")

    registry = get_presence_registry()
    registry.report_presence(request.user_id, request.ips)
    return {"success": True}


@router.get("/remote-servers", response_model=RemoteServersResponse)
async def remote_servers():
    """Servers that sent a heartbeat within the TTL window."""
    registry = get_presence_registry()
    return {"servers": registry.list_presence()}
