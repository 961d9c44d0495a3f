"""
Connection module - keeps a healthy session with the discovered service.
"""

from .state_machine import (
    NORMAL_CLOSE,
    BackoffPolicy,
    ConnectionEvent,
    ConnectionState,
    ReconnectStateMachine,
    Transition,
    next_transition,
)
from .manager import ConnectionManager

__all__ = [
    "NORMAL_CLOSE", "BackoffPolicy", "ConnectionEvent", "ConnectionState",
    "ReconnectStateMachine", "Transition", "next_transition",
    "ConnectionManager",
]
