"""
Event system for discovery and connection status.

UI layers subscribe here instead of polling the orchestrator or the
connection manager.
"""

import logging
from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, Callable, List
from datetime import datetime

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types emitted by lan-locator components."""
    # Discovery events
    DISCOVERY_LOG = "discovery_log"
    DISCOVERY_STATE_CHANGED = "discovery_state_changed"
    SERVICE_VERIFIED = "service_verified"
    DISCOVERY_FAILED = "discovery_failed"

    # Connection events
    CONNECTION_STATUS_CHANGED = "connection_status_changed"
    MESSAGE_RECEIVED = "message_received"
    RECONNECT_SCHEDULED = "reconnect_scheduled"
    RETRIES_EXHAUSTED = "retries_exhausted"

    # Selection / presence events
    TARGET_SELECTED = "target_selected"
    PRESENCE_REPORTED = "presence_reported"


@dataclass
class Event:
    """Event data structure."""
    event_type: EventType
    data: Dict[str, Any]
    timestamp: datetime
    source: str = "lan_locator"


class EventBus:
    """Publish/subscribe bus with a bounded history."""

    def __init__(self, max_history: int = 1000):
        self._subscribers: Dict[EventType, List[Callable]] = {}
        self._event_history: List[Event] = []
        self._max_history = max_history

    def subscribe(self, event_type: EventType, callback: Callable[[Event], None]):
        """Subscribe to an event type."""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(callback)
        logger.debug(f"Subscribed to {event_type.value}")

    def unsubscribe(self, event_type: EventType, callback: Callable[[Event], None]):
        """Unsubscribe from an event type."""
        if event_type in self._subscribers and callback in self._subscribers[event_type]:
            self._subscribers[event_type].remove(callback)

    def emit(self, event_type: EventType, data: Dict[str, Any], source: str = "lan_locator") -> Event:
        """Emit an event to all subscribers."""
        event = Event(
            event_type=event_type,
            data=data,
            timestamp=datetime.now(),
            source=source
        )

        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history.pop(0)

        for callback in list(self._subscribers.get(event_type, [])):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in event callback for {event_type.value}: {e}")

        logger.debug(f"Emitted event: {event_type.value} from {source}")
        return event

    def get_recent_events(self, count: int = 50) -> List[Event]:
        """Get recent events."""
        return self._event_history[-count:]


# Global event bus instance
event_bus = EventBus()
