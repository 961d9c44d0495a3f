"""
Reconnect state machine.

Pure (state, event) -> transition logic with no asyncio in it; the
ConnectionManager feeds it socket events and acts on the transitions
(opening sockets, scheduling the reconnect timer).

    disconnected --connect--> connecting --open--> connected
    connecting/connected --error | abnormal close--> reconnecting --retry--> connecting
    connecting/connected --normal close--> disconnected
    reconnecting budget spent --> failed (manual connect restarts)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

NORMAL_CLOSE = 1000


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class ConnectionEvent(Enum):
    CONNECT = "connect"              # new target or manual retry
    OPEN = "open"                    # socket open signal
    ERROR = "error"                  # connect failure or socket error
    CLOSE_NORMAL = "close_normal"    # close code 1000
    CLOSE_ABNORMAL = "close_abnormal"
    RETRY = "retry"                  # reconnect timer fired
    TEARDOWN = "teardown"            # manager closed by its owner


_ACTIVE = (ConnectionState.CONNECTING, ConnectionState.CONNECTED)


@dataclass
class BackoffPolicy:
    """Exponential backoff, identical for errors and abnormal closes."""
    max_retries: int = 32
    cap: float = 30.0

    def delay_for(self, retry_count: int) -> float:
        """Delay before attempt number retry_count (1-based): 1, 2, 4, ... capped."""
        return float(min(2 ** max(retry_count - 1, 0), self.cap))


@dataclass(frozen=True)
class Transition:
    previous: ConnectionState
    state: ConnectionState
    event: ConnectionEvent
    retry_count: int
    delay: Optional[float] = None  # reconnect delay to schedule, if any

    @property
    def changed(self) -> bool:
        return self.previous is not self.state

    @property
    def exhausted(self) -> bool:
        return self.state is ConnectionState.FAILED and self.previous is not ConnectionState.FAILED


def close_event_for(code: Optional[int]) -> ConnectionEvent:
    return ConnectionEvent.CLOSE_NORMAL if code == NORMAL_CLOSE else ConnectionEvent.CLOSE_ABNORMAL


def next_transition(
    state: ConnectionState,
    event: ConnectionEvent,
    retry_count: int,
    policy: BackoffPolicy,
) -> Optional[Transition]:
    """
    Compute the transition for event in state.

    Returns None when the event does not apply to the state (for example
    a late close after teardown); callers ignore such events.
    """
    def to(new_state: ConnectionState, count: int, delay: Optional[float] = None) -> Transition:
        return Transition(state, new_state, event, count, delay)

    if event is ConnectionEvent.CONNECT:
        return to(ConnectionState.CONNECTING, 0)

    if event is ConnectionEvent.TEARDOWN:
        if state is ConnectionState.DISCONNECTED:
            return None
        return to(ConnectionState.DISCONNECTED, 0)

    if event is ConnectionEvent.OPEN:
        # an open signal is authoritative even if CONNECT was not dispatched first
        if state not in (ConnectionState.DISCONNECTED, ConnectionState.CONNECTING):
            return None
        return to(ConnectionState.CONNECTED, 0)

    if event is ConnectionEvent.RETRY:
        if state is not ConnectionState.RECONNECTING:
            return None
        return to(ConnectionState.CONNECTING, retry_count)

    if event is ConnectionEvent.CLOSE_NORMAL:
        if state not in _ACTIVE:
            return None
        return to(ConnectionState.DISCONNECTED, 0)

    # ERROR / CLOSE_ABNORMAL
    if state not in _ACTIVE:
        return None
    count = retry_count + 1
    if count >= policy.max_retries:
        return to(ConnectionState.FAILED, count)
    return to(ConnectionState.RECONNECTING, count, policy.delay_for(count))


class ReconnectStateMachine:
    """Holds the current state and retry counter."""

    def __init__(self, policy: Optional[BackoffPolicy] = None):
        self.policy = policy or BackoffPolicy()
        self.state = ConnectionState.DISCONNECTED
        self.retry_count = 0
        self.pending_delay: Optional[float] = None

    def dispatch(self, event: ConnectionEvent) -> Optional[Transition]:
        transition = next_transition(self.state, event, self.retry_count, self.policy)
        if transition is None:
            return None
        self.state = transition.state
        self.retry_count = transition.retry_count
        self.pending_delay = transition.delay
        return transition
