"""
WebSocket session to the discovered service.
Maintains one connection at a time and reconnects with backoff.
"""

import asyncio
import json
import logging
from collections import deque
from typing import Any, Callable, Deque, Optional, Tuple

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..config import LocatorConfig, get_config
from ..discovery.cache import AddressCache
from ..discovery.probe import build_ws_uri
from ..errors import ConnectError, RetriesExhausted, UnexpectedClose
from ..events import EventBus, EventType, event_bus
from ..utils.address import require_valid_address
from .state_machine import (
    NORMAL_CLOSE,
    BackoffPolicy,
    ConnectionEvent,
    ConnectionState,
    ReconnectStateMachine,
    Transition,
    close_event_for,
)

logger = logging.getLogger(__name__)


def _close_details(exc: ConnectionClosed) -> Tuple[Optional[int], str]:
    rcvd = getattr(exc, "rcvd", None)
    if rcvd is not None:
        return rcvd.code, rcvd.reason
    return getattr(exc, "code", None), getattr(exc, "reason", "")


class ConnectionManager:
    """
    Owns the single logical connection to the chosen address.

    Usage:
        manager = ConnectionManager()
        await manager.connect_to("192.168.1.20")
        await manager.wait_connected(timeout=10)
        await manager.send({"text": "hello"})
        ...
        await manager.close()

    Status changes, inbound messages and exhausted retries are published
    on the event bus. Inbound messages are not interpreted.
    """

    def __init__(
        self,
        config: Optional[LocatorConfig] = None,
        connect: Optional[Callable[..., Any]] = None,
        bus: Optional[EventBus] = None,
        cache: Optional[AddressCache] = None,
    ):
        self.config = config or get_config()
        self.port = self.config.ws_port
        self.bus = bus or event_bus
        self.cache = cache
        self._connect = connect or websockets.connect
        self._machine = ReconnectStateMachine(
            BackoffPolicy(max_retries=self.config.max_retries, cap=self.config.backoff_cap)
        )

        self.messages: Deque[Any] = deque(maxlen=self.config.message_log_size or None)
        self.target: Optional[str] = None
        self.last_error: Optional[Exception] = None

        self._ws = None
        self._session_task: Optional[asyncio.Task] = None
        self._session_id = 0
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._connected_event: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Observed state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._machine.state

    @property
    def retry_count(self) -> int:
        return self._machine.retry_count

    @property
    def connected(self) -> bool:
        return self._machine.state is ConnectionState.CONNECTED

    @property
    def has_pending_reconnect(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def pending_reconnect_delay(self) -> Optional[float]:
        """Delay of the currently scheduled reconnect, if one is pending."""
        return self._machine.pending_delay if self._reconnect_handle is not None else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def connect_to(self, address: str) -> None:
        """
        Switch the session to address. Any previous socket is closed and
        any pending reconnect cancelled before the new socket is opened.
        """
        require_valid_address(address)
        await self._teardown_session()
        self.target = address
        self.last_error = None
        logger.info(f"Connecting to ws://{address}:{self.port}")
        self._start_session(ConnectionEvent.CONNECT)

    async def send(self, payload: Any) -> None:
        """Send a str/bytes payload as-is, anything else as JSON text."""
        if self._ws is None or not self.connected:
            raise ConnectError("Not connected")
        data = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
        logger.debug(f"[WS] --> {data!r}")
        await self._ws.send(data)

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """Wait until the state is connected. False on timeout."""
        if self.connected:
            return True
        event = self._get_connected_event()
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def close(self) -> None:
        """Tear down: close the socket and cancel the reconnect timer."""
        self._cancel_reconnect()
        await self._teardown_session()
        self._apply(ConnectionEvent.TEARDOWN)
        logger.info("Connection manager closed")

    # ------------------------------------------------------------------
    # Socket event handlers
    # ------------------------------------------------------------------

    def handle_open(self) -> None:
        if self.cache is not None:
            self.cache.record_success()
        self.last_error = None
        logger.info(f"[CONNECTED] ws://{self.target}:{self.port}")
        self._apply(ConnectionEvent.OPEN)

    def handle_message(self, message: Any) -> None:
        self.messages.append(message)
        logger.debug(f"[WS] <-- {message!r}")
        self.bus.emit(
            EventType.MESSAGE_RECEIVED,
            {"address": self.target, "message": message},
            source="connection",
        )

    def handle_error(self, error: Exception) -> None:
        self.last_error = error
        logger.warning(f"Connection error ({self.target}): {error}")
        self._record_failure()
        self._apply(ConnectionEvent.ERROR)

    def handle_close(self, code: Optional[int], reason: str = "") -> None:
        event = close_event_for(code)
        if event is ConnectionEvent.CLOSE_NORMAL:
            logger.info(f"Connection to {self.target} closed")
        else:
            self.last_error = UnexpectedClose(code, reason)
            logger.warning(f"Connection to {self.target} lost (code={code}, reason={reason!r})")
            self._record_failure()
        self._apply(event)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_connected_event(self) -> asyncio.Event:
        if self._connected_event is None:
            self._connected_event = asyncio.Event()
            if self.connected:
                self._connected_event.set()
        return self._connected_event

    def _record_failure(self) -> None:
        if self.cache is not None:
            self.cache.record_failure()

    def _apply(self, event: ConnectionEvent) -> Optional[Transition]:
        transition = self._machine.dispatch(event)
        if transition is None:
            logger.debug(f"Ignoring {event.value} in state {self.state.value}")
            return None

        if self._connected_event is not None:
            if transition.state is ConnectionState.CONNECTED:
                self._connected_event.set()
            else:
                self._connected_event.clear()

        if transition.changed:
            self.bus.emit(
                EventType.CONNECTION_STATUS_CHANGED,
                {
                    "previous": transition.previous.value,
                    "state": transition.state.value,
                    "address": self.target,
                    "retry_count": transition.retry_count,
                },
                source="connection",
            )

        if transition.delay is not None:
            self._schedule_reconnect(transition.delay)
        elif transition.state in (ConnectionState.DISCONNECTED, ConnectionState.FAILED):
            self._cancel_reconnect()

        if transition.exhausted:
            self.last_error = RetriesExhausted(self.target, transition.retry_count)
            logger.error(str(self.last_error))
            self.bus.emit(
                EventType.RETRIES_EXHAUSTED,
                {"address": self.target, "attempts": transition.retry_count},
                source="connection",
            )

        return transition

    def _schedule_reconnect(self, delay: float) -> None:
        self._cancel_reconnect()
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(delay, self._on_reconnect_due)
        logger.info(f"Reconnecting in {delay:.0f}s (attempt #{self.retry_count})")
        self.bus.emit(
            EventType.RECONNECT_SCHEDULED,
            {"address": self.target, "delay": delay, "retry_count": self.retry_count},
            source="connection",
        )

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _on_reconnect_due(self) -> None:
        self._reconnect_handle = None
        if self.state is not ConnectionState.RECONNECTING:
            return
        self._start_session(ConnectionEvent.RETRY)

    def _start_session(self, event: ConnectionEvent) -> None:
        self._cancel_reconnect()
        self._session_id += 1
        self._apply(event)
        self._session_task = asyncio.ensure_future(self._run_session(self._session_id, self.target))

    async def _teardown_session(self) -> None:
        # handlers of the old session become no-ops from here on
        self._session_id += 1
        task, ws = self._session_task, self._ws
        self._session_task = None
        self._ws = None

        if ws is not None:
            try:
                await ws.close(code=NORMAL_CLOSE, reason="Client closing")
            except (OSError, WebSocketException) as e:
                logger.debug(f"Error closing socket: {e}")

        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def _run_session(self, session_id: int, address: str) -> None:
        """Open one socket, pump messages until it closes, report the outcome."""
        uri = build_ws_uri(address, self.port)

        def current() -> bool:
            return session_id == self._session_id

        try:
            async with self._connect(
                uri,
                open_timeout=self.config.connect_timeout,
                close_timeout=2,
            ) as ws:
                if not current():
                    return
                self._ws = ws
                self.handle_open()

                async for message in ws:
                    if not current():
                        return
                    self.handle_message(message)

                code = getattr(ws, "close_code", NORMAL_CLOSE)
                reason = getattr(ws, "close_reason", "") or ""

        except ConnectionClosed as e:
            if current():
                self._ws = None
                code, reason = _close_details(e)
                self.handle_close(code, reason)
            return
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            if current():
                self._ws = None
                self.handle_error(ConnectError(f"{uri}: {e}"))
            return

        if current():
            self._ws = None
            self.handle_close(code, reason)
