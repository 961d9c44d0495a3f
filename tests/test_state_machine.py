"""
Unit tests for the reconnect state machine.
"""

import pytest

from lan_locator.connection.state_machine import (
    BackoffPolicy,
    ConnectionEvent,
    ConnectionState,
    ReconnectStateMachine,
    close_event_for,
    next_transition,
)


def _connected_machine(max_retries=32):
    machine = ReconnectStateMachine(BackoffPolicy(max_retries=max_retries, cap=30.0))
    machine.dispatch(ConnectionEvent.CONNECT)
    machine.dispatch(ConnectionEvent.OPEN)
    return machine


class TestBackoffPolicy:
    """Delay schedule."""

    @pytest.mark.parametrize("retry_count,expected", [
        (1, 1.0), (2, 2.0), (3, 4.0), (5, 16.0), (6, 30.0), (20, 30.0),
    ])
    def test_delay_for(self, retry_count, expected):
        assert BackoffPolicy(cap=30.0).delay_for(retry_count) == expected


class TestTransitions:
    """Transition table."""

    def test_connect_then_open(self):
        machine = ReconnectStateMachine()
        assert machine.dispatch(ConnectionEvent.CONNECT).state is ConnectionState.CONNECTING
        transition = machine.dispatch(ConnectionEvent.OPEN)
        assert transition.state is ConnectionState.CONNECTED
        assert machine.retry_count == 0

    def test_open_without_connect(self):
        machine = ReconnectStateMachine()
        assert machine.dispatch(ConnectionEvent.OPEN).state is ConnectionState.CONNECTED

    def test_error_schedules_first_retry_after_one_second(self):
        machine = _connected_machine()
        transition = machine.dispatch(ConnectionEvent.ERROR)

        assert transition.state is ConnectionState.RECONNECTING
        assert transition.retry_count == 1
        assert transition.delay == 1.0

    def test_abnormal_close_backs_off_like_error(self):
        machine = _connected_machine()
        transition = machine.dispatch(close_event_for(1006))

        assert transition.state is ConnectionState.RECONNECTING
        assert transition.delay == 1.0

    def test_normal_close_disconnects_without_retry(self):
        machine = _connected_machine()
        transition = machine.dispatch(close_event_for(1000))

        assert transition.state is ConnectionState.DISCONNECTED
        assert transition.delay is None

    def test_close_code_mapping(self):
        assert close_event_for(1000) is ConnectionEvent.CLOSE_NORMAL
        assert close_event_for(1001) is ConnectionEvent.CLOSE_ABNORMAL
        assert close_event_for(None) is ConnectionEvent.CLOSE_ABNORMAL

    def test_delays_grow_then_cap(self):
        machine = _connected_machine()
        delays = []
        for _ in range(8):
            delays.append(machine.dispatch(ConnectionEvent.ERROR).delay)
            machine.dispatch(ConnectionEvent.RETRY)
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0, 30.0]

    def test_budget_exhausted_after_max_retries(self):
        machine = _connected_machine(max_retries=32)
        transition = None
        for _ in range(32):
            transition = machine.dispatch(ConnectionEvent.ERROR)
            if transition.state is ConnectionState.FAILED:
                break
            machine.dispatch(ConnectionEvent.RETRY)

        assert transition.state is ConnectionState.FAILED
        assert transition.retry_count == 32
        assert transition.delay is None
        assert transition.exhausted

    def test_open_resets_retry_count(self):
        machine = _connected_machine()
        machine.dispatch(ConnectionEvent.ERROR)
        machine.dispatch(ConnectionEvent.RETRY)
        machine.dispatch(ConnectionEvent.OPEN)
        assert machine.state is ConnectionState.CONNECTED
        assert machine.retry_count == 0

    def test_connect_restarts_after_failure(self):
        machine = _connected_machine(max_retries=1)
        assert machine.dispatch(ConnectionEvent.ERROR).state is ConnectionState.FAILED

        transition = machine.dispatch(ConnectionEvent.CONNECT)
        assert transition.state is ConnectionState.CONNECTING
        assert machine.retry_count == 0

    def test_teardown(self):
        machine = _connected_machine()
        machine.dispatch(ConnectionEvent.ERROR)

        transition = machine.dispatch(ConnectionEvent.TEARDOWN)
        assert transition.state is ConnectionState.DISCONNECTED
        assert machine.pending_delay is None
        assert machine.dispatch(ConnectionEvent.TEARDOWN) is None

    @pytest.mark.parametrize("state,event", [
        (ConnectionState.DISCONNECTED, ConnectionEvent.ERROR),
        (ConnectionState.DISCONNECTED, ConnectionEvent.CLOSE_NORMAL),
        (ConnectionState.CONNECTED, ConnectionEvent.RETRY),
        (ConnectionState.RECONNECTING, ConnectionEvent.OPEN),
        (ConnectionState.FAILED, ConnectionEvent.ERROR),
    ])
    def test_inapplicable_events_ignored(self, state, event):
        assert next_transition(state, event, 0, BackoffPolicy()) is None
