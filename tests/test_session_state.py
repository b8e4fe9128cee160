from __future__ import annotations

import pytest

from cognis.errors import CognisError, ErrorKind
from cognis.terminal.models import (
    CONNECTED,
    CONNECTING,
    DISCONNECTED,
    RECONNECTING,
    SessionPhase,
    SessionState,
    SessionType,
    TerminalSize,
)
from cognis.terminal.state import TRANSITIONS, SessionStateMachine, can_transition


def test_session_type_display_names() -> None:
    assert [item.display_name for item in SessionType] == ["Local", "SSH", "Serial", "Mock"]


def test_only_connected_state_can_send_data() -> None:
    failed = SessionState.failed(CognisError.connection_refused())

    assert CONNECTED.can_send_data is True
    for state in (DISCONNECTED, CONNECTING, RECONNECTING, failed):
        assert state.can_send_data is False


def test_active_states() -> None:
    assert CONNECTING.is_active
    assert CONNECTED.is_active
    assert RECONNECTING.is_active
    assert not DISCONNECTED.is_active
    assert not SessionState.failed(CognisError.connection_timeout()).is_active


def test_error_state_requires_reason_and_others_reject_one() -> None:
    with pytest.raises(ValueError):
        SessionState(SessionPhase.ERROR)
    with pytest.raises(ValueError):
        SessionState(SessionPhase.CONNECTED, CognisError.session_closed())


def test_state_labels() -> None:
    assert str(DISCONNECTED) == "disconnected"
    assert SessionState.failed(CognisError.connection_timeout()).label == "error(connection_timeout)"


def test_error_states_compare_by_reason() -> None:
    first = SessionState.failed(CognisError.connection_failed("x"))
    second = SessionState.failed(CognisError.connection_failed("x"))

    assert first == second
    assert first != SessionState.failed(CognisError.connection_refused())


def test_terminal_size_defaults_and_validation() -> None:
    assert TerminalSize() == TerminalSize(cols=80, rows=24)
    assert TerminalSize.checked(120, 40) == TerminalSize(cols=120, rows=40)
    with pytest.raises(CognisError) as excinfo:
        TerminalSize.checked(0, 24)
    assert excinfo.value.message == "Invalid configuration: Invalid terminal size: 0x24"


def test_transition_table_matches_lifecycle() -> None:
    assert TRANSITIONS[SessionPhase.DISCONNECTED] == {SessionPhase.CONNECTING}
    assert can_transition(SessionPhase.CONNECTING, SessionPhase.CONNECTED)
    assert can_transition(SessionPhase.CONNECTED, SessionPhase.RECONNECTING)
    assert can_transition(SessionPhase.ERROR, SessionPhase.CONNECTING)
    assert not can_transition(SessionPhase.DISCONNECTED, SessionPhase.CONNECTED)
    assert not can_transition(SessionPhase.CONNECTED, SessionPhase.ERROR)


def test_machine_starts_disconnected_and_walks_lifecycle() -> None:
    machine = SessionStateMachine("s1")

    assert machine.state == DISCONNECTED
    machine.transition(CONNECTING)
    machine.transition(CONNECTED)
    machine.transition(RECONNECTING)
    machine.fail(CognisError.connection_refused())
    assert machine.phase is SessionPhase.ERROR
    assert machine.state.reason == CognisError.connection_refused()
    machine.transition(DISCONNECTED)
    assert machine.state == DISCONNECTED


def test_illegal_transition_raises_invalid_session_state() -> None:
    machine = SessionStateMachine("s1")

    with pytest.raises(CognisError) as excinfo:
        machine.transition(CONNECTED)

    assert excinfo.value.kind is ErrorKind.INVALID_SESSION_STATE
    assert excinfo.value.details["current"] == "disconnected"
    assert "connecting" in excinfo.value.details["expected"]
    assert machine.state == DISCONNECTED


def test_listeners_receive_transitions_and_can_be_removed() -> None:
    machine = SessionStateMachine("s1")
    seen: list[tuple[str, str]] = []

    remove = machine.add_listener(lambda old, new: seen.append((old.label, new.label)))
    machine.transition(CONNECTING)
    remove()
    machine.transition(CONNECTED)

    assert seen == [("disconnected", "connecting")]


def test_failing_listener_does_not_block_transition() -> None:
    machine = SessionStateMachine("s1")

    def broken(_old: SessionState, _new: SessionState) -> None:
        raise RuntimeError("listener bug")

    machine.add_listener(broken)
    machine.transition(CONNECTING)

    assert machine.state == CONNECTING
