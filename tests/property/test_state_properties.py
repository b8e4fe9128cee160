from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cognis.errors import CognisError, ErrorKind
from cognis.terminal.models import SessionPhase, SessionState, TerminalSize
from cognis.terminal.state import TRANSITIONS, SessionStateMachine, can_transition

_REASON = CognisError.connection_failed("probe")


def _state(phase: SessionPhase) -> SessionState:
    if phase == SessionPhase.ERROR:
        return SessionState.failed(_REASON)
    return SessionState(phase)


@given(st.lists(st.sampled_from(list(SessionPhase)), min_size=0, max_size=40))
def test_machine_only_follows_legal_transitions(targets: list[SessionPhase]) -> None:
    machine = SessionStateMachine("prop")
    history = [machine.phase]

    for target in targets:
        before = machine.state
        if can_transition(before.phase, target):
            previous = machine.transition(_state(target))
            assert previous == before
            assert machine.phase is target
        else:
            with pytest.raises(CognisError) as excinfo:
                machine.transition(_state(target))
            assert excinfo.value.kind is ErrorKind.INVALID_SESSION_STATE
            assert machine.state == before
        history.append(machine.phase)

    for current, following in zip(history, history[1:]):
        assert following == current or following in TRANSITIONS[current]


@given(st.sampled_from(list(SessionPhase)))
def test_every_phase_can_reach_disconnected(phase: SessionPhase) -> None:
    reachable = {phase}
    frontier = [phase]
    while frontier:
        current = frontier.pop()
        for target in TRANSITIONS[current]:
            if target not in reachable:
                reachable.add(target)
                frontier.append(target)

    assert SessionPhase.DISCONNECTED in reachable


@given(st.integers(min_value=-1000, max_value=1000), st.integers(min_value=-1000, max_value=1000))
def test_terminal_size_accepts_only_positive_dimensions(width: int, height: int) -> None:
    if width > 0 and height > 0:
        size = TerminalSize.checked(width, height)
        assert (size.cols, size.rows) == (width, height)
    else:
        with pytest.raises(CognisError) as excinfo:
            TerminalSize.checked(width, height)
        assert excinfo.value.message == f"Invalid configuration: Invalid terminal size: {width}x{height}"
