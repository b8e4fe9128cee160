"""Lifecycle state machine shared by every session backend."""

from __future__ import annotations

import logging as py_logging
import threading
from collections.abc import Callable

from cognis.errors import CognisError
from cognis.terminal.models import DISCONNECTED, SessionPhase, SessionState

logger = py_logging.getLogger(__name__)

StateListener = Callable[[SessionState, SessionState], None]

TRANSITIONS: dict[SessionPhase, frozenset[SessionPhase]] = {
    SessionPhase.DISCONNECTED: frozenset({SessionPhase.CONNECTING}),
    SessionPhase.CONNECTING: frozenset(
        {SessionPhase.CONNECTED, SessionPhase.ERROR, SessionPhase.DISCONNECTED}
    ),
    SessionPhase.CONNECTED: frozenset({SessionPhase.DISCONNECTED, SessionPhase.RECONNECTING}),
    SessionPhase.RECONNECTING: frozenset(
        {SessionPhase.CONNECTED, SessionPhase.ERROR, SessionPhase.DISCONNECTED}
    ),
    SessionPhase.ERROR: frozenset({SessionPhase.CONNECTING, SessionPhase.DISCONNECTED}),
}


def can_transition(current: SessionPhase, target: SessionPhase) -> bool:
    return target in TRANSITIONS[current]


class SessionStateMachine:
    """Single-writer holder of one session's lifecycle state.

    Only lifecycle operations call :meth:`transition`; readers see the latest
    committed state through :attr:`state` from any thread.
    """

    def __init__(self, session_id: str, *, initial: SessionState = DISCONNECTED) -> None:
        self.session_id = session_id
        self._state = initial
        self._lock = threading.Lock()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    def transition(self, target: SessionState) -> SessionState:
        with self._lock:
            previous = self._state
            if not can_transition(previous.phase, target.phase):
                expected = " or ".join(sorted(phase.value for phase in _sources_of(target.phase)))
                raise CognisError.invalid_session_state(previous.phase.value, expected or "none")
            self._state = target
            listeners = list(self._listeners)

        logger.info(
            "session-state session=%s from=%s to=%s",
            self.session_id,
            previous.label,
            target.label,
        )
        for listener in listeners:
            try:
                listener(previous, target)
            except Exception:
                logger.exception("session-state listener failed session=%s", self.session_id)
        return previous

    def fail(self, reason: CognisError) -> SessionState:
        return self.transition(SessionState.failed(reason))


def _sources_of(target: SessionPhase) -> set[SessionPhase]:
    return {phase for phase, targets in TRANSITIONS.items() if target in targets}
