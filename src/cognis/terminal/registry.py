"""Session factory and id-keyed registry for callers managing many sessions."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Callable
from typing import cast

from cognis.errors import CognisError
from cognis.terminal.config import LocalSessionConfiguration, MockConfiguration, SessionConfiguration
from cognis.terminal.contract import TerminalSession
from cognis.terminal.local import LocalTerminalSession
from cognis.terminal.mock import MockSession
from cognis.terminal.models import SessionType

logger = py_logging.getLogger(__name__)

SessionFactory = Callable[[SessionConfiguration, str | None], TerminalSession]


def _local_factory(configuration: SessionConfiguration, name: str | None) -> TerminalSession:
    return LocalTerminalSession(cast(LocalSessionConfiguration, configuration), name=name)


def _mock_factory(configuration: SessionConfiguration, name: str | None) -> TerminalSession:
    return MockSession(cast(MockConfiguration, configuration), name=name)


_BACKENDS: dict[SessionType, SessionFactory] = {
    SessionType.LOCAL: _local_factory,
    SessionType.MOCK: _mock_factory,
}


def register_backend(session_type: SessionType, factory: SessionFactory) -> None:
    _BACKENDS[session_type] = factory
    logger.debug("session-backend registered type=%s", session_type.value)


def registered_backends() -> list[SessionType]:
    return sorted(_BACKENDS, key=lambda item: item.value)


def create_session(configuration: SessionConfiguration, *, name: str | None = None) -> TerminalSession:
    factory = _BACKENDS.get(configuration.session_type)
    if factory is None:
        raise CognisError.invalid_configuration(
            f"No backend registered for {configuration.session_type.value} sessions"
        )
    configuration.validate()
    return factory(configuration, name)


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, TerminalSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def add(self, session: TerminalSession) -> TerminalSession:
        if session.id in self._sessions:
            raise CognisError.invalid_configuration(f"Session already registered: {session.id}")
        self._sessions[session.id] = session
        logger.info("session-registry add session=%s name=%s", session.id, session.name)
        return session

    def open(self, configuration: SessionConfiguration, *, name: str | None = None) -> TerminalSession:
        return self.add(create_session(configuration, name=name))

    def get(self, session_id: str) -> TerminalSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise CognisError.session_not_found(session_id)
        return session

    def list_sessions(self) -> list[TerminalSession]:
        return sorted(self._sessions.values(), key=lambda item: (item.name, item.id))

    async def remove(self, session_id: str) -> TerminalSession:
        session = self.get(session_id)
        await session.disconnect()
        del self._sessions[session_id]
        logger.info("session-registry remove session=%s", session_id)
        return session

    async def disconnect_all(self) -> None:
        sessions = list(self._sessions.values())
        await asyncio.gather(*(session.disconnect() for session in sessions))
