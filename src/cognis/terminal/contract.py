"""Capability contracts every session backend satisfies.

``TerminalSession`` covers lifecycle control and the Interactive Channel.
``DualTrackSession`` adds the Silent Channel: out-of-band command execution
that never touches the interactive stream.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, cast

from cognis.terminal.config import SessionConfiguration
from cognis.terminal.models import Capabilities, SessionState
from cognis.terminal.stream import OutputStream


class TerminalSession(ABC):
    capabilities: ClassVar[Capabilities] = Capabilities.INTERACTIVE

    @property
    @abstractmethod
    def id(self) -> str: ...

    @property
    @abstractmethod
    def name(self) -> str: ...

    @name.setter
    @abstractmethod
    def name(self, value: str) -> None: ...

    @property
    @abstractmethod
    def state(self) -> SessionState: ...

    @property
    @abstractmethod
    def configuration(self) -> SessionConfiguration: ...

    @abstractmethod
    async def connect(self) -> None:
        """Establish the Interactive Channel; a no-op when already connected."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the transport and end the output stream. Never raises."""

    async def reconnect(self) -> None:
        await self.disconnect()
        await self.connect()

    @abstractmethod
    async def send(self, data: bytes) -> None: ...

    @abstractmethod
    def receive(self) -> OutputStream: ...

    @abstractmethod
    async def resize(self, width: int, height: int) -> None: ...

    async def get_environment(self) -> dict[str, str]:
        return {}


class DualTrackSession(TerminalSession):
    capabilities: ClassVar[Capabilities] = Capabilities.INTERACTIVE | Capabilities.SILENT_CHANNEL

    @property
    @abstractmethod
    def is_silent_channel_available(self) -> bool: ...

    @abstractmethod
    async def create_silent_channel(self) -> None: ...

    @abstractmethod
    async def close_silent_channel(self) -> None: ...

    @abstractmethod
    async def execute_silent_command(self, command: str) -> str: ...


def supports(session: TerminalSession, capability: Capabilities) -> bool:
    return capability in session.capabilities


def as_dual_track(session: TerminalSession) -> DualTrackSession | None:
    if supports(session, Capabilities.SILENT_CHANNEL):
        return cast(DualTrackSession, session)
    return None
