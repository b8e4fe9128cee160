"""Session lifecycle value types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, Flag, auto

from cognis.errors import CognisError


class SessionType(str, Enum):
    LOCAL = "local"
    SSH = "ssh"
    SERIAL = "serial"
    MOCK = "mock"

    @property
    def display_name(self) -> str:
        return _SESSION_TYPE_NAMES[self]


_SESSION_TYPE_NAMES = {
    SessionType.LOCAL: "Local",
    SessionType.SSH: "SSH",
    SessionType.SERIAL: "Serial",
    SessionType.MOCK: "Mock",
}


class SessionPhase(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    ERROR = "error"


class Capabilities(Flag):
    NONE = 0
    INTERACTIVE = auto()
    SILENT_CHANNEL = auto()
    RESIZE = auto()
    ENVIRONMENT = auto()


@dataclass(frozen=True)
class SessionState:
    phase: SessionPhase
    reason: CognisError | None = None

    def __post_init__(self) -> None:
        if self.phase == SessionPhase.ERROR and self.reason is None:
            raise ValueError("Error state requires a reason.")
        if self.phase != SessionPhase.ERROR and self.reason is not None:
            raise ValueError(f"State {self.phase.value} cannot carry an error reason.")

    @classmethod
    def failed(cls, reason: CognisError) -> SessionState:
        return cls(SessionPhase.ERROR, reason)

    @property
    def is_active(self) -> bool:
        return self.phase in _ACTIVE_PHASES

    @property
    def can_send_data(self) -> bool:
        return self.phase == SessionPhase.CONNECTED

    @property
    def label(self) -> str:
        if self.reason is not None:
            return f"error({self.reason.kind.value})"
        return self.phase.value

    def __str__(self) -> str:
        return self.label


_ACTIVE_PHASES = frozenset({SessionPhase.CONNECTING, SessionPhase.CONNECTED, SessionPhase.RECONNECTING})

DISCONNECTED = SessionState(SessionPhase.DISCONNECTED)
CONNECTING = SessionState(SessionPhase.CONNECTING)
CONNECTED = SessionState(SessionPhase.CONNECTED)
RECONNECTING = SessionState(SessionPhase.RECONNECTING)


@dataclass(frozen=True)
class TerminalSize:
    cols: int = 80
    rows: int = 24

    @classmethod
    def checked(cls, width: int, height: int) -> TerminalSize:
        if width <= 0 or height <= 0:
            raise CognisError.invalid_configuration(f"Invalid terminal size: {width}x{height}")
        return cls(cols=width, rows=height)
