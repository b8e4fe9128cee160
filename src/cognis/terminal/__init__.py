"""Dual-track terminal session domain package."""

from .base import SessionBase
from .config import (
    LocalSessionConfiguration,
    MockConfiguration,
    SerialConfiguration,
    SessionConfiguration,
    SSHConfiguration,
    build_configuration,
)
from .contract import DualTrackSession, TerminalSession, as_dual_track, supports
from .local import LocalTerminalSession
from .mock import MockSession
from .models import (
    CONNECTED,
    CONNECTING,
    DISCONNECTED,
    RECONNECTING,
    Capabilities,
    SessionPhase,
    SessionState,
    SessionType,
    TerminalSize,
)
from .pty_backend import PtyHandle, PtyTransport, build_shell_command
from .registry import SessionRegistry, create_session, register_backend
from .state import SessionStateMachine
from .stream import OutputChannel, OutputStream

__all__ = [
    "as_dual_track",
    "build_configuration",
    "build_shell_command",
    "Capabilities",
    "CONNECTED",
    "CONNECTING",
    "create_session",
    "DISCONNECTED",
    "DualTrackSession",
    "LocalSessionConfiguration",
    "LocalTerminalSession",
    "MockConfiguration",
    "MockSession",
    "OutputChannel",
    "OutputStream",
    "PtyHandle",
    "PtyTransport",
    "RECONNECTING",
    "register_backend",
    "SerialConfiguration",
    "SessionBase",
    "SessionConfiguration",
    "SessionPhase",
    "SessionRegistry",
    "SessionState",
    "SessionStateMachine",
    "SessionType",
    "SSHConfiguration",
    "supports",
    "TerminalSession",
    "TerminalSize",
]
