"""Per-backend session configuration models."""

from __future__ import annotations

import os
import shutil
from abc import abstractmethod
from pathlib import Path
from typing import Any, ClassVar, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cognis.errors import CognisError
from cognis.terminal.models import SessionType, TerminalSize

STANDARD_BAUD_RATES = frozenset(
    {300, 1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200, 230400, 460800, 921600}
)
DEFAULT_TERM = "xterm-256color"

ConfigT = TypeVar("ConfigT", bound="SessionConfiguration")


def default_shell_path() -> str:
    configured = os.environ.get("SHELL", "").strip()
    if configured:
        return configured
    if os.name == "nt":
        return "powershell.exe"
    return "/bin/sh"


class SessionConfiguration(BaseModel):
    """Immutable connection parameters for one connection attempt."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    session_type: ClassVar[SessionType]

    display_name: str
    connect_timeout: float = Field(default=10.0, gt=0)

    @field_validator("display_name")
    @classmethod
    def _strip_display_name(cls, value: str) -> str:
        return value.strip()

    @abstractmethod
    def validate(self) -> None:  # type: ignore[override]
        """Raise a CognisError when the parameters cannot work."""


class LocalSessionConfiguration(SessionConfiguration):
    session_type: ClassVar[SessionType] = SessionType.LOCAL

    display_name: str = "Local Shell"
    shell_path: str = Field(default_factory=default_shell_path)
    shell_args: tuple[str, ...] = ()
    working_directory: str = ""
    environment: dict[str, str] = Field(default_factory=dict)
    term: str = DEFAULT_TERM
    initial_cols: int = Field(default=80, ge=1)
    initial_rows: int = Field(default=24, ge=1)
    silent_timeout: float = Field(default=30.0, gt=0)
    silent_max_concurrency: int = Field(default=4, ge=1)

    @property
    def initial_size(self) -> TerminalSize:
        return TerminalSize(cols=self.initial_cols, rows=self.initial_rows)

    def resolved_shell(self) -> str | None:
        candidate = self.shell_path.strip()
        if not candidate:
            return None
        if os.sep not in candidate and (os.altsep is None or os.altsep not in candidate):
            return shutil.which(candidate)
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
        return None

    def validate(self) -> None:  # type: ignore[override]
        if not self.shell_path.strip():
            raise CognisError.missing_required_field("shell_path")
        if self.resolved_shell() is None:
            raise CognisError.invalid_configuration(
                f"Shell not found or not executable at {self.shell_path}"
            )
        if self.working_directory and not Path(self.working_directory).expanduser().is_dir():
            raise CognisError.invalid_configuration(
                f"Working directory not found: {self.working_directory}"
            )


class MockConfiguration(SessionConfiguration):
    session_type: ClassVar[SessionType] = SessionType.MOCK

    display_name: str = "Mock Terminal"
    connect_delay: float = Field(default=0.5, ge=0)
    silent_delay: float = Field(default=0.8, ge=0)
    refuse_connection: bool = False
    silent_enabled: bool = True

    def validate(self) -> None:  # type: ignore[override]
        if not self.display_name:
            raise CognisError.missing_required_field("display_name")


class SSHConfiguration(SessionConfiguration):
    session_type: ClassVar[SessionType] = SessionType.SSH

    display_name: str = "SSH"
    host: str = ""
    port: int = 22
    username: str = ""
    password: str = Field(default="", repr=False)
    private_key_path: str = ""

    def validate(self) -> None:  # type: ignore[override]
        if not self.host.strip():
            raise CognisError.missing_required_field("host")
        if not self.username.strip():
            raise CognisError.missing_required_field("username")
        if self.port < 1 or self.port > 65535:
            raise CognisError.invalid_configuration(f"Invalid SSH port: {self.port}")
        if self.private_key_path and not Path(self.private_key_path).expanduser().is_file():
            raise CognisError.private_key_not_found(self.private_key_path)


class SerialConfiguration(SessionConfiguration):
    session_type: ClassVar[SessionType] = SessionType.SERIAL

    display_name: str = "Serial"
    device_path: str = ""
    baud_rate: int = 115200

    def validate(self) -> None:  # type: ignore[override]
        if not self.device_path.strip():
            raise CognisError.missing_required_field("device_path")
        if not Path(self.device_path).exists():
            raise CognisError.serial_port_not_found(self.device_path)
        if self.baud_rate not in STANDARD_BAUD_RATES:
            raise CognisError.invalid_baud_rate(self.baud_rate)


def build_configuration(model: type[ConfigT], **values: Any) -> ConfigT:
    """Construct a configuration, reporting type errors through the taxonomy."""
    try:
        return model(**values)
    except ValidationError as exc:
        errors = exc.errors()
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ())) or model.__name__
            if first.get("type") == "missing":
                raise CognisError.missing_required_field(location) from exc
            raise CognisError.invalid_configuration(f"{location}: {first.get('msg', 'invalid value')}") from exc
        raise CognisError.invalid_configuration(str(exc)) from exc
