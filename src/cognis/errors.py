"""Closed error taxonomy shared by every session backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    CONNECTION_ERROR = 5
    AUTH_ERROR = 6
    SESSION_ERROR = 7
    SERIAL_ERROR = 8


class ErrorCategory(str, Enum):
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    SILENT_CHANNEL = "silent_channel"
    SESSION = "session"
    DATA_TRANSFER = "data_transfer"
    CONFIGURATION = "configuration"
    SERIAL = "serial"


class ErrorKind(str, Enum):
    CONNECTION_FAILED = "connection_failed"
    CONNECTION_TIMEOUT = "connection_timeout"
    CONNECTION_REFUSED = "connection_refused"
    NETWORK_UNREACHABLE = "network_unreachable"
    HOST_RESOLUTION_FAILED = "host_resolution_failed"

    AUTHENTICATION_ERROR = "authentication_error"
    INVALID_CREDENTIALS = "invalid_credentials"
    PUBLIC_KEY_REJECTED = "public_key_rejected"
    PRIVATE_KEY_NOT_FOUND = "private_key_not_found"
    INVALID_PASSPHRASE = "invalid_passphrase"

    SILENT_CHANNEL_ERROR = "silent_channel_error"
    SILENT_CHANNEL_UNAVAILABLE = "silent_channel_unavailable"
    SILENT_CHANNEL_CREATION_FAILED = "silent_channel_creation_failed"

    SESSION_NOT_FOUND = "session_not_found"
    SESSION_ALREADY_CONNECTED = "session_already_connected"
    SESSION_CLOSED = "session_closed"
    INVALID_SESSION_STATE = "invalid_session_state"

    SEND_FAILED = "send_failed"
    RECEIVE_FAILED = "receive_failed"
    DATA_ENCODING_FAILED = "data_encoding_failed"

    INVALID_CONFIGURATION = "invalid_configuration"
    MISSING_REQUIRED_FIELD = "missing_required_field"

    SERIAL_PORT_NOT_FOUND = "serial_port_not_found"
    SERIAL_PORT_BUSY = "serial_port_busy"
    INVALID_BAUD_RATE = "invalid_baud_rate"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]


_CATEGORIES: dict[ErrorKind, ErrorCategory] = {
    ErrorKind.CONNECTION_FAILED: ErrorCategory.CONNECTION,
    ErrorKind.CONNECTION_TIMEOUT: ErrorCategory.CONNECTION,
    ErrorKind.CONNECTION_REFUSED: ErrorCategory.CONNECTION,
    ErrorKind.NETWORK_UNREACHABLE: ErrorCategory.CONNECTION,
    ErrorKind.HOST_RESOLUTION_FAILED: ErrorCategory.CONNECTION,
    ErrorKind.AUTHENTICATION_ERROR: ErrorCategory.AUTHENTICATION,
    ErrorKind.INVALID_CREDENTIALS: ErrorCategory.AUTHENTICATION,
    ErrorKind.PUBLIC_KEY_REJECTED: ErrorCategory.AUTHENTICATION,
    ErrorKind.PRIVATE_KEY_NOT_FOUND: ErrorCategory.AUTHENTICATION,
    ErrorKind.INVALID_PASSPHRASE: ErrorCategory.AUTHENTICATION,
    ErrorKind.SILENT_CHANNEL_ERROR: ErrorCategory.SILENT_CHANNEL,
    ErrorKind.SILENT_CHANNEL_UNAVAILABLE: ErrorCategory.SILENT_CHANNEL,
    ErrorKind.SILENT_CHANNEL_CREATION_FAILED: ErrorCategory.SILENT_CHANNEL,
    ErrorKind.SESSION_NOT_FOUND: ErrorCategory.SESSION,
    ErrorKind.SESSION_ALREADY_CONNECTED: ErrorCategory.SESSION,
    ErrorKind.SESSION_CLOSED: ErrorCategory.SESSION,
    ErrorKind.INVALID_SESSION_STATE: ErrorCategory.SESSION,
    ErrorKind.SEND_FAILED: ErrorCategory.DATA_TRANSFER,
    ErrorKind.RECEIVE_FAILED: ErrorCategory.DATA_TRANSFER,
    ErrorKind.DATA_ENCODING_FAILED: ErrorCategory.DATA_TRANSFER,
    ErrorKind.INVALID_CONFIGURATION: ErrorCategory.CONFIGURATION,
    ErrorKind.MISSING_REQUIRED_FIELD: ErrorCategory.CONFIGURATION,
    ErrorKind.SERIAL_PORT_NOT_FOUND: ErrorCategory.SERIAL,
    ErrorKind.SERIAL_PORT_BUSY: ErrorCategory.SERIAL,
    ErrorKind.INVALID_BAUD_RATE: ErrorCategory.SERIAL,
}

_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.CONNECTION_FAILED: "Connection failed: {reason}",
    ErrorKind.CONNECTION_TIMEOUT: "Connection timeout",
    ErrorKind.CONNECTION_REFUSED: "Connection refused",
    ErrorKind.NETWORK_UNREACHABLE: "Network unreachable",
    ErrorKind.HOST_RESOLUTION_FAILED: "Failed to resolve host: {host}",
    ErrorKind.AUTHENTICATION_ERROR: "Authentication failed: {reason}",
    ErrorKind.INVALID_CREDENTIALS: "Invalid username or password",
    ErrorKind.PUBLIC_KEY_REJECTED: "Public key rejected",
    ErrorKind.PRIVATE_KEY_NOT_FOUND: "Private key not found: {path}",
    ErrorKind.INVALID_PASSPHRASE: "Invalid passphrase",
    ErrorKind.SILENT_CHANNEL_ERROR: "Silent channel error: {reason}",
    ErrorKind.SILENT_CHANNEL_UNAVAILABLE: "Silent channel unavailable",
    ErrorKind.SILENT_CHANNEL_CREATION_FAILED: "Failed to create silent channel",
    ErrorKind.SESSION_NOT_FOUND: "Session not found: {session_id}",
    ErrorKind.SESSION_ALREADY_CONNECTED: "Session already connected",
    ErrorKind.SESSION_CLOSED: "Session closed",
    ErrorKind.INVALID_SESSION_STATE: "Invalid session state: current is {current}, expected {expected}",
    ErrorKind.SEND_FAILED: "Send failed: {reason}",
    ErrorKind.RECEIVE_FAILED: "Receive failed: {reason}",
    ErrorKind.DATA_ENCODING_FAILED: "Data encoding failed",
    ErrorKind.INVALID_CONFIGURATION: "Invalid configuration: {reason}",
    ErrorKind.MISSING_REQUIRED_FIELD: "Missing required field: {field}",
    ErrorKind.SERIAL_PORT_NOT_FOUND: "Serial port not found: {path}",
    ErrorKind.SERIAL_PORT_BUSY: "Serial port busy: {path}",
    ErrorKind.INVALID_BAUD_RATE: "Invalid baud rate: {rate}",
}

_HINTS: dict[ErrorKind, str] = {
    ErrorKind.CONNECTION_TIMEOUT: "Check your network connection and firewall settings.",
    ErrorKind.CONNECTION_REFUSED: "Ensure the remote service is running and accepting connections.",
    ErrorKind.NETWORK_UNREACHABLE: "Check that the host is reachable from this network.",
    ErrorKind.HOST_RESOLUTION_FAILED: "Verify the host name and your DNS settings.",
    ErrorKind.INVALID_CREDENTIALS: "Verify your username and password.",
    ErrorKind.PUBLIC_KEY_REJECTED: "Ensure your public key is added to the remote host's authorized_keys.",
    ErrorKind.PRIVATE_KEY_NOT_FOUND: "Check if the private key file path is correct.",
    ErrorKind.INVALID_PASSPHRASE: "Re-enter the passphrase for the private key.",
    ErrorKind.SILENT_CHANNEL_UNAVAILABLE: "Connect the session before running silent commands.",
    ErrorKind.SESSION_CLOSED: "Connect the session before sending data.",
    ErrorKind.SERIAL_PORT_NOT_FOUND: "Check that the device is plugged in and the path is correct.",
    ErrorKind.SERIAL_PORT_BUSY: "Close other applications using this serial port.",
    ErrorKind.INVALID_BAUD_RATE: "Use a standard baud rate such as 9600 or 115200.",
}

_EXIT_CODES: dict[ErrorCategory, ExitCode] = {
    ErrorCategory.CONNECTION: ExitCode.CONNECTION_ERROR,
    ErrorCategory.AUTHENTICATION: ExitCode.AUTH_ERROR,
    ErrorCategory.SILENT_CHANNEL: ExitCode.RUNTIME_ERROR,
    ErrorCategory.SESSION: ExitCode.SESSION_ERROR,
    ErrorCategory.DATA_TRANSFER: ExitCode.RUNTIME_ERROR,
    ErrorCategory.CONFIGURATION: ExitCode.CONFIG_ERROR,
    ErrorCategory.SERIAL: ExitCode.SERIAL_ERROR,
}


@dataclass
class CognisError(Exception):
    kind: ErrorKind
    details: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __hash__(self) -> int:
        return hash((self.kind, tuple(sorted(self.details.items()))))

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message

    @property
    def category(self) -> ErrorCategory:
        return self.kind.category

    @property
    def message(self) -> str:
        return _MESSAGES[self.kind].format_map(_Details(self.details))

    @property
    def hint(self) -> str:
        return _HINTS.get(self.kind, "")

    @property
    def code(self) -> ExitCode:
        return _EXIT_CODES[self.category]

    @classmethod
    def connection_failed(cls, reason: str) -> CognisError:
        return cls(ErrorKind.CONNECTION_FAILED, {"reason": reason})

    @classmethod
    def connection_timeout(cls) -> CognisError:
        return cls(ErrorKind.CONNECTION_TIMEOUT)

    @classmethod
    def connection_refused(cls) -> CognisError:
        return cls(ErrorKind.CONNECTION_REFUSED)

    @classmethod
    def network_unreachable(cls) -> CognisError:
        return cls(ErrorKind.NETWORK_UNREACHABLE)

    @classmethod
    def host_resolution_failed(cls, host: str) -> CognisError:
        return cls(ErrorKind.HOST_RESOLUTION_FAILED, {"host": host})

    @classmethod
    def authentication_error(cls, reason: str) -> CognisError:
        return cls(ErrorKind.AUTHENTICATION_ERROR, {"reason": reason})

    @classmethod
    def invalid_credentials(cls) -> CognisError:
        return cls(ErrorKind.INVALID_CREDENTIALS)

    @classmethod
    def public_key_rejected(cls) -> CognisError:
        return cls(ErrorKind.PUBLIC_KEY_REJECTED)

    @classmethod
    def private_key_not_found(cls, path: str) -> CognisError:
        return cls(ErrorKind.PRIVATE_KEY_NOT_FOUND, {"path": path})

    @classmethod
    def invalid_passphrase(cls) -> CognisError:
        return cls(ErrorKind.INVALID_PASSPHRASE)

    @classmethod
    def silent_channel_error(cls, reason: str) -> CognisError:
        return cls(ErrorKind.SILENT_CHANNEL_ERROR, {"reason": reason})

    @classmethod
    def silent_channel_unavailable(cls) -> CognisError:
        return cls(ErrorKind.SILENT_CHANNEL_UNAVAILABLE)

    @classmethod
    def silent_channel_creation_failed(cls) -> CognisError:
        return cls(ErrorKind.SILENT_CHANNEL_CREATION_FAILED)

    @classmethod
    def session_not_found(cls, session_id: str) -> CognisError:
        return cls(ErrorKind.SESSION_NOT_FOUND, {"session_id": str(session_id)})

    @classmethod
    def session_already_connected(cls) -> CognisError:
        return cls(ErrorKind.SESSION_ALREADY_CONNECTED)

    @classmethod
    def session_closed(cls) -> CognisError:
        return cls(ErrorKind.SESSION_CLOSED)

    @classmethod
    def invalid_session_state(cls, current: str, expected: str) -> CognisError:
        return cls(ErrorKind.INVALID_SESSION_STATE, {"current": current, "expected": expected})

    @classmethod
    def send_failed(cls, reason: str) -> CognisError:
        return cls(ErrorKind.SEND_FAILED, {"reason": reason})

    @classmethod
    def receive_failed(cls, reason: str) -> CognisError:
        return cls(ErrorKind.RECEIVE_FAILED, {"reason": reason})

    @classmethod
    def data_encoding_failed(cls) -> CognisError:
        return cls(ErrorKind.DATA_ENCODING_FAILED)

    @classmethod
    def invalid_configuration(cls, reason: str) -> CognisError:
        return cls(ErrorKind.INVALID_CONFIGURATION, {"reason": reason})

    @classmethod
    def missing_required_field(cls, field_name: str) -> CognisError:
        return cls(ErrorKind.MISSING_REQUIRED_FIELD, {"field": field_name})

    @classmethod
    def serial_port_not_found(cls, path: str) -> CognisError:
        return cls(ErrorKind.SERIAL_PORT_NOT_FOUND, {"path": path})

    @classmethod
    def serial_port_busy(cls, path: str) -> CognisError:
        return cls(ErrorKind.SERIAL_PORT_BUSY, {"path": path})

    @classmethod
    def invalid_baud_rate(cls, rate: int) -> CognisError:
        return cls(ErrorKind.INVALID_BAUD_RATE, {"rate": str(rate)})


class _Details(dict[str, str]):
    def __missing__(self, key: str) -> str:
        return "unknown"


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
