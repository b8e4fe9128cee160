from __future__ import annotations

import threading

import pytest

from cognis.errors import CognisError, ErrorKind
from cognis.terminal.models import TerminalSize
from cognis.terminal.pty_backend import PtyTransport, build_shell_command


class _FakePty:
    def __init__(self, chunks: list[bytes | str] | None = None, *, sticky_alive: bool = False) -> None:
        self.chunks = list(chunks or [])
        self.writes: list[bytes] = []
        self.size: tuple[int, int] | None = None
        self.closed = False
        self.terminated = False
        self.sticky_alive = sticky_alive
        self.pid = 4242

    def write(self, payload: bytes) -> None:
        self.writes.append(payload)

    def read(self, _size: int = 4096) -> bytes | str:
        if self.chunks:
            return self.chunks.pop(0)
        return b""

    def set_size(self, cols: int, rows: int) -> None:
        self.size = (cols, rows)

    def close(self) -> None:
        self.closed = True

    def terminate(self) -> None:
        self.terminated = True

    def isalive(self) -> bool:
        if self.sticky_alive:
            return not self.terminated
        return not self.closed


def _transport(pty: _FakePty) -> PtyTransport:
    return PtyTransport(spawn=lambda _c, _cwd, _env, _size: pty)


def test_build_shell_command_appends_arguments() -> None:
    assert build_shell_command("/bin/bash") == ["/bin/bash"]
    assert build_shell_command(" /bin/zsh ", ("-l",)) == ["/bin/zsh", "-l"]
    with pytest.raises(CognisError) as excinfo:
        build_shell_command("   ")
    assert excinfo.value.kind is ErrorKind.MISSING_REQUIRED_FIELD


def test_start_passes_launch_parameters_to_spawn() -> None:
    seen: list[tuple[list[str], str | None, dict[str, str] | None, TerminalSize]] = []

    def spawn(command: list[str], cwd: str | None, env: dict[str, str] | None, size: TerminalSize) -> _FakePty:
        seen.append((command, cwd, env, size))
        return _FakePty()

    transport = PtyTransport(spawn=spawn)
    handle = transport.start(["/bin/sh", "-i"], cwd="/tmp", env={"TERM": "xterm"}, size=TerminalSize(100, 30))

    assert seen == [(["/bin/sh", "-i"], "/tmp", {"TERM": "xterm"}, TerminalSize(100, 30))]
    assert handle.pid == 4242
    assert handle.command == ("/bin/sh", "-i")
    assert transport.running
    transport.stop()


def test_transport_write_read_resize_and_interrupt() -> None:
    pty = _FakePty(chunks=[b"hello", "café"])
    transport = _transport(pty)
    transport.start(["/bin/sh"])

    transport.write(b"echo test\n")
    transport.interrupt()
    transport.resize(TerminalSize(cols=120, rows=40))

    assert transport.read() == b"hello"
    assert transport.read() == "café".encode()
    assert transport.read() == b""
    assert pty.writes == [b"echo test\n", b"\x03"]
    assert pty.size == (120, 40)
    transport.stop()


def test_transport_rejects_duplicate_start_and_use_after_stop() -> None:
    transport = _transport(_FakePty())
    transport.start(["/bin/sh"])

    with pytest.raises(CognisError) as excinfo:
        transport.start(["/bin/sh"])
    assert excinfo.value.kind is ErrorKind.INVALID_SESSION_STATE

    transport.stop()
    with pytest.raises(CognisError) as excinfo:
        transport.write(b"ls\n")
    assert excinfo.value.kind is ErrorKind.SESSION_CLOSED


@pytest.mark.parametrize(
    ("failure", "kind"),
    [
        (FileNotFoundError("missing"), ErrorKind.INVALID_CONFIGURATION),
        (PermissionError("denied"), ErrorKind.INVALID_CONFIGURATION),
        (RuntimeError("openpty failed"), ErrorKind.CONNECTION_FAILED),
    ],
)
def test_spawn_failures_map_to_taxonomy(failure: Exception, kind: ErrorKind) -> None:
    def spawn(*_args: object) -> _FakePty:
        raise failure

    transport = PtyTransport(spawn=spawn)

    with pytest.raises(CognisError) as excinfo:
        transport.start(["/bin/missing"])

    assert excinfo.value.kind is kind
    assert not transport.running


def test_write_failure_is_reported_as_send_failed() -> None:
    pty = _FakePty()

    def broken_write(_payload: bytes) -> None:
        raise OSError("broken pipe")

    pty.write = broken_write  # type: ignore[method-assign]
    transport = _transport(pty)
    transport.start(["/bin/sh"])

    with pytest.raises(CognisError) as excinfo:
        transport.write(b"x")

    assert excinfo.value.kind is ErrorKind.SEND_FAILED
    transport.stop()


def test_stop_terminates_and_closes_process_once() -> None:
    pty = _FakePty(sticky_alive=True)
    transport = _transport(pty)
    transport.start(["/bin/sh"])

    transport.stop()
    transport.stop()

    assert pty.terminated is True
    assert pty.closed is True
    assert not transport.running
    assert transport.handle is None


def test_reader_delivers_chunks_then_reports_exit() -> None:
    transport = _transport(_FakePty(chunks=[b"one", b"two"]))
    transport.start(["/bin/sh"])
    received: list[bytes] = []
    exited = threading.Event()

    transport.start_reader(received.append, exited.set)

    assert exited.wait(2)
    assert received == [b"one", b"two"]
    transport.stop()


def test_reader_does_not_report_exit_after_stop() -> None:
    release = threading.Event()
    pty = _FakePty()

    def blocking_read(_size: int = 4096) -> bytes:
        release.wait(2)
        return b""

    pty.read = blocking_read  # type: ignore[method-assign]
    pty.terminate = release.set  # type: ignore[method-assign]
    transport = _transport(pty)
    transport.start(["/bin/sh"])
    exits: list[bool] = []

    transport.start_reader(lambda _chunk: None, lambda: exits.append(True))
    transport.stop()

    assert exits == []
    assert pty.closed is True
