"""Pseudo-terminal process transport for the local shell backend."""

from __future__ import annotations

import atexit
import logging as py_logging
import os
import select
import signal
import subprocess
import threading
import weakref
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass

from cognis.errors import CognisError
from cognis.terminal.models import TerminalSize

logger = py_logging.getLogger(__name__)

_POLL_SECONDS = 0.05
_READER_JOIN_SECONDS = 1.0
_EXIT_GRACE_SECONDS = 0.5


@dataclass(frozen=True)
class PtyHandle:
    pid: int
    command: tuple[str, ...]
    size: TerminalSize


PtySpawn = Callable[[list[str], str | None, dict[str, str] | None, TerminalSize], object]


def build_shell_command(shell_path: str, args: tuple[str, ...] | list[str] = ()) -> list[str]:
    shell = shell_path.strip()
    if not shell:
        raise CognisError.missing_required_field("shell_path")
    return [shell, *args]


class PosixPty:
    """Child process attached to the slave side of a fresh pseudo-terminal."""

    def __init__(
        self,
        command: list[str],
        cwd: str | None,
        env: dict[str, str] | None,
        size: TerminalSize,
    ) -> None:
        master, slave = os.openpty()
        try:
            _set_winsize(slave, size)
            self._process = subprocess.Popen(
                command,
                stdin=slave,
                stdout=slave,
                stderr=slave,
                cwd=cwd,
                env=env,
                start_new_session=True,
                preexec_fn=_claim_controlling_tty,
                close_fds=True,
            )
        except BaseException:
            os.close(master)
            raise
        finally:
            os.close(slave)
        self.fd = master
        self._closed = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def exitstatus(self) -> int | None:
        return self._process.poll()

    def read(self, size: int = 4096) -> bytes:
        while not self._closed:
            try:
                ready, _, _ = select.select([self.fd], [], [], _POLL_SECONDS)
            except (OSError, ValueError):
                return b""
            if not ready:
                continue
            try:
                return os.read(self.fd, size)
            except OSError:
                # Linux reports EIO once the slave side hangs up.
                return b""
        return b""

    def write(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = os.write(self.fd, view)
            view = view[written:]

    def set_size(self, cols: int, rows: int) -> None:
        _set_winsize(self.fd, TerminalSize(cols=cols, rows=rows))

    def isalive(self) -> bool:
        return self._process.poll() is None

    def terminate(self) -> None:
        self._closed = True
        if self.isalive():
            self._signal_group("SIGHUP")

    def kill(self) -> None:
        self._closed = True
        if self.isalive():
            self._signal_group("SIGKILL")

    def close(self) -> None:
        self._closed = True
        if self.isalive():
            self.terminate()
            try:
                self._process.wait(timeout=_EXIT_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                self.kill()
                with suppress(subprocess.TimeoutExpired):
                    self._process.wait(timeout=_EXIT_GRACE_SECONDS)
        with suppress(OSError):
            os.close(self.fd)

    def _signal_group(self, name: str) -> None:
        signum = getattr(signal, name)
        try:
            os.killpg(self._process.pid, signum)
        except ProcessLookupError:
            return
        except PermissionError:
            with suppress(ProcessLookupError):
                self._process.send_signal(signum)


class _WinPtyProcess:
    """Byte-oriented view over a pywinpty process."""

    def __init__(self, process: object) -> None:
        self._process = process

    @property
    def pid(self) -> int:
        return int(getattr(self._process, "pid", 0) or 0)

    def read(self, size: int = 4096) -> bytes:
        try:
            chunk = self._process.read(size)  # type: ignore[attr-defined]
        except EOFError:
            return b""
        if isinstance(chunk, bytes):
            return chunk
        return str(chunk).encode("utf-8")

    def write(self, data: bytes) -> None:
        self._process.write(data.decode("utf-8", errors="replace"))  # type: ignore[attr-defined]

    def set_size(self, cols: int, rows: int) -> None:
        self._process.setwinsize(rows, cols)  # type: ignore[attr-defined]

    def isalive(self) -> bool:
        return bool(self._process.isalive())  # type: ignore[attr-defined]

    def terminate(self) -> None:
        self._process.terminate(True)  # type: ignore[attr-defined]

    def close(self) -> None:
        self._process.close(True)  # type: ignore[attr-defined]


def _spawn_posix(command: list[str], cwd: str | None, env: dict[str, str] | None, size: TerminalSize) -> object:
    return PosixPty(command, cwd, env, size)


def _spawn_with_pywinpty(
    command: list[str], cwd: str | None, env: dict[str, str] | None, size: TerminalSize
) -> object:
    try:
        from winpty import PtyProcess
    except Exception as exc:
        raise CognisError.connection_failed(
            "pywinpty backend is unavailable; install pywinpty on Windows"
        ) from exc

    kwargs: dict[str, object] = {"dimensions": (size.rows, size.cols)}
    if cwd:
        kwargs["cwd"] = cwd
    if env:
        kwargs["env"] = env
    return _WinPtyProcess(PtyProcess.spawn(subprocess.list2cmdline(command), **kwargs))


def default_spawn() -> PtySpawn:
    if os.name == "nt":
        return _spawn_with_pywinpty
    return _spawn_posix


class PtyTransport:
    """Owns one PTY child process and the thread draining its output."""

    def __init__(self, spawn: PtySpawn | None = None) -> None:
        self._spawn = spawn or default_spawn()
        self._process: object | None = None
        self._handle: PtyHandle | None = None
        self._reader: threading.Thread | None = None
        self._stopping = threading.Event()
        self._write_lock = threading.Lock()

    @property
    def handle(self) -> PtyHandle | None:
        return self._handle

    @property
    def running(self) -> bool:
        return self._process is not None

    def start(
        self,
        command: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        size: TerminalSize | None = None,
    ) -> PtyHandle:
        if self._process is not None:
            raise CognisError.invalid_session_state("running", "stopped")
        if not command:
            raise CognisError.missing_required_field("shell_path")

        resolved_size = size or TerminalSize()
        try:
            process = self._spawn(list(command), cwd, env, resolved_size)
        except CognisError:
            raise
        except FileNotFoundError as exc:
            raise CognisError.invalid_configuration(f"Shell not found: {command[0]}") from exc
        except PermissionError as exc:
            raise CognisError.invalid_configuration(f"Shell is not executable: {command[0]}") from exc
        except Exception as exc:
            raise CognisError.connection_failed(str(exc) or "Failed to start PTY process") from exc

        self._stopping.clear()
        self._process = process
        self._handle = PtyHandle(
            pid=int(getattr(process, "pid", 0) or 0),
            command=tuple(command),
            size=resolved_size,
        )
        _LIVE_TRANSPORTS.add(self)
        logger.debug("pty-start pid=%s command=%s", self._handle.pid, " ".join(command))
        return self._handle

    def start_reader(
        self,
        on_data: Callable[[bytes], None],
        on_exit: Callable[[], None],
        *,
        max_bytes: int = 4096,
    ) -> None:
        process = self._require_process()
        if self._reader is not None and self._reader.is_alive():
            return

        def _loop() -> None:
            while not self._stopping.is_set():
                try:
                    chunk = self.read(max_bytes, process=process)
                except CognisError:
                    logger.debug("pty-reader stopped after read failure", exc_info=True)
                    break
                if not chunk:
                    break
                on_data(chunk)
            if not self._stopping.is_set():
                on_exit()

        self._reader = threading.Thread(target=_loop, name="cognis-pty-reader", daemon=True)
        self._reader.start()

    def write(self, payload: bytes) -> None:
        process = self._require_process()
        try:
            with self._write_lock:
                process.write(payload)  # type: ignore[attr-defined]
        except Exception as exc:
            raise CognisError.send_failed(str(exc) or "PTY write failed") from exc

    def read(self, max_bytes: int = 4096, *, process: object | None = None) -> bytes:
        target = process or self._require_process()
        chunk: object
        try:
            chunk = target.read(max_bytes)  # type: ignore[attr-defined]
        except TypeError:
            chunk = target.read()  # type: ignore[attr-defined]
        except Exception as exc:
            raise CognisError.receive_failed(str(exc) or "PTY read failed") from exc

        if chunk is None:
            return b""
        if isinstance(chunk, (bytes, bytearray)):
            return bytes(chunk)
        return str(chunk).encode("utf-8")

    def resize(self, size: TerminalSize) -> None:
        process = self._require_process()
        try:
            process.set_size(size.cols, size.rows)  # type: ignore[attr-defined]
        except Exception as exc:
            raise CognisError.send_failed(f"PTY resize failed: {exc}") from exc

    def interrupt(self) -> None:
        # Ctrl+C passthrough for interactive shells.
        self.write(b"\x03")

    def stop(self) -> None:
        process, self._process = self._process, None
        reader, self._reader = self._reader, None
        self._handle = None
        _LIVE_TRANSPORTS.discard(self)
        if process is None:
            return
        self._stopping.set()
        if hasattr(process, "terminate"):
            with suppress(Exception):
                process.terminate()
        if reader is not None and reader is not threading.current_thread():
            reader.join(_READER_JOIN_SECONDS)
        _close_process(process)

    def _require_process(self) -> object:
        if self._process is None:
            raise CognisError.session_closed()
        return self._process


def _close_process(process: object) -> None:
    alive = _is_alive(process)
    if hasattr(process, "close"):
        try:
            process.close()
        except TypeError:
            process.close(True)
        except Exception:
            logger.debug("pty-close failed", exc_info=True)
    if alive and _is_alive(process):
        if hasattr(process, "kill"):
            with suppress(Exception):
                process.kill()
        elif hasattr(process, "terminate"):
            with suppress(Exception):
                process.terminate()


def _is_alive(process: object) -> bool:
    if hasattr(process, "isalive"):
        try:
            return bool(process.isalive())
        except Exception:
            return True
    return True


def _set_winsize(fd: int, size: TerminalSize) -> None:
    import fcntl
    import struct
    import termios

    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", size.rows, size.cols, 0, 0))


def _claim_controlling_tty() -> None:
    import fcntl
    import termios

    with suppress(OSError):
        fcntl.ioctl(0, termios.TIOCSCTTY, 0)


_LIVE_TRANSPORTS: weakref.WeakSet[PtyTransport] = weakref.WeakSet()


@atexit.register
def _stop_live_transports() -> None:
    for transport in list(_LIVE_TRANSPORTS):
        with suppress(Exception):
            transport.stop()
