"""Local shell backend: PTY interactive channel, spawn-per-call silent channel."""

from __future__ import annotations

import asyncio
import logging as py_logging
import os
import signal
import time
from contextlib import suppress
from pathlib import Path
from typing import ClassVar

from cognis.errors import CognisError
from cognis.terminal.base import SessionBase
from cognis.terminal.config import LocalSessionConfiguration
from cognis.terminal.contract import DualTrackSession
from cognis.terminal.models import Capabilities, TerminalSize
from cognis.terminal.pty_backend import PtySpawn, PtyTransport, build_shell_command

logger = py_logging.getLogger(__name__)


class LocalTerminalSession(SessionBase, DualTrackSession):
    capabilities: ClassVar[Capabilities] = (
        Capabilities.INTERACTIVE
        | Capabilities.SILENT_CHANNEL
        | Capabilities.RESIZE
        | Capabilities.ENVIRONMENT
    )

    def __init__(
        self,
        configuration: LocalSessionConfiguration | None = None,
        *,
        name: str | None = None,
        spawn: PtySpawn | None = None,
    ) -> None:
        resolved = configuration or LocalSessionConfiguration()
        super().__init__(resolved, name=name)
        self._local = resolved
        self._size = resolved.initial_size
        self._transport = PtyTransport(spawn)
        self._silent_slots = asyncio.Semaphore(resolved.silent_max_concurrency)
        # asyncio.Lock wakes waiters in FIFO order; writes reach the PTY in call order.
        self._write_order = asyncio.Lock()

    @property
    def configuration(self) -> LocalSessionConfiguration:
        return self._local

    @property
    def pid(self) -> int | None:
        handle = self._transport.handle
        return handle.pid if handle else None

    def launch_environment(self) -> dict[str, str]:
        env = dict(os.environ)
        env["TERM"] = self._local.term
        env["COLORTERM"] = "truecolor"
        env.update(self._local.environment)
        return env

    def _working_directory(self) -> str | None:
        if not self._local.working_directory:
            return None
        return str(Path(self._local.working_directory).expanduser())

    # Interactive Channel

    async def _open_transport(self) -> None:
        loop = asyncio.get_running_loop()
        generation = self._generation
        shell = self._local.resolved_shell() or self._local.shell_path
        command = build_shell_command(shell, self._local.shell_args)
        handle = self._transport.start(
            command,
            cwd=self._working_directory(),
            env=self.launch_environment(),
            size=self._size,
        )
        self._transport.start_reader(
            lambda chunk: self._output.feed_threadsafe(loop, chunk),
            lambda: self._transport_closed_threadsafe(loop, generation),
        )
        logger.info("session-connect session=%s pid=%s shell=%s", self.id, handle.pid, shell)

    async def _close_transport(self) -> None:
        if not self._transport.running:
            return
        await asyncio.to_thread(self._transport.stop)

    async def _write(self, data: bytes) -> None:
        async with self._write_order:
            await asyncio.to_thread(self._transport.write, data)

    async def _apply_size(self, size: TerminalSize) -> None:
        self._transport.resize(size)
        logger.debug("session-resize session=%s cols=%s rows=%s", self.id, size.cols, size.rows)

    async def get_environment(self) -> dict[str, str]:
        return self.launch_environment()

    # Silent Channel

    @property
    def is_silent_channel_available(self) -> bool:
        return self._silent_channel_ready()

    async def create_silent_channel(self) -> None:
        # Every silent command runs in its own process; nothing to open.
        return None

    async def close_silent_channel(self) -> None:
        self._cancel_silent_tasks()

    async def execute_silent_command(self, command: str) -> str:
        return await self._run_silent(command, self._run_in_subprocess)

    async def _run_in_subprocess(self, command: str) -> str:
        shell = self._local.resolved_shell()
        if shell is None:
            raise CognisError.silent_channel_creation_failed()
        env = self.launch_environment()
        env["TERM"] = "dumb"

        async with self._silent_slots:
            started = time.monotonic()
            try:
                process = await asyncio.create_subprocess_exec(
                    shell,
                    "-c",
                    command,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                    cwd=self._working_directory(),
                    env=env,
                    start_new_session=True,
                )
            except OSError as exc:
                logger.warning("silent-exec launch failed session=%s error=%s", self.id, exc)
                raise CognisError.silent_channel_creation_failed() from exc

            try:
                output, _ = await asyncio.wait_for(process.communicate(), timeout=self._local.silent_timeout)
            except asyncio.TimeoutError as exc:
                raise CognisError.silent_channel_error(
                    f"Command timed out after {self._local.silent_timeout:g}s"
                ) from exc
            finally:
                if process.returncode is None:
                    _kill_process_group(process)
                    await process.wait()

        logger.info(
            "silent-exec session=%s returncode=%s duration=%.3fs",
            self.id,
            process.returncode,
            time.monotonic() - started,
        )
        return output.decode("utf-8", errors="replace")


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    if os.name != "nt":
        with suppress(ProcessLookupError, PermissionError):
            os.killpg(process.pid, signal.SIGKILL)
            return
    with suppress(ProcessLookupError):
        process.kill()
