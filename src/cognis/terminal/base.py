"""Shared lifecycle machinery for session backends.

Backends implement the transport hooks (``_open_transport``,
``_close_transport``, ``_write``, ``_apply_size``); :class:`SessionBase` owns
the state machine, the output channel and the bookkeeping that keeps the
Interactive and Silent channels independent.
"""

from __future__ import annotations

import asyncio
import logging as py_logging
import uuid
from abc import abstractmethod
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from cognis.errors import CognisError, ErrorKind
from cognis.terminal.config import SessionConfiguration
from cognis.terminal.contract import TerminalSession
from cognis.terminal.models import (
    CONNECTED,
    CONNECTING,
    DISCONNECTED,
    RECONNECTING,
    SessionPhase,
    SessionState,
    TerminalSize,
)
from cognis.terminal.state import SessionStateMachine, StateListener
from cognis.terminal.stream import OutputChannel, OutputStream

logger = py_logging.getLogger(__name__)


class SessionBase(TerminalSession):
    def __init__(self, configuration: SessionConfiguration, *, name: str | None = None) -> None:
        self._id = str(uuid.uuid4())
        self._name = (name or configuration.display_name).strip() or configuration.display_name
        self._configuration = configuration
        self._machine = SessionStateMachine(self._id)
        self._output = OutputChannel()
        self._lifecycle_lock = asyncio.Lock()
        self._size = TerminalSize()
        self._generation = 0
        self._connect_task: asyncio.Future[None] | None = None
        self._silent_tasks: set[asyncio.Future[str]] = set()
        self._pending_writes: set[asyncio.Future[None]] = set()
        self._background: set[asyncio.Future[Any]] = set()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id!r}, name={self._name!r}, state={self.state.label!r})"

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = value

    @property
    def state(self) -> SessionState:
        return self._machine.state

    @property
    def configuration(self) -> SessionConfiguration:
        return self._configuration

    @property
    def size(self) -> TerminalSize:
        return self._size

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        return self._machine.add_listener(listener)

    # Lifecycle

    async def connect(self) -> None:
        async with self._lifecycle_lock:
            if self.state.phase == SessionPhase.CONNECTED:
                logger.debug("session-connect skipped session=%s reason=already-connected", self._id)
                return
            self._machine.transition(CONNECTING)
            await self._establish()

    async def disconnect(self) -> None:
        pending = self._connect_task
        if pending is not None and not pending.done():
            pending.cancel()
        self._cancel_in_flight()
        async with self._lifecycle_lock:
            if self.state.phase == SessionPhase.DISCONNECTED:
                self._output.finish()
                return
            await self._teardown()
            self._machine.transition(DISCONNECTED)

    async def reconnect(self) -> None:
        async with self._lifecycle_lock:
            if self.state.phase == SessionPhase.CONNECTED:
                self._machine.transition(RECONNECTING)
                await self._teardown()
            else:
                self._output.finish()
                self._machine.transition(CONNECTING)
            await self._establish()

    async def _establish(self) -> None:
        self._generation += 1
        self._output.reopen()
        try:
            self._configuration.validate()
            await self._open_with_timeout()
        except CognisError as exc:
            if exc.kind == ErrorKind.SESSION_CLOSED:
                await self._teardown()
                self._machine.transition(DISCONNECTED)
                raise
            await self._abort_establish(exc)
            raise
        except asyncio.CancelledError:
            await self._teardown()
            self._machine.transition(DISCONNECTED)
            raise
        except Exception as exc:
            error = CognisError.connection_failed(str(exc) or exc.__class__.__name__)
            await self._abort_establish(error)
            raise error from exc
        self._machine.transition(CONNECTED)

    async def _open_with_timeout(self) -> None:
        task = asyncio.ensure_future(self._open_transport())
        self._connect_task = task
        try:
            done, _ = await asyncio.wait({task}, timeout=self._configuration.connect_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._connect_task = None
        if not done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise CognisError.connection_timeout()
        if task.cancelled():
            raise CognisError.session_closed()
        task.result()

    async def _abort_establish(self, error: CognisError) -> None:
        logger.warning("session-connect failed session=%s error=%s", self._id, error.message)
        await self._teardown()
        self._machine.fail(error)

    async def _teardown(self) -> None:
        self._cancel_in_flight()
        try:
            await self._close_silent_transport()
        except Exception:
            logger.warning("silent-channel close failed session=%s", self._id, exc_info=True)
        try:
            await self._close_transport()
        except Exception:
            logger.warning("session-disconnect transport cleanup failed session=%s", self._id, exc_info=True)
        finally:
            self._output.finish()

    # Transport-reported termination

    def _transport_closed_threadsafe(self, loop: asyncio.AbstractEventLoop, generation: int) -> None:
        try:
            loop.call_soon_threadsafe(self._spawn_background, self._handle_transport_exit(generation))
        except RuntimeError:
            logger.debug("session-transport-closed after loop shutdown session=%s", self._id)

    async def _handle_transport_exit(self, generation: int) -> None:
        async with self._lifecycle_lock:
            if generation != self._generation or self.state.phase != SessionPhase.CONNECTED:
                return
            logger.info("session-transport-closed session=%s", self._id)
            await self._teardown()
            self._machine.transition(DISCONNECTED)

    def _spawn_background(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Future[Any]:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # Interactive Channel

    async def send(self, data: bytes) -> None:
        if not self.state.can_send_data:
            raise CognisError.session_closed()
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise CognisError.data_encoding_failed()
        try:
            await self._tracked(self._pending_writes, self._write(bytes(data)))
        except CognisError:
            raise
        except Exception as exc:
            if not self.state.can_send_data:
                raise CognisError.session_closed() from exc
            raise CognisError.send_failed(str(exc) or exc.__class__.__name__) from exc

    def receive(self) -> OutputStream:
        return self._output.attach()

    async def resize(self, width: int, height: int) -> None:
        size = TerminalSize.checked(width, height)
        self._size = size
        if self.state.phase != SessionPhase.CONNECTED:
            return
        try:
            await self._apply_size(size)
        except CognisError:
            raise
        except Exception as exc:
            raise CognisError.send_failed(f"resize to {size.cols}x{size.rows}: {exc}") from exc

    # Silent Channel plumbing

    def _silent_channel_ready(self) -> bool:
        return self.state.phase == SessionPhase.CONNECTED

    async def _run_silent(self, command: str, operation: Callable[[str], Awaitable[str]]) -> str:
        if not self._silent_channel_ready():
            raise CognisError.silent_channel_unavailable()
        try:
            return await self._tracked(self._silent_tasks, operation(command))
        except CognisError:
            raise
        except Exception as exc:
            raise CognisError.silent_channel_error(str(exc) or exc.__class__.__name__) from exc

    async def _tracked(self, tasks: set[Any], coro: Coroutine[Any, Any, Any]) -> Any:
        """Run ``coro`` as a task that teardown can cancel; cancellation is ``session_closed``."""
        task = asyncio.ensure_future(coro)
        tasks.add(task)
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            tasks.discard(task)
        if task.cancelled():
            raise CognisError.session_closed()
        return task.result()

    def _cancel_in_flight(self) -> None:
        self._cancel_silent_tasks()
        for task in list(self._pending_writes):
            if not task.done():
                logger.info("session-send cancelled session=%s", self._id)
                task.cancel()

    def _cancel_silent_tasks(self) -> None:
        for task in list(self._silent_tasks):
            if not task.done():
                logger.info("silent-exec cancelled session=%s", self._id)
                task.cancel()

    # Backend hooks

    @abstractmethod
    async def _open_transport(self) -> None: ...

    @abstractmethod
    async def _close_transport(self) -> None: ...

    @abstractmethod
    async def _write(self, data: bytes) -> None: ...

    async def _apply_size(self, size: TerminalSize) -> None:
        return None

    async def _close_silent_transport(self) -> None:
        return None
