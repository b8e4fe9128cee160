"""Deterministic in-process backend used as a reference and test double."""

from __future__ import annotations

import asyncio
import codecs
import json
import logging as py_logging
from datetime import datetime, timezone
from typing import ClassVar

from typing_extensions import TypedDict

from cognis.errors import CognisError
from cognis.terminal.base import SessionBase
from cognis.terminal.config import MockConfiguration
from cognis.terminal.contract import DualTrackSession
from cognis.terminal.models import Capabilities, TerminalSize

logger = py_logging.getLogger(__name__)

PROMPT = "> "
NEWLINE = "\r\n"
ANALYSIS_TEXT = "Silent channel execution successful. No anomalies detected."


class SilentReport(TypedDict):
    command: str
    status: str
    timestamp: str
    analysis: str


class MockSession(SessionBase, DualTrackSession):
    capabilities: ClassVar[Capabilities] = (
        Capabilities.INTERACTIVE
        | Capabilities.SILENT_CHANNEL
        | Capabilities.RESIZE
        | Capabilities.ENVIRONMENT
    )

    def __init__(self, configuration: MockConfiguration | None = None, *, name: str | None = None) -> None:
        resolved = configuration or MockConfiguration()
        super().__init__(resolved, name=name)
        self._mock = resolved
        self._line = ""
        # Characters split across sends are joined; undecodable bytes become U+FFFD.
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.last_analysis: str | None = None
        self.silent_commands: list[str] = []

    @classmethod
    def named(cls, name: str, **options: object) -> MockSession:
        return cls(MockConfiguration(display_name=name, **options), name=name)

    @property
    def configuration(self) -> MockConfiguration:
        return self._mock

    # Interactive Channel

    async def _open_transport(self) -> None:
        await asyncio.sleep(self._mock.connect_delay)
        if self._mock.refuse_connection:
            raise CognisError.connection_refused()
        self._line = ""
        self._decoder.reset()
        self._emit(
            f"{NEWLINE}Welcome to Cognis Mock Terminal [{self.name}]{NEWLINE}"
            f"Type 'help' for commands.{NEWLINE}"
            f"Try typing 'diagnose' to trigger Silent Channel analysis.{NEWLINE}{PROMPT}"
        )

    async def _close_transport(self) -> None:
        self._line = ""
        self._decoder.reset()

    async def _write(self, data: bytes) -> None:
        text = self._decoder.decode(data)
        if not text:
            return
        self._emit(text)
        *lines, remainder = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        for line in lines:
            command = (self._line + line).strip()
            self._line = ""
            self._emit(NEWLINE)
            self._respond(command)
        self._line += remainder

    def _respond(self, command: str) -> None:
        if command == "help":
            self._emit(f"Available commands: help, clear, date, diagnose{NEWLINE}{PROMPT}")
        elif command == "date":
            self._emit(f"{datetime.now(timezone.utc).isoformat()}{NEWLINE}{PROMPT}")
        elif command == "clear":
            self._emit(f"\x1b[2J\x1b[H{PROMPT}")
        elif command == "diagnose":
            self._emit(f"Running system diagnosis... (See Inspector){NEWLINE}{PROMPT}")
            self._spawn_background(self._diagnose())
        else:
            self._emit(PROMPT)

    async def _diagnose(self) -> None:
        try:
            self.last_analysis = await self.execute_silent_command("diagnose")
        except CognisError as exc:
            logger.warning("mock-diagnose failed session=%s error=%s", self.id, exc.message)

    async def _apply_size(self, size: TerminalSize) -> None:
        logger.debug("session-resize session=%s cols=%s rows=%s", self.id, size.cols, size.rows)

    async def get_environment(self) -> dict[str, str]:
        return {
            "TERM": "xterm-256color",
            "SHELL": "/bin/mock",
            "USER": "cognis",
            "COGNIS_SESSION": self.id,
        }

    def _emit(self, text: str) -> None:
        self._output.feed(text.encode("utf-8"))

    # Silent Channel

    @property
    def is_silent_channel_available(self) -> bool:
        return self._mock.silent_enabled and self._silent_channel_ready()

    async def create_silent_channel(self) -> None:
        if not self._mock.silent_enabled:
            raise CognisError.silent_channel_creation_failed()

    async def close_silent_channel(self) -> None:
        self._cancel_silent_tasks()

    async def execute_silent_command(self, command: str) -> str:
        if not self._mock.silent_enabled:
            raise CognisError.silent_channel_unavailable()
        return await self._run_silent(command, self._analyze)

    async def _analyze(self, command: str) -> str:
        await asyncio.sleep(self._mock.silent_delay)
        self.silent_commands.append(command)
        report: SilentReport = {
            "command": command,
            "status": "success",
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "analysis": ANALYSIS_TEXT,
        }
        return json.dumps(report, indent=2)
