"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import logging as py_logging
import shlex
import sys
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from .errors import CognisError, ExitCode, user_facing_error
from .logging import LOG_LEVELS, configure_logging, default_log_path, normalize_level, resolve_log_path
from .settings import AppSettings, load_settings
from .terminal import TerminalSession, as_dual_track, create_session
from .terminal.stream import OutputStream

_VALID_BACKENDS = ("local", "mock")
_VALID_LOG_LEVELS = tuple(LOG_LEVELS)

SessionOpener = Callable[[argparse.Namespace, AppSettings], TerminalSession]


def _log_level_type(value: str) -> str:
    normalized = normalize_level(value)
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def _wait_type(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--wait must be a number") from exc
    if seconds < 0 or seconds > 60:
        raise argparse.ArgumentTypeError("--wait must be between 0 and 60 seconds")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cognis")
    parser.add_argument("--backend", choices=_VALID_BACKENDS, default=None)
    parser.add_argument("--shell", default=None, help="Shell executable for the local backend")
    parser.add_argument("--name", default=None, help="Session display name")
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument("--log-file", type=Path, default=None)

    commands = parser.add_subparsers(dest="command", required=True)
    exec_parser = commands.add_parser("exec", help="Run a command on the silent channel")
    exec_parser.add_argument(
        "argv",
        nargs=argparse.REMAINDER,
        help="Command line; a single argument is passed to the shell verbatim",
    )
    commands.add_parser("env", help="Print the session environment snapshot")
    send_parser = commands.add_parser("send", help="Send a line to the interactive channel")
    send_parser.add_argument("text")
    send_parser.add_argument("--wait", type=_wait_type, default=1.0)
    return parser


def silent_command_line(words: Sequence[str]) -> str:
    words = list(words)
    if words[:1] == ["--"]:
        words = words[1:]
    if len(words) == 1:
        return words[0]
    return shlex.join(words)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    namespace = parser.parse_args(argv)
    if namespace.command == "exec":
        namespace.silent_command = silent_command_line(namespace.argv)
        if not namespace.silent_command.strip():
            parser.error("exec requires a command")
    return namespace


def open_session(namespace: argparse.Namespace, settings: AppSettings) -> TerminalSession:
    backend = namespace.backend or settings.default_backend
    if backend == "mock":
        configuration = settings.mock_configuration(display_name=namespace.name)
    else:
        configuration = settings.local_configuration(shell_path=namespace.shell, display_name=namespace.name)
    return create_session(configuration, name=namespace.name)


async def collect_output(stream: OutputStream, wait_seconds: float) -> bytes:
    chunks: list[bytes] = []
    deadline = time.monotonic() + wait_seconds
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        try:
            chunk = await asyncio.wait_for(stream.__anext__(), timeout=remaining)
        except (asyncio.TimeoutError, StopAsyncIteration):
            break
        chunks.append(chunk)
    return b"".join(chunks)


def _write_text(text: str) -> None:
    sys.stdout.write(text if text.endswith("\n") else f"{text}\n")
    sys.stdout.flush()


async def run_session_command(namespace: argparse.Namespace, session: TerminalSession) -> int:
    stream = session.receive()
    try:
        await session.connect()
        if namespace.command == "exec":
            dual = as_dual_track(session)
            if dual is None:
                raise CognisError.silent_channel_unavailable()
            _write_text(await dual.execute_silent_command(namespace.silent_command))
        elif namespace.command == "env":
            environment = await session.get_environment()
            _write_text("\n".join(f"{key}={value}" for key, value in sorted(environment.items())))
        elif namespace.command == "send":
            stream.drain_nowait()
            await session.send(f"{namespace.text}\n".encode())
            output = await collect_output(stream, namespace.wait)
            _write_text(output.decode("utf-8", errors="replace"))
    finally:
        await session.disconnect()
    return int(ExitCode.SUCCESS)


def main(
    argv: Sequence[str] | None = None,
    *,
    session_opener: SessionOpener | None = None,
) -> int:
    log_path = default_log_path()
    logger = configure_logging("WARN")
    try:
        namespace = parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    settings = load_settings(namespace.config)
    if namespace.log_file is not None:
        log_path = resolve_log_path(namespace.log_file)
    elif settings.log_file:
        log_path = resolve_log_path(settings.log_file)
    logger = configure_logging(level=namespace.log_level or settings.log_level, log_file=log_path)

    try:
        opener = session_opener or open_session
        session = opener(namespace, settings)
        logger.debug("Running %s on session=%s", namespace.command, session.id)
        return asyncio.run(run_session_command(namespace, session))
    except CognisError as exc:
        logger.error(
            "Handled CognisError (kind=%s code=%s): %s",
            exc.kind.value,
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except KeyboardInterrupt:
        return 130
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        print(user_facing_error("Unexpected runtime failure", hint=f"Inspect logs: {log_path}"), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
