"""Retry/backoff helpers layered on top of ``reconnect()``.

Sessions perform at most one disconnect+connect cycle per ``reconnect()``;
callers that want repeated attempts use :func:`reconnect_with_retry`.
"""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from cognis.errors import CognisError, ErrorKind
from cognis.terminal.contract import TerminalSession

logger = py_logging.getLogger(__name__)

RECOVERABLE_KINDS = frozenset(
    {
        ErrorKind.CONNECTION_FAILED,
        ErrorKind.CONNECTION_TIMEOUT,
        ErrorKind.CONNECTION_REFUSED,
        ErrorKind.NETWORK_UNREACHABLE,
    }
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_backoff_seconds: float = 0.5
    multiplier: float = 2.0


def is_recoverable(error: CognisError) -> bool:
    return error.kind in RECOVERABLE_KINDS


async def reconnect_with_retry(
    session: TerminalSession,
    *,
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Reconnect until it succeeds; return the number of attempts used."""
    attempt = 0
    backoff = policy.initial_backoff_seconds
    last_error: CognisError | None = None

    while attempt < policy.max_attempts:
        attempt += 1
        try:
            await session.reconnect()
            return attempt
        except CognisError as exc:
            if not is_recoverable(exc):
                raise
            last_error = exc
            logger.warning(
                "session-retry session=%s attempt=%s/%s error=%s",
                session.id,
                attempt,
                policy.max_attempts,
                exc.message,
            )
            if attempt >= policy.max_attempts:
                break
            await sleep(backoff)
            backoff *= policy.multiplier

    if last_error is not None:
        raise last_error
    raise CognisError.invalid_configuration("Retry policy allows no attempts")
