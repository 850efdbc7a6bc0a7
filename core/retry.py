"""
core/retry.py -- Fixed-delay retry for the startup connection to the store.

connect_with_retry() runs once from the FastAPI lifespan, before the app
accepts traffic. The delay is an asyncio sleep, so the event loop keeps
serving other coroutines while a retry is pending.

Attempt accounting: max_attempts is the total number of invocations, floored
at one. max_attempts=0 still runs the action once before giving up. There is
no backoff growth and no jitter.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, Union

from tenacity import AsyncRetrying, RetryCallState, RetryError, stop_after_attempt, wait_fixed

from core.errors import ConnectionExhaustedError

logger = logging.getLogger("userapi.retry")

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_DELAY = 5.0


async def _invoke(action: Callable[[], Union[T, Awaitable[T]]]) -> T:
    # Blocking drivers (SQLAlchemy + sqlite3) run in a worker thread so the
    # connection attempt never stalls the event loop.
    if inspect.iscoroutinefunction(action):
        return await action()
    result = await asyncio.to_thread(action)
    if inspect.isawaitable(result):
        return await result
    return result


async def connect_with_retry(
    action: Callable[[], Any],
    max_attempts: int = DEFAULT_ATTEMPTS,
    delay: float = DEFAULT_DELAY,
) -> Any:
    """Run action until it succeeds or max_attempts invocations have failed.

    Args:
        action:       Zero-argument callable, sync or async.
        max_attempts: Total invocations allowed. Values below 1 mean 1.
        delay:        Seconds to wait between attempts.

    Returns:
        Whatever action returned on the successful attempt.

    Raises:
        ConnectionExhaustedError: every attempt failed. The last underlying
            exception is chained as __cause__.
    """
    attempts = max(1, max_attempts)

    def _log_retry(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "Connection attempt %d/%d failed (%s). Retrying in %.1fs... (%d left)",
            state.attempt_number,
            attempts,
            exc,
            delay,
            attempts - state.attempt_number,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(delay),
        before_sleep=_log_retry,
        reraise=False,
    )

    try:
        async for attempt in retrying:
            with attempt:
                result = await _invoke(action)
    except RetryError as exc:
        last_exc = exc.last_attempt.exception()
        logger.error("Giving up after %d connection attempt(s): %s", attempts, last_exc)
        raise ConnectionExhaustedError(attempts) from last_exc

    logger.info("Connected to backing store")
    return result
