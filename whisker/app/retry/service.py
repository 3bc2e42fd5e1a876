from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Awaitable, Callable, TypeVar

from whisker.app.retry.contracts import (
    AttemptTimeoutError,
    RetryBudget,
    RetryOutcome,
    RetryTimeoutError,
    Success,
    TimedOut,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Check = Callable[[], Awaitable[T]]


async def poll(check: Check[T], budget: RetryBudget) -> RetryOutcome[T]:
    """Run ``check`` until it succeeds or the budget's deadline passes.

    Any exception raised by ``check`` counts as a failed attempt and is
    retried; only the deadline ends the campaign unsuccessfully. The deadline
    is tested before each attempt, so a zero budget never calls ``check``.
    Each attempt is cancelled once ``min(attempt_timeout, time left)``
    elapses, and the most recent failure is reported on timeout.
    """
    deadline = time.monotonic() + budget.total_timeout
    last_error: Exception | None = None
    attempts = 0

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            _log_event(
                logging.WARNING,
                "retry_timed_out",
                attempts=attempts,
                error_class=_error_class(last_error),
            )
            return TimedOut(last_error=last_error, attempts=attempts)

        attempts += 1
        allowed = min(budget.attempt_timeout, remaining)
        try:
            value = await asyncio.wait_for(check(), timeout=allowed)
        except asyncio.TimeoutError:
            last_error = AttemptTimeoutError(allowed)
        except Exception as exc:  # noqa: BLE001
            last_error = exc
        else:
            return Success(value=value, attempts=attempts)

        _log_event(
            logging.DEBUG,
            "retry_attempt_failed",
            attempt=attempts,
            error_class=_error_class(last_error),
        )
        remaining = deadline - time.monotonic()
        if remaining > 0:
            await asyncio.sleep(min(budget.poll_interval, remaining))


async def wait_until_ok(
    check: Check[T],
    total_timeout: float,
    attempt_timeout: float,
    poll_interval: float,
) -> T:
    outcome = await poll(
        check,
        RetryBudget(
            total_timeout=total_timeout,
            attempt_timeout=attempt_timeout,
            poll_interval=poll_interval,
        ),
    )
    if isinstance(outcome, Success):
        return outcome.value
    raise RetryTimeoutError(outcome.last_error) from outcome.last_error


def _error_class(error: Exception | None) -> str | None:
    return error.__class__.__name__ if error is not None else None


def _log_event(level: int, event: str, **payload: object) -> None:
    if not LOGGER.isEnabledFor(level):
        return
    LOGGER.log(level, "%s %s", event, json.dumps(payload, sort_keys=True))
