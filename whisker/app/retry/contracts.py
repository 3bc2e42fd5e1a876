from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class RetryBudget:
    """Time limits for one retry campaign, in seconds.

    ``total_timeout`` is the hard deadline for the whole campaign,
    ``attempt_timeout`` bounds a single attempt and ``poll_interval`` is the
    pause between a failed attempt and the next one. An attempt is never
    allowed to run past the overall deadline, whatever its own timeout.
    """

    total_timeout: float
    attempt_timeout: float
    poll_interval: float

    def __post_init__(self) -> None:
        if self.total_timeout < 0:
            raise ValueError("total_timeout must be >= 0")
        if self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be > 0")
        if self.poll_interval < 0:
            raise ValueError("poll_interval must be >= 0")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    attempts: int


@dataclass(frozen=True)
class TimedOut:
    last_error: Exception | None
    attempts: int


RetryOutcome = Union[Success[T], TimedOut]


class AttemptTimeoutError(Exception):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Attempt timed out after {timeout:.3f}s")
        self.timeout = timeout


class RetryTimeoutError(Exception):
    def __init__(self, last_error: Exception | None) -> None:
        if last_error is None:
            message = "Timed out before any attempt could run"
        else:
            message = f"Timed out waiting for condition; last error: {last_error}"
        super().__init__(message)
        self.last_error = last_error
