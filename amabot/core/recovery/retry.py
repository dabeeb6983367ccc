"""
Retry policy for transient upstream failures.

A policy is a plain object (max retries, base delay, multiplier, retryable
predicate) that wraps any coroutine factory, so the same backoff rules can be
applied to model calls and to any other network call.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]
SleepFn = Callable[[float], Awaitable[Any]]


def _never(_: BaseException) -> bool:
    return False


@dataclass
class RetryPolicy:
    """Exponential backoff without jitter.

    ``max_retries`` counts retries, so an operation is attempted at most
    ``max_retries + 1`` times. The delay before retry ``n`` (1-based) is
    ``base_delay_seconds * multiplier ** (n - 1)``.
    """

    max_retries: int = 3
    base_delay_seconds: float = 4.0
    multiplier: float = 2.0
    retryable: RetryPredicate = _never
    sleep: SleepFn = field(default=asyncio.sleep, repr=False)
    logger: Optional[logging.Logger] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if self.logger is None:
            self.logger = logging.getLogger(__name__)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def get_delay(self, retry_number: int) -> float:
        """Delay before the given retry (1-based)."""
        return self.base_delay_seconds * (self.multiplier ** (retry_number - 1))

    async def run(
        self,
        operation: Callable[[], Coroutine[Any, Any, T]],
        operation_name: str = "operation",
    ) -> T:
        """Run ``operation`` until it succeeds, fails non-retryably, or retries run out."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not self.retryable(e) or attempt >= self.max_attempts:
                    if self.retryable(e):
                        self.logger.error(
                            f"{operation_name} failed after {attempt} attempts: {e}"
                        )
                    raise

                delay = self.get_delay(attempt)
                self.logger.warning(
                    f"{operation_name} attempt {attempt}/{self.max_retries} failed: {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                await self.sleep(delay)

        # The loop either returns or raises
        raise RuntimeError(f"{operation_name} retry loop exited unexpectedly")
