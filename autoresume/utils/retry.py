"""
Retry with exponential backoff.

One policy object is shared by every call site that talks to the network
(HTTP fetches and generative provider calls), so the attempt budget, delay
curve and transient-error classification live in one place.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

T = TypeVar("T")


def _never_retry(error: BaseException) -> bool:
    return False


def _retry_after_hint(error: BaseException) -> Optional[float]:
    """Upstream-provided wait (e.g., Retry-After) carried on the exception, if any."""
    return getattr(error, "retry_after", None)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    The operation runs once, then up to max_retries more times while the raised
    exception is classified as retryable. The wait before retry k (0-based) is
    base_delay * 2**k, capped at max_delay. When the exception carries an
    upstream hint (retry_after) that fits under max_delay the hint is used
    instead; a hint beyond max_delay ends the loop at once, since waiting that
    long is not a "retry" any more.

    Attributes:
        max_retries: Retries after the first attempt
        base_delay: Delay in seconds before the first retry
        max_delay: Cap on any single delay
        is_retryable: Classifies an exception as transient
        delay_hint: Extracts an upstream wait hint from an exception
        sleep: Awaitable sleep (replaced in tests to observe delays)
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    is_retryable: Callable[[BaseException], bool] = _never_retry
    delay_hint: Callable[[BaseException], Optional[float]] = _retry_after_hint
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based), without hints."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "operation") -> T:
        """
        Await operation() under this policy.

        Args:
            operation: Zero-argument coroutine factory; called once per attempt
            description: Label used in retry log lines

        Returns:
            Result of the first successful attempt

        Raises:
            The last exception when it is not retryable or retries are exhausted
        """
        attempt = 0
        while True:
            try:
                result = await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self.is_retryable(e):
                    raise
                if attempt >= self.max_retries:
                    logger.error(f"{description}: giving up after {attempt + 1} attempts ({e})")
                    raise

                delay = self.backoff_delay(attempt)
                hint = self.delay_hint(e)
                if hint is not None:
                    if hint > self.max_delay:
                        logger.error(
                            f"{description}: upstream asks to wait {hint:.0f}s "
                            f"(cap {self.max_delay:.0f}s), not retrying"
                        )
                        raise
                    delay = max(hint, 0.0)

                logger.warning(
                    f"{description} failed ({e}); retrying in {delay:.1f}s "
                    f"(retry {attempt + 1}/{self.max_retries})"
                )
                await self.sleep(delay)
                attempt += 1
                continue

            if attempt > 0:
                logger.info(f"{description} succeeded on attempt {attempt + 1}")
            return result

    def with_predicate(self, is_retryable: Callable[[BaseException], bool]) -> "RetryPolicy":
        """Copy of this policy with a different transient-error classifier."""
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            is_retryable=is_retryable,
            delay_hint=self.delay_hint,
            sleep=self.sleep,
        )
