"""Retry policy for AI invocations with exponential backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from character_enrichment.config import settings
from character_enrichment.exceptions import AIInvocationError, OperationCancelledError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Central retry policy shared by single and batch enrichment.

    Only retryable classifications (transient_network, rate_limited) are
    retried. max_attempts counts every call, the first one included.

    Attributes:
        max_attempts: Total calls allowed per unit
        base_delay: Delay before the second call, doubled for each further call
        max_delay: Upper bound for a single backoff delay
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must be >= 0")

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        """Build the policy from RETRY_* settings."""
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given failed attempt (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        on_attempt: Callable[[int], None] | None = None,
        should_continue: Callable[[], bool] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T:
        """Run an operation under this policy.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            on_attempt: Called with the attempt number right before each call
            should_continue: Checked before and after every backoff sleep; False stops the loop
            sleep: Awaitable sleep, replaced in tests

        Returns:
            Result of the first successful call

        Raises:
            AIInvocationError: non-retryable error, or the last error once attempts run out
            OperationCancelledError: should_continue returned False between attempts
        """
        attempt = 0
        while True:
            attempt += 1
            if on_attempt:
                on_attempt(attempt)
            try:
                return await operation()
            except AIInvocationError as e:
                if not e.retryable:
                    raise
                if attempt >= self.max_attempts:
                    logger.warning(f"Giving up after {attempt} attempts: {e.describe()}")
                    raise

                if should_continue is not None and not should_continue():
                    raise OperationCancelledError(f"Cancelled after {attempt} attempts") from e

                delay = self.delay_for(attempt)
                logger.warning(
                    f"Retryable error on attempt {attempt}/{self.max_attempts}: {e.describe()}. "
                    f"Retrying in {delay}s..."
                )
                await sleep(delay)

                if should_continue is not None and not should_continue():
                    raise OperationCancelledError(f"Cancelled after {attempt} attempts") from e
