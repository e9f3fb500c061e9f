"""Retry with exponential backoff for async operations.

Model initialization, single-shot detection and the real-time loop all retry
transient failures. They share this combinator and differ only in their
policy and in whether a failure should trigger a model reinitialization
before the next attempt.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from faceverify.core.exceptions import RetryExhaustedError
from faceverify.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and delay schedule.

    Attributes:
        max_attempts: Total attempts including the first one
        initial_delay: Seconds to wait before the second attempt
        multiplier: Factor applied to the delay after each failed attempt
    """

    max_attempts: int
    initial_delay: float = 0.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Get the delay after the given failed attempt (1-based)."""
        return self.initial_delay * (self.multiplier ** (attempt - 1))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    description: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    give_up_on: Tuple[Type[BaseException], ...] = (),
    should_reinitialize: Optional[Callable[[BaseException], bool]] = None,
    reinitialize: Optional[Callable[[], Awaitable[None]]] = None,
) -> T:
    """Run an async operation until it succeeds or the policy is exhausted.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        policy: Attempt budget and delay schedule
        description: Name used in logs and in the exhaustion error
        retry_on: Exception types that count as retryable failures
        give_up_on: Exception types that are re-raised immediately
        should_reinitialize: Predicate deciding whether a failure needs
            ``reinitialize`` to run before the next attempt
        reinitialize: Coroutine factory that restores the failed resource

    Returns:
        The operation's result

    Raises:
        RetryExhaustedError: If every attempt failed; ``last_error`` holds
            the final failure
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except give_up_on:
            raise
        except retry_on as e:
            last_error = e
            if attempt >= policy.max_attempts:
                logger.error(
                    "Retry budget exhausted",
                    operation=description,
                    attempts=attempt,
                    error=str(e),
                )
                break

            delay = policy.delay_for(attempt)
            logger.warning(
                "Attempt failed, retrying",
                operation=description,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay=delay,
                error=str(e),
            )
            if reinitialize is not None and should_reinitialize is not None and should_reinitialize(e):
                logger.info("Reinitializing before retry", operation=description)
                await reinitialize()
            if delay > 0:
                await asyncio.sleep(delay)

    raise RetryExhaustedError(description, policy.max_attempts, last_error) from last_error
