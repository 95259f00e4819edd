"""Uniform retry/timeout policy for calls to remote AI providers."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# One call plus exactly one retry
MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry settings shared by transcription, reasoning and synthesis.

    Every call gets MAX_ATTEMPTS attempts; only the timing is configurable.

    Attributes:
        delay_ms: Fixed wait between attempts
        timeout_ms: Bound applied to each attempt individually
    """
    delay_ms: int = 1000
    timeout_ms: int = 10000

    def __post_init__(self):
        if self.delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")


class RemoteCallError(Exception):
    """Raised when every attempt of a remote call failed."""

    def __init__(
        self,
        label: str,
        attempts: int,
        last_error: Optional[BaseException],
        timed_out: bool
    ):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        self.timed_out = timed_out
        super().__init__(f"{label} failed after {attempts} attempts: {last_error!r}")


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str
) -> T:
    """
    Run an async operation under the retry policy.

    Every failure is treated the same way: a timeout, a transport error and a
    malformed response all cost one attempt, followed by the fixed delay.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        policy: Delay and per-attempt timeout
        label: Name of the call for logs and errors

    Returns:
        Result of the first successful attempt

    Raises:
        RemoteCallError: If all attempts failed
    """
    last_error: Optional[BaseException] = None
    timeouts = 0

    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            return await asyncio.wait_for(operation(), timeout=policy.timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            timeouts += 1
            last_error = e
            logger.warning(
                f"{label} attempt {attempt}/{MAX_ATTEMPTS} timed out after {policy.timeout_ms}ms"
            )
        except Exception as e:
            last_error = e
            logger.warning(f"{label} attempt {attempt}/{MAX_ATTEMPTS} failed: {e}")

        if attempt < MAX_ATTEMPTS:
            await asyncio.sleep(policy.delay_ms / 1000)

    raise RemoteCallError(
        label=label,
        attempts=MAX_ATTEMPTS,
        last_error=last_error,
        timed_out=timeouts == MAX_ATTEMPTS
    )
