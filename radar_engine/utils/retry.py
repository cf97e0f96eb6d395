"""Retry with exponential backoff for async operations.

Errors are classified before every retry: a ScraperError whose kind is not
retryable (authentication, browser crash, unsupported target) is re-raised
immediately so the caller's own recovery path handles it. Anything else is
retried until the policy's attempts are exhausted.
"""

import asyncio
import re
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from radar_engine.utils.exceptions import ScraperError
from radar_engine.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

OnRetry = Callable[[BaseException, int], None]
Sleep = Callable[[float], Awaitable[Any]]

TRANSIENT_ERROR_CODES = frozenset({
    "ECONNRESET",
    "ECONNREFUSED",
    "ETIMEDOUT",
    "EPIPE",
    "ENOTFOUND",
    "EAI_AGAIN",
    "ECONNABORTED",
})
TRANSIENT_MESSAGE_PATTERN = re.compile(r"net::|timeout|timed out|ERR_|socket hang up", re.IGNORECASE)
RETRYABLE_STATUSES = frozenset({408, 429})


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters for :func:`retry`.

    Delays are in seconds. ``on_retry`` is called with the error and the
    attempt number that just failed, before sleeping.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    on_retry: Optional[OnRetry] = None

    def with_on_retry(self, on_retry: Optional[OnRetry]) -> "RetryPolicy":
        return replace(self, on_retry=on_retry)


RETRY_PRESETS: Dict[str, RetryPolicy] = {
    "quick": RetryPolicy(max_attempts=3, initial_delay=0.5, max_delay=5.0, backoff_factor=2.0),
    "standard": RetryPolicy(max_attempts=5, initial_delay=1.0, max_delay=15.0, backoff_factor=2.0),
    "aggressive": RetryPolicy(max_attempts=10, initial_delay=2.0, max_delay=60.0, backoff_factor=2.5),
    "scraping": RetryPolicy(max_attempts=7, initial_delay=3.0, max_delay=30.0, backoff_factor=2.0),
}


@dataclass
class RetryOutcome(Generic[T]):
    """Result of :func:`retry_with_result`."""

    success: bool
    result: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0


def get_preset(name: str) -> RetryPolicy:
    """Look up a named preset.

    Raises:
        KeyError: If the preset does not exist
    """
    return RETRY_PRESETS[name]


def is_retryable(error: BaseException) -> bool:
    """Whether the generic backoff may retry this error.

    Tagged errors answer for themselves; untagged errors are retried.
    """
    if isinstance(error, ScraperError):
        return error.retryable
    return True


def is_transient_error(error: BaseException) -> bool:
    """Detect network-level transience.

    Checks, in order: an ``errno``-style ``code`` attribute, keywords in the
    message (``net::``, ``timeout``, ``ERR_``), and an HTTP ``status`` of 408,
    429 or any 5xx.
    """
    code = getattr(error, "code", None)
    if isinstance(code, str) and code.upper() in TRANSIENT_ERROR_CODES:
        return True

    if isinstance(error, (asyncio.TimeoutError, ConnectionError)):
        return True

    if TRANSIENT_MESSAGE_PATTERN.search(str(error)):
        return True

    status = getattr(error, "status", None)
    if isinstance(status, int):
        return status >= 500 or status in RETRYABLE_STATUSES

    return False


async def _run(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Sleep,
) -> T:
    delay = policy.initial_delay

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e):
                logger.debug(f"Non-retryable error on attempt {attempt}: {e}")
                raise

            if attempt >= policy.max_attempts:
                logger.error(f"Failed after {policy.max_attempts} attempts: {e}")
                raise

            current_delay = min(delay, policy.max_delay)
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed: {e}. "
                f"Retrying in {current_delay:.1f}s..."
            )

            if policy.on_retry is not None:
                policy.on_retry(e, attempt)

            await sleep(current_delay)
            delay *= policy.backoff_factor

    # max_attempts >= 1 always returns or raises above
    raise RuntimeError("retry loop exited without result")


async def retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``operation`` with exponential backoff.

    Args:
        operation: Zero-argument coroutine function
        policy: Backoff parameters (default: 3 attempts, 1s initial)
        sleep: Awaitable sleep used between attempts

    Returns:
        The operation's result

    Raises:
        The last error once attempts are exhausted, or the first
        non-retryable error immediately.

    Example:
        >>> ads = await retry(lambda: scrape_once(url), get_preset("scraping"))
    """
    return await _run(operation, policy or RetryPolicy(), sleep)


async def retry_with_result(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep,
) -> RetryOutcome[T]:
    """Like :func:`retry`, but report the outcome instead of raising."""
    policy = policy or RetryPolicy()
    attempts = 0

    async def counted() -> T:
        nonlocal attempts
        attempts += 1
        return await operation()

    try:
        result = await _run(counted, policy, sleep)
    except Exception as e:
        return RetryOutcome(success=False, error=e, attempts=attempts)
    return RetryOutcome(success=True, result=result, attempts=attempts)
