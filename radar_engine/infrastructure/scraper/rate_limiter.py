"""
Per-site token bucket rate limiter.

Each site key owns a bucket that starts full, refills lazily in whole
intervals and never holds more than ``max_tokens``. ``acquire`` consumes one
token or suspends until the next refill.

Example:
    >>> limiter = RateLimiter()
    >>> limiter.register("OLX", RateLimitSettings(tokens_per_interval=15, max_tokens=30))
    >>> await limiter.acquire("OLX")  # returns at once while tokens remain
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from radar_engine.domain.entities.site_config import RateLimitSettings, SiteConfig
from radar_engine.utils.exceptions import RateLimitError
from radar_engine.utils.logger import get_logger

logger = get_logger(__name__)

MIN_WAIT_SECONDS = 0.1

DEFAULT_SETTINGS = RateLimitSettings(tokens_per_interval=10, interval_seconds=60.0, max_tokens=20)


@dataclass
class TokenBucket:
    """
    Token state for one site.

    Attributes:
        tokens: Tokens currently available.
        last_refill: Clock reading of the last refill.
        settings: Refill parameters.
    """
    tokens: float
    last_refill: float
    settings: RateLimitSettings


@dataclass(frozen=True)
class BucketStatus:
    """Snapshot returned by :meth:`RateLimiter.get_status`."""

    tokens: float
    max_tokens: int
    tokens_per_interval: int
    interval_seconds: float


class RateLimiter:
    """
    Token bucket rate limiter keyed by site.

    Sites are registered explicitly or from a SiteConfig; an unregistered
    site gets the default settings on first use.

    Attributes:
        max_wait_seconds: Optional ceiling on a single ``acquire``; when
            exceeded a RateLimitError is raised instead of waiting forever.
    """

    def __init__(
        self,
        max_wait_seconds: Optional[float] = None,
        default_settings: RateLimitSettings = DEFAULT_SETTINGS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        """
        Initialize the rate limiter.

        Args:
            max_wait_seconds: Give up after this long (None waits forever).
            default_settings: Settings for sites never registered.
            clock: Monotonic clock in seconds.
            sleep: Awaitable sleep used while waiting for a refill.
        """
        self.max_wait_seconds = max_wait_seconds
        self.default_settings = default_settings
        self._clock = clock
        self._sleep = sleep
        self._settings: Dict[str, RateLimitSettings] = {}
        self._buckets: Dict[str, TokenBucket] = {}

    def register(self, site: str, settings: RateLimitSettings) -> None:
        """Set (or replace) the bucket settings for a site."""
        self._settings[site] = settings
        self._buckets.pop(site, None)
        logger.debug(
            f"Rate limit for {site}: {settings.tokens_per_interval} per "
            f"{settings.interval_seconds:.0f}s, max {settings.max_tokens}"
        )

    def register_site(self, config: SiteConfig) -> None:
        """Register a site from its SiteConfig."""
        self.register(config.site, config.rate_limit)

    def _get_bucket(self, site: str) -> TokenBucket:
        bucket = self._buckets.get(site)
        if bucket is None:
            settings = self._settings.get(site, self.default_settings)
            bucket = TokenBucket(
                tokens=settings.max_tokens,
                last_refill=self._clock(),
                settings=settings,
            )
            self._buckets[site] = bucket
        return bucket

    def _refill(self, bucket: TokenBucket) -> None:
        """Add tokens for every whole interval elapsed since the last refill."""
        now = self._clock()
        elapsed = now - bucket.last_refill
        interval = bucket.settings.interval_seconds

        if elapsed >= interval:
            intervals = int(elapsed // interval)
            bucket.tokens = min(
                bucket.tokens + intervals * bucket.settings.tokens_per_interval,
                bucket.settings.max_tokens,
            )
            bucket.last_refill = now

    async def acquire(self, site: str) -> None:
        """
        Consume one token for ``site``, waiting for a refill if needed.

        Raises:
            RateLimitError: If ``max_wait_seconds`` is set and exceeded.
        """
        bucket = self._get_bucket(site)
        started = self._clock()

        while True:
            self._refill(bucket)

            if bucket.tokens >= 1:
                bucket.tokens -= 1
                logger.debug(f"Rate limit OK for {site} ({bucket.tokens:.0f} tokens remaining)")
                return

            time_until_refill = bucket.settings.interval_seconds - (self._clock() - bucket.last_refill)
            wait_time = max(MIN_WAIT_SECONDS, time_until_refill)

            if self.max_wait_seconds is not None:
                waited = self._clock() - started
                if waited + wait_time > self.max_wait_seconds:
                    raise RateLimitError(
                        f"Rate limit for {site} not available within {self.max_wait_seconds:.0f}s",
                        retry_after=wait_time,
                        site=site,
                    )

            logger.info(f"Rate limit reached for {site}. Waiting {wait_time:.1f}s...")
            await self._sleep(wait_time)

    def can_acquire(self, site: str) -> bool:
        """Check whether a token is available without consuming it."""
        bucket = self._get_bucket(site)
        self._refill(bucket)
        return bucket.tokens >= 1

    def get_status(self, site: str) -> Optional[BucketStatus]:
        """Current bucket state, or None if the site was never used."""
        bucket = self._buckets.get(site)
        if bucket is None:
            return None

        self._refill(bucket)
        return BucketStatus(
            tokens=bucket.tokens,
            max_tokens=bucket.settings.max_tokens,
            tokens_per_interval=bucket.settings.tokens_per_interval,
            interval_seconds=bucket.settings.interval_seconds,
        )

    def reset(self, site: str) -> None:
        """Drop a site's bucket; the next use starts full."""
        self._buckets.pop(site, None)

    def reset_all(self) -> None:
        """Drop every bucket."""
        self._buckets.clear()
