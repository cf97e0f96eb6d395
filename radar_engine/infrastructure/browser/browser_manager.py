"""
Shared browser lifecycle with a bounded number of concurrent contexts.

One Chromium process is shared by every scrape; each scrape gets its own
isolated context. A counting semaphore caps simultaneous contexts so
memory stays bounded no matter how many monitors run at once.

Example:
    >>> manager = BrowserManager(max_contexts=5)
    >>> lease = await manager.acquire_context()
    >>> try:
    ...     context = await lease.browser.new_context()
    ... finally:
    ...     lease.release()
    >>> await manager.shutdown()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional

from radar_engine.utils.config import BrowserConfig
from radar_engine.utils.exceptions import BrowserCrashError, BrowserManagerClosedError
from radar_engine.utils.logger import format_fields, get_logger
from radar_engine.utils.performance import (
    children_memory_mb,
    process_memory_mb,
    process_private_memory_mb,
)

if TYPE_CHECKING:
    from playwright.async_api import Browser, Playwright

logger = get_logger(__name__)

Launcher = Callable[[], Awaitable["Browser"]]


@dataclass(frozen=True)
class BrowserMetrics:
    """Point-in-time resource snapshot for observability log lines."""

    rss_mb: float
    heap_used_mb: float
    browser_rss_mb: float
    connected: bool
    active_contexts: int
    pending_acquires: int
    max_contexts: int
    launches: int

    def as_log_fields(self) -> str:
        return format_fields(
            rssMB=round(self.rss_mb),
            heapUsedMB=round(self.heap_used_mb),
            browserRssMB=round(self.browser_rss_mb),
            connected=self.connected,
            activeContexts=f"{self.active_contexts}/{self.max_contexts}",
            pending=self.pending_acquires,
        )


class ContextLease:
    """
    A held context slot on the shared browser.

    ``release`` returns the slot and is idempotent: only the first call has
    an effect. The lease can also be used as an async context manager.
    """

    def __init__(self, browser: "Browser", on_release: Callable[[], None]):
        self.browser = browser
        self._on_release = on_release
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Return the slot to the pool. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        self._on_release()

    async def __aenter__(self) -> "ContextLease":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class BrowserManager:
    """
    Owns the shared browser and the context semaphore.

    Attributes:
        max_contexts: Maximum simultaneously leased contexts.
        headless: Run the browser without a window.
        launch_args: Extra Chromium command line flags.
    """

    def __init__(
        self,
        max_contexts: int = 5,
        headless: bool = True,
        launch_args: Optional[List[str]] = None,
        launcher: Optional[Launcher] = None,
        drain_poll_seconds: float = 0.5,
    ):
        """
        Initialize the manager. The browser is launched lazily.

        Args:
            max_contexts: Size of the context semaphore.
            headless: Run browser in headless mode.
            launch_args: Chromium flags (default: BrowserConfig defaults).
            launcher: Coroutine function returning a connected browser.
                Replaces the Playwright launch, mainly for tests.
            drain_poll_seconds: Poll interval while draining on shutdown.
        """
        if max_contexts < 1:
            raise ValueError("max_contexts must be at least 1")

        self.max_contexts = max_contexts
        self.headless = headless
        self.launch_args = launch_args if launch_args is not None else BrowserConfig().launch_args
        self._launcher = launcher or self._launch_playwright
        self._drain_poll_seconds = drain_poll_seconds

        self._semaphore = asyncio.Semaphore(max_contexts)
        self._launch_lock = asyncio.Lock()
        self._browser: Optional["Browser"] = None
        self._playwright: Optional["Playwright"] = None
        self._active = 0
        self._pending = 0
        self._launches = 0
        self._closing = False

    @classmethod
    def from_config(cls, config: BrowserConfig, launcher: Optional[Launcher] = None) -> "BrowserManager":
        """Create a manager from the ``browser`` config section."""
        return cls(
            max_contexts=config.max_contexts,
            headless=config.headless,
            launch_args=list(config.launch_args),
            launcher=launcher,
            drain_poll_seconds=config.drain_poll_seconds,
        )

    # =========================================
    # Launching
    # =========================================

    async def _launch_playwright(self) -> "Browser":
        try:
            from playwright.async_api import async_playwright
        except ImportError:
            raise ImportError(
                "Playwright is not installed. "
                "Run: pip install playwright && playwright install chromium"
            )

        if self._playwright is None:
            self._playwright = await async_playwright().start()

        return await self._playwright.chromium.launch(
            headless=self.headless,
            args=self.launch_args,
        )

    def _on_disconnected(self, browser: Any) -> None:
        # Only forget the browser we are currently holding
        if self._browser is browser:
            logger.warning("Browser disconnected. Will relaunch on next request.")
            self._browser = None

    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def ensure_alive(
        self,
        force_relaunch: bool = False,
        stale: Optional["Browser"] = None,
    ) -> "Browser":
        """
        Return a connected browser, launching one if needed.

        Concurrent callers share one launch. With ``force_relaunch`` the
        browser named by ``stale`` (default: the current one) is closed and
        replaced. If the current browser is already a different, connected
        one, it is returned as is.

        Args:
            force_relaunch: Replace the browser even if it looks connected.
            stale: The browser the failed attempt was using.

        Raises:
            BrowserCrashError: If the launch itself fails.
        """
        if not force_relaunch and self.is_connected():
            return self._browser

        if stale is None:
            stale = self._browser

        async with self._launch_lock:
            if self.is_connected() and (not force_relaunch or self._browser is not stale):
                return self._browser

            if self._browser is not None:
                old, self._browser = self._browser, None
                try:
                    await old.close()
                except Exception as e:
                    logger.debug(f"Ignoring error closing stale browser: {e}")

            logger.info("Launching shared Chromium instance...")
            try:
                browser = await self._launcher()
            except Exception as e:
                raise BrowserCrashError(f"Browser launch failed: {e}") from e

            browser.on("disconnected", self._on_disconnected)
            self._browser = browser
            self._launches += 1
            logger.info(f"Chromium ready (launch #{self._launches})")
            return browser

    # =========================================
    # Context slots
    # =========================================

    async def acquire_context(self) -> ContextLease:
        """
        Wait for a free context slot and return a lease on the browser.

        Raises:
            BrowserManagerClosedError: If shutdown has begun.
            BrowserCrashError: If the browser cannot be launched.
        """
        if self._closing:
            raise BrowserManagerClosedError()

        self._pending += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._pending -= 1

        if self._closing:
            self._semaphore.release()
            raise BrowserManagerClosedError()

        try:
            browser = await self.ensure_alive()
        except BaseException:
            self._semaphore.release()
            raise

        self._active += 1
        return ContextLease(browser, self._release_slot)

    def _release_slot(self) -> None:
        self._active = max(0, self._active - 1)
        self._semaphore.release()

    @property
    def active_contexts(self) -> int:
        return self._active

    @property
    def pending_acquires(self) -> int:
        return self._pending

    # =========================================
    # Metrics & shutdown
    # =========================================

    def get_metrics(self) -> BrowserMetrics:
        """Memory and slot usage of this process and its browser children."""
        return BrowserMetrics(
            rss_mb=round(process_memory_mb(), 1),
            heap_used_mb=round(process_private_memory_mb(), 1),
            browser_rss_mb=round(children_memory_mb(), 1),
            connected=self.is_connected(),
            active_contexts=self._active,
            pending_acquires=self._pending,
            max_contexts=self.max_contexts,
            launches=self._launches,
        )

    async def shutdown(self, timeout: float = 30.0) -> None:
        """
        Stop accepting leases, wait for active ones, then close the browser.

        Args:
            timeout: Seconds to wait for active contexts to drain before
                closing anyway.
        """
        self._closing = True
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while self._active > 0 and loop.time() < deadline:
            logger.info(f"Draining {self._active} active context(s)...")
            await asyncio.sleep(self._drain_poll_seconds)

        if self._active > 0:
            logger.warning(f"Shutdown timeout: closing with {self._active} active context(s)")

        if self._browser is not None:
            logger.info("Shutting down Chromium...")
            browser, self._browser = self._browser, None
            try:
                await browser.close()
            except Exception as e:
                logger.error(f"Error closing browser: {e}")

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.error(f"Error stopping Playwright: {e}")
            finally:
                self._playwright = None

        logger.info("Browser manager shut down")
