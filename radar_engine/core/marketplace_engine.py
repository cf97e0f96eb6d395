"""
Marketplace scraping engine.

One engine per site, driven entirely by its SiteConfig. ``scrape`` never
raises: every outcome, including total failure, is an ExtractionResult whose
diagnosis explains why it holds zero ads.

Flow per scrape:
1. Resolve and validate the search URL
2. Take a rate-limit token for the site
3. Run the attempt under the scraping retry policy, with browser-crash
   recovery (relaunch and re-attempt) layered outside the backoff

Flow per attempt (one context slot, always released):
auth context -> anti-detection -> navigate -> render wait -> diagnose ->
container wait -> scroll -> extract -> report session health

Example:
    >>> factory = EngineFactory.from_config(get_config())
    >>> result = await factory.scrape(monitor)
    >>> print(result.diagnosis.page_type, len(result.ads))
    >>> await factory.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Optional, Tuple

from radar_engine.core.page_diagnoser import PageDiagnoser
from radar_engine.core.site_registry import SiteRegistry, load_site_registry
from radar_engine.core.url_builder import resolve_search_url
from radar_engine.domain.entities.diagnosis import PageDiagnosis, PageType
from radar_engine.domain.entities.extraction import (
    AuthContextResult,
    DiagnosisRecord,
    ExtractionMetrics,
    ExtractionResult,
    to_diagnosis_record,
)
from radar_engine.domain.entities.monitor import MonitorWithFilters
from radar_engine.domain.entities.scraped_ad import ScrapedAd
from radar_engine.domain.entities.site_config import SiteConfig
from radar_engine.domain.interfaces.auth_provider_interface import AuthProviderInterface
from radar_engine.domain.interfaces.captcha_interface import CaptchaSolverInterface
from radar_engine.domain.interfaces.session_store_interface import SessionStoreInterface
from radar_engine.infrastructure.auth.auth_strategy import AuthStrategy
from radar_engine.infrastructure.auth.session_pool import SessionPool
from radar_engine.infrastructure.auth.session_store import InMemorySessionStore, JsonFileSessionStore
from radar_engine.infrastructure.browser.anti_detection import apply_anti_detection, apply_jitter
from radar_engine.infrastructure.browser.browser_manager import BrowserManager, Launcher
from radar_engine.infrastructure.captcha.captcha_solver import CaptchaSolver
from radar_engine.infrastructure.scraper.container_waiter import wait_for_container
from radar_engine.infrastructure.scraper.parsers.ad_extractor import AdExtractor
from radar_engine.infrastructure.scraper.rate_limiter import RateLimiter
from radar_engine.infrastructure.scraper.scroller import scroll_page
from radar_engine.utils.config import AppConfig, EngineConfig, get_config
from radar_engine.utils.exceptions import (
    AppException,
    AuthenticationRequiredError,
    BlockedError,
    BrowserCrashError,
    CaptchaError,
    ScraperError,
    TransientScrapeError,
    UnknownSiteError,
    UnsupportedTargetError,
    is_authentication_error,
    is_browser_crash_error,
)
from radar_engine.utils.logger import format_fields, get_logger, log_event
from radar_engine.utils.retry import RetryPolicy, get_preset, retry

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)

# Playwright messages meaning the browser (not just the page) went away
CRASH_MESSAGE_PATTERN = re.compile(
    r"Target closed|Target page, context or browser has been closed|"
    r"Browser has been closed|browser has disconnected|Browser closed|crashed",
    re.IGNORECASE,
)

SUCCESS_AFTER_CAPTCHA = (PageType.CONTENT, PageType.NO_RESULTS)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class MarketplaceEngine:
    """
    Scrapes one site for any number of monitors.

    Attributes:
        config: Site configuration.
        browser_manager: Shared browser and context semaphore.
        rate_limiter: Per-site token buckets.
        auth_strategy: Resolves the browser context for each scrape.
        session_pool: Receives page-type reports for pooled sessions.
        diagnoser: Page classification and forensics.
        captcha_solver: Optional CAPTCHA solver.
    """

    def __init__(
        self,
        config: SiteConfig,
        browser_manager: BrowserManager,
        rate_limiter: RateLimiter,
        auth_strategy: AuthStrategy,
        session_pool: Optional[SessionPool] = None,
        diagnoser: Optional[PageDiagnoser] = None,
        captcha_solver: Optional[CaptchaSolverInterface] = None,
        retry_policy: Optional[RetryPolicy] = None,
        engine_config: Optional[EngineConfig] = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self.config = config
        self.browser_manager = browser_manager
        self.rate_limiter = rate_limiter
        self.auth_strategy = auth_strategy
        self.session_pool = session_pool
        self.diagnoser = diagnoser or PageDiagnoser()
        self.captcha_solver = captcha_solver
        self.retry_policy = retry_policy or get_preset("scraping")
        self.engine_config = engine_config or EngineConfig()
        self.extractor = AdExtractor(config)
        self._sleep = sleep

    @property
    def site(self) -> str:
        return self.config.site

    # =========================================
    # Public API
    # =========================================

    async def scrape(self, monitor: MonitorWithFilters) -> ExtractionResult:
        """
        Scrape a monitor's search page.

        Args:
            monitor: Monitor to run.

        Returns:
            ExtractionResult. Never raises.
        """
        started = time.monotonic()
        retries = 0
        crash_recoveries = 0
        url = monitor.search_url or ""

        try:
            url = resolve_search_url(monitor, self.config)
            if not self.config.supports_url(url):
                raise UnsupportedTargetError(
                    f"URL not supported for {self.site}: {url}", site=self.site, url=url
                )
            await self.rate_limiter.acquire(self.site)
        except ScraperError as e:
            log_event(logger, "ENGINE_FAILED", self.site, logging.WARNING, monitor=monitor.id, error=str(e))
            return error_result(url, e, started)

        def on_retry(error: BaseException, attempt: int) -> None:
            nonlocal retries
            retries += 1
            log_event(logger, "ENGINE_RETRY", self.site, logging.WARNING, attempt=attempt, error=str(error))

        policy = self.retry_policy.with_on_retry(on_retry)

        while True:
            try:
                result = await retry(
                    lambda: self._scrape_once(monitor, url),
                    policy,
                    sleep=self._sleep,
                )
            except Exception as e:
                if is_browser_crash_error(e) and crash_recoveries < self.engine_config.max_crash_retries:
                    crash_recoveries += 1
                    log_event(
                        logger,
                        "ENGINE_CRASH_RECOVERY",
                        self.site,
                        logging.WARNING,
                        retry=f"{crash_recoveries}/{self.engine_config.max_crash_retries}",
                        error=str(e),
                    )
                    try:
                        # Only replace the browser this attempt leased
                        await self.browser_manager.ensure_alive(
                            force_relaunch=True, stale=getattr(e, "browser", None)
                        )
                        continue
                    except Exception as relaunch_error:
                        e = relaunch_error

                metrics = self.browser_manager.get_metrics()
                fields = format_fields(
                    monitor=monitor.id,
                    crashDetected=is_browser_crash_error(e),
                    crashRetries=crash_recoveries,
                    retries=retries,
                    error=str(e),
                )
                logger.error(f"ENGINE_FAILED: {self.site} {fields} {metrics.as_log_fields()}")
                return error_result(url, e, started, retries, crash_recoveries)

            result.metrics.retry_attempts = retries
            result.metrics.crash_recoveries = crash_recoveries
            return result

    async def scrape_with_record(
        self, monitor: MonitorWithFilters
    ) -> Tuple[ExtractionResult, DiagnosisRecord]:
        """Scrape and also return the persistence-ready diagnosis record."""
        result = await self.scrape(monitor)
        return result, to_diagnosis_record(result, self.config.anti_detection.stealth_level)

    # =========================================
    # One attempt
    # =========================================

    async def _scrape_once(self, monitor: MonitorWithFilters, url: str) -> ExtractionResult:
        lease = await self.browser_manager.acquire_context()
        auth: Optional[AuthContextResult] = None

        try:
            auth = await self.auth_strategy.get_auth_context(monitor.user_id, self.config, lease.browser)
            return await self._scrape_page(auth, monitor, url)
        except BrowserCrashError as e:
            if e.browser is None:
                e.browser = lease.browser
            raise
        except AppException:
            raise
        except Exception as e:
            raise self._convert_error(e, url, lease.browser) from e
        finally:
            if auth is not None:
                try:
                    await auth.cleanup()
                except Exception as e:
                    log_event(logger, "ENGINE_CLEANUP_ERROR", self.site, logging.ERROR, error=str(e))
            lease.release()
            logger.info(f"ENGINE_METRICS: {self.site} {self.browser_manager.get_metrics().as_log_fields()}")

    async def _scrape_page(
        self,
        auth: AuthContextResult,
        monitor: MonitorWithFilters,
        url: str,
    ) -> ExtractionResult:
        started = time.monotonic()
        config = self.config
        page = auth.page
        metrics = ExtractionMetrics(authenticated=auth.authenticated, auth_source=auth.source)

        await apply_anti_detection(auth.context, config.anti_detection)

        await page.goto(url, wait_until="domcontentloaded", timeout=config.navigation_timeout_ms)
        log_event(logger, "NAV_FINAL_URL", self.site, requested=url, final=page.url)

        await self._sleep(apply_jitter(config.render_delay_ms) / 1000)
        if config.render_wait_selector:
            try:
                await page.wait_for_selector(
                    config.render_wait_selector,
                    timeout=self.engine_config.render_wait_timeout_ms,
                )
            except Exception as e:
                logger.debug(f"{self.site}: render wait selector not found: {e}")

        diagnosis = await self.diagnoser.diagnose(page, config, url)
        page_type = diagnosis.page_type

        if page_type in (PageType.LOGIN_REQUIRED, PageType.CHECKPOINT):
            await self._report(auth, page_type)
            raise AuthenticationRequiredError(
                f"{self.site} {page_type.value}: {diagnosis.final_url}",
                page_type=page_type.value,
                site=self.site,
                url=url,
            )

        if page_type is PageType.CAPTCHA:
            diagnosis = await self._handle_captcha(auth, page, url)
            page_type = diagnosis.page_type

        if page_type is PageType.NO_RESULTS:
            await self._report(auth, page_type)
            return self._result([], diagnosis, metrics, started)

        if page_type is PageType.BLOCKED:
            await self._report(auth, page_type)
            raise BlockedError(f"{self.site} blocked: {diagnosis.final_url}", site=self.site, url=url)

        if page_type is PageType.EMPTY:
            diagnosis.screenshot_path = await self.diagnoser.collect_forensics(page, diagnosis, monitor.id)
            return self._result([], diagnosis, metrics, started)

        wait = await wait_for_container(page, config.selectors.containers, config.container_timeouts_ms)
        if not wait.success:
            diagnosis.page_type = PageType.UNKNOWN
            diagnosis.screenshot_path = await self.diagnoser.collect_forensics(page, diagnosis, monitor.id)
            return self._result([], diagnosis, metrics, started)

        diagnosis.selector_used = wait.selector
        metrics.selector_used = wait.selector
        metrics.scrolls_done = await scroll_page(page, config.scroll)

        output = await self.extractor.extract(page, wait.selector, monitor)
        metrics.ads_raw = output.ads_raw
        metrics.skipped_reasons = output.skipped_reasons

        await self._report(auth, PageType.CONTENT)

        return self._result(output.ads, diagnosis, metrics, started)

    async def _handle_captcha(self, auth: AuthContextResult, page: "Page", url: str) -> PageDiagnosis:
        """Solve, settle and re-diagnose. Returns the new diagnosis or raises."""
        if self.captcha_solver is None or not self.captcha_solver.is_enabled():
            await self._report(auth, PageType.CAPTCHA)
            raise CaptchaError(
                "Captcha present but no solver configured",
                reason="CAPTCHA_DETECTED",
                site=self.site,
                url=url,
            )

        solved = await self.captcha_solver.auto_solve(page)
        if not solved.success:
            await self._report(auth, PageType.CAPTCHA)
            raise CaptchaError(f"Captcha not solved: {solved.error}", site=self.site, url=url)

        await self._sleep(self.engine_config.captcha_settle_ms / 1000)
        diagnosis = await self.diagnoser.diagnose(page, self.config, url)
        if diagnosis.page_type not in SUCCESS_AFTER_CAPTCHA:
            await self._report(auth, PageType.CAPTCHA)
            raise CaptchaError(
                f"Captcha solved but page still {diagnosis.page_type.value}",
                reason="CAPTCHA_PERSISTS",
                site=self.site,
                url=url,
            )
        return diagnosis

    async def _report(self, auth: AuthContextResult, page_type: PageType) -> None:
        if self.session_pool is None or not auth.session_id:
            return
        try:
            await self.session_pool.report_result(auth.session_id, page_type)
        except Exception as e:
            logger.error(f"ENGINE_SESSION_REPORT_ERROR: {self.site} {auth.session_id}: {e}")

    # =========================================
    # Results & errors
    # =========================================

    def _convert_error(self, error: Exception, url: str, browser: object = None) -> ScraperError:
        """Tag a raw Playwright error as a browser crash or a transient failure."""
        message = str(error) or error.__class__.__name__
        if not self.browser_manager.is_connected() or CRASH_MESSAGE_PATTERN.search(message):
            return BrowserCrashError(message, browser=browser, site=self.site, url=url)
        return TransientScrapeError(message, site=self.site, url=url)

    def _result(
        self,
        ads: List[ScrapedAd],
        diagnosis: PageDiagnosis,
        metrics: ExtractionMetrics,
        started: float,
    ) -> ExtractionResult:
        metrics.ads_valid = len(ads)
        metrics.duration_ms = _elapsed_ms(started)
        log_event(
            logger,
            "ENGINE_SUCCESS",
            self.site,
            pageType=diagnosis.page_type,
            ads=len(ads),
            raw=metrics.ads_raw,
            selector=metrics.selector_used,
            auth=metrics.authenticated,
            authSource=metrics.auth_source,
            skipped=metrics.skipped_reasons,
            scrolls=metrics.scrolls_done,
            screenshot=diagnosis.screenshot_path,
            durationMs=metrics.duration_ms,
        )
        return ExtractionResult(ads=ads, diagnosis=diagnosis, metrics=metrics)


def error_result(
    url: str,
    error: BaseException,
    started: float,
    retries: int = 0,
    crash_recoveries: int = 0,
) -> ExtractionResult:
    """Build the zero-ad result for a failed scrape.

    Authentication failures map to LOGIN_REQUIRED, everything else to UNKNOWN.
    """
    page_type = PageType.LOGIN_REQUIRED if is_authentication_error(error) else PageType.UNKNOWN
    return ExtractionResult(
        ads=[],
        diagnosis=PageDiagnosis.for_error(url, page_type),
        metrics=ExtractionMetrics(
            duration_ms=_elapsed_ms(started),
            skipped_reasons={"error": 1},
            retry_attempts=retries,
            crash_recoveries=crash_recoveries,
            error=str(error) or error.__class__.__name__,
        ),
    )


class EngineFactory:
    """
    Shared services plus one cached engine per site.

    Every engine created here shares the browser manager, rate limiter,
    session pool and auth strategy, so limits and resources are global
    across sites.
    """

    def __init__(
        self,
        registry: SiteRegistry,
        browser_manager: BrowserManager,
        rate_limiter: RateLimiter,
        auth_strategy: AuthStrategy,
        session_pool: Optional[SessionPool] = None,
        diagnoser: Optional[PageDiagnoser] = None,
        captcha_solver: Optional[CaptchaSolverInterface] = None,
        retry_policy: Optional[RetryPolicy] = None,
        engine_config: Optional[EngineConfig] = None,
        drain_timeout_seconds: float = 30.0,
    ):
        self.registry = registry
        self.browser_manager = browser_manager
        self.rate_limiter = rate_limiter
        self.auth_strategy = auth_strategy
        self.session_pool = session_pool
        self.diagnoser = diagnoser or PageDiagnoser()
        self.captcha_solver = captcha_solver
        self.retry_policy = retry_policy
        self.engine_config = engine_config
        self.drain_timeout_seconds = drain_timeout_seconds
        self._engines: Dict[str, MarketplaceEngine] = {}

        for site in registry.sites:
            rate_limiter.register_site(registry.get(site))

    @classmethod
    def from_config(
        cls,
        config: Optional[AppConfig] = None,
        launcher: Optional[Launcher] = None,
        session_store: Optional[SessionStoreInterface] = None,
        providers: Optional[Dict[str, AuthProviderInterface]] = None,
    ) -> "EngineFactory":
        """
        Wire every service from the application config.

        Args:
            config: Application config (default: get_config()).
            launcher: Browser launcher override, mainly for tests.
            session_store: Session store (default: JSON file when
                ``sessions_file`` is configured, else in-memory).
            providers: Custom auth providers by name.
        """
        config = config or get_config()
        registry = load_site_registry(config.resolve_path(config.sites_file))

        if session_store is None:
            if config.sessions_file:
                session_store = JsonFileSessionStore(config.resolve_path(config.sessions_file))
            else:
                session_store = InMemorySessionStore()
        session_pool = SessionPool(session_store)

        forensics = config.forensics.model_copy(
            update={"directory": str(config.resolve_path(config.forensics.directory))}
        )

        return cls(
            registry=registry,
            browser_manager=BrowserManager.from_config(config.browser, launcher=launcher),
            rate_limiter=RateLimiter(max_wait_seconds=config.rate_limiter.max_wait_seconds),
            auth_strategy=AuthStrategy(session_pool=session_pool, providers=providers),
            session_pool=session_pool,
            diagnoser=PageDiagnoser(thresholds=config.diagnosis, forensics=forensics),
            captcha_solver=CaptchaSolver.from_config(config.captcha),
            retry_policy=RetryPolicy(
                max_attempts=config.retry.max_attempts,
                initial_delay=config.retry.initial_delay,
                max_delay=config.retry.max_delay,
                backoff_factor=config.retry.backoff_factor,
            ),
            engine_config=config.engine,
            drain_timeout_seconds=config.browser.drain_timeout_seconds,
        )

    def create_engine(self, site: str) -> MarketplaceEngine:
        """
        Return the engine for ``site``, creating it on first use.

        Raises:
            UnknownSiteError: If the site has no registered config.
        """
        config = self.registry.get(site)
        engine = self._engines.get(config.site)
        if engine is None:
            engine = MarketplaceEngine(
                config,
                browser_manager=self.browser_manager,
                rate_limiter=self.rate_limiter,
                auth_strategy=self.auth_strategy,
                session_pool=self.session_pool,
                diagnoser=self.diagnoser,
                captcha_solver=self.captcha_solver,
                retry_policy=self.retry_policy,
                engine_config=self.engine_config,
            )
            self._engines[config.site] = engine
        return engine

    async def scrape(self, monitor: MonitorWithFilters) -> ExtractionResult:
        """Scrape with the monitor's site engine.

        A monitor for an unregistered site gets an UNKNOWN error result.
        """
        started = time.monotonic()
        try:
            engine = self.create_engine(monitor.site)
        except UnknownSiteError as e:
            log_event(logger, "ENGINE_FAILED", monitor.site, logging.WARNING, monitor=monitor.id, error=str(e))
            return error_result(monitor.search_url or "", e, started)
        return await engine.scrape(monitor)

    async def shutdown(self) -> None:
        await self.browser_manager.shutdown(timeout=self.drain_timeout_seconds)
