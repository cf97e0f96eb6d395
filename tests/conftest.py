"""Pytest fixtures and fake Playwright objects for radar-engine tests."""

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from radar_engine.core.page_diagnoser import SIGNALS_SCRIPT
from radar_engine.domain.entities.monitor import MonitorWithFilters
from radar_engine.domain.entities.site_config import (
    AntiDetectionSettings,
    ExternalIdRule,
    ScrollSettings,
    SelectorSet,
    SiteConfig,
)
from radar_engine.infrastructure.scraper.scroller import COUNT_ITEMS_SCRIPT
from radar_engine.utils.config import reset_config


# ============================================
# Fake Playwright objects
# ============================================


class FakeTimeoutError(Exception):
    """Stands in for playwright's TimeoutError."""


def make_signals(body_length: int = 8000, visible: int = 120, **flags: bool) -> Dict[str, Any]:
    """Raw SIGNALS_SCRIPT output; flags use the script's camelCase keys."""
    raw = {
        "hasRecaptcha": False,
        "hasHcaptcha": False,
        "hasCloudflare": False,
        "hasDatadome": False,
        "hasLoginForm": False,
        "hasLoginText": False,
        "hasNoResultsMsg": False,
        "hasCheckpoint": False,
        "visibleElements": visible,
        "bodyLength": body_length,
    }
    raw.update(flags)
    return raw


class FakeLocator:
    def __init__(self, items: List[str]):
        self.items = items

    async def count(self) -> int:
        return len(self.items)

    async def evaluate_all(self, script: str) -> List[str]:
        return list(self.items)


class FakePage:
    """
    Scriptable page.

    Args:
        containers: Selector -> outer HTML of each matching element.
        signals: Successive SIGNALS_SCRIPT results; the last one repeats.
        final_url: URL after "redirects" (default: the requested URL).
        goto_errors: Errors raised by successive goto calls (None = succeed).
    """

    def __init__(
        self,
        containers: Optional[Dict[str, List[str]]] = None,
        signals: Optional[List[Dict[str, Any]]] = None,
        final_url: Optional[str] = None,
        goto_errors: Optional[List[Optional[Exception]]] = None,
        title: str = "Resultados",
        item_count: int = 0,
    ):
        self.containers = dict(containers or {})
        self.signals = list(signals or [make_signals()])
        self.final_url = final_url
        self.goto_errors = list(goto_errors or [])
        self._title = title
        self.item_count = item_count
        self.url = "about:blank"
        self.goto_calls: List[Dict[str, Any]] = []
        self.evaluations: List[Any] = []
        self.screenshots: List[Dict[str, Any]] = []
        self.closed = False

    async def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[int] = None) -> None:
        self.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})
        if self.goto_errors:
            error = self.goto_errors.pop(0)
            if error is not None:
                raise error
        self.url = self.final_url or url

    async def title(self) -> str:
        return self._title

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluations.append((script, arg))
        if script == SIGNALS_SCRIPT:
            return self.signals.pop(0) if len(self.signals) > 1 else self.signals[0]
        if script == COUNT_ITEMS_SCRIPT:
            return self.item_count
        return None

    async def wait_for_selector(self, selector: str, timeout: Optional[int] = None, state: Optional[str] = None) -> None:
        if not self.containers.get(selector):
            raise FakeTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self.containers.get(selector, []))

    async def screenshot(self, path: Optional[str] = None, full_page: bool = True, timeout: Optional[int] = None) -> None:
        self.screenshots.append({"path": path, "full_page": full_page, "timeout": timeout})

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, page: FakePage, options: Dict[str, Any]):
        self.page = page
        self.options = options
        self.routes: List[str] = []
        self.init_scripts: List[str] = []
        self.headers: Dict[str, str] = {}
        self.closed = False

    async def new_page(self) -> FakePage:
        return self.page

    async def route(self, pattern: str, handler: Callable) -> None:
        self.routes.append(pattern)

    async def add_init_script(self, script: str) -> None:
        self.init_scripts.append(script)

    async def set_extra_http_headers(self, headers: Dict[str, str]) -> None:
        self.headers.update(headers)

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, page_factory: Callable[[], FakePage]):
        self._page_factory = page_factory
        self.contexts: List[FakeContext] = []
        self.handlers: Dict[str, List[Callable]] = {}
        self.connected = True
        self.closed = False

    def is_connected(self) -> bool:
        return self.connected

    def on(self, event: str, handler: Callable) -> None:
        self.handlers.setdefault(event, []).append(handler)

    async def new_context(self, **options: Any) -> FakeContext:
        context = FakeContext(self._page_factory(), options)
        self.contexts.append(context)
        return context

    async def close(self) -> None:
        self.closed = True
        self.connected = False

    def disconnect(self) -> None:
        """Simulate the browser process dying."""
        self.connected = False
        for handler in self.handlers.get("disconnected", []):
            handler(self)


class FakeLauncher:
    """Browser launcher returning a new FakeBrowser per launch."""

    def __init__(self, page: Optional[FakePage] = None, failures: int = 0):
        self.page = page or FakePage()
        self.failures = failures
        self.browsers: List[FakeBrowser] = []

    async def __call__(self) -> FakeBrowser:
        # Real launches suspend; yield so concurrent callers interleave
        await asyncio.sleep(0)
        if self.failures:
            self.failures -= 1
            raise RuntimeError("Failed to launch chromium")
        browser = FakeBrowser(lambda: self.page)
        self.browsers.append(browser)
        return browser

    @property
    def launches(self) -> int:
        return len(self.browsers)


class SleepRecorder:
    """Awaitable sleep replacement that records delays instead of waiting."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def card_html(
    ad_id: str,
    title: str = "Honda Civic 2018",
    price: str = "R$ 85.000",
    location: str = "Campinas - SP",
    href: Optional[str] = None,
) -> str:
    """Outer HTML of an OLX-style listing card."""
    href = href if href is not None else f"/autos/honda-civic-{ad_id}"
    return (
        f'<li class="card"><a href="{href}">'
        f"<h2>{title}</h2>"
        f'<span class="price">{price}</span>'
        f'<span class="location">{location}</span>'
        f'<img data-src="https://img.olx.com.br/{ad_id}.jpg"/>'
        f"</a></li>"
    )


# ============================================
# Fixtures
# ============================================


@pytest.fixture(autouse=True)
def reset_app_config():
    """Reset the cached application config between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fake_page_cls():
    return FakePage


@pytest.fixture
def fake_launcher_cls():
    return FakeLauncher


@pytest.fixture
def fake_browser_cls():
    return FakeBrowser


@pytest.fixture
def fake_browser() -> FakeBrowser:
    """Connected browser whose contexts each get a fresh page."""
    return FakeBrowser(FakePage)


@pytest.fixture
def signals():
    """Factory for raw page signal dicts."""
    return make_signals


@pytest.fixture
def card():
    """Factory for listing card HTML."""
    return card_html


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def olx_config() -> SiteConfig:
    """OLX-like anonymous site with zero delays."""
    return SiteConfig(
        site="OLX",
        domain="olx.com.br",
        auth_mode="anonymous",
        selectors=SelectorSet(
            containers=["li.card", "div.fallback-card"],
            title=["h2"],
            price=[".price"],
            link=["a"],
            location=[".location"],
        ),
        container_timeouts_ms=[50],
        navigation_timeout_ms=30000,
        render_delay_ms=0,
        scroll=ScrollSettings(strategy="fixed", fixed_steps=2, delay_between_scrolls_ms=0),
        anti_detection=AntiDetectionSettings(stealth_level="minimal"),
        external_id=ExternalIdRule(mode="group", patterns=[r"-(\d+)$"], prefix="OLX-"),
        base_url="https://www.olx.com.br",
        no_results_patterns=["nenhum resultado"],
        login_patterns=["faça login"],
        default_search_url="https://www.olx.com.br/",
    )


@pytest.fixture
def facebook_config() -> SiteConfig:
    """Facebook-like site that requires cookies."""
    return SiteConfig(
        site="FACEBOOK_MARKETPLACE",
        domain="facebook.com",
        auth_mode="cookies_required",
        selectors=SelectorSet(
            containers=['a[href*="/marketplace/item/"]'],
            title=['span[dir="auto"]'],
            price=['span[dir="auto"]'],
            link=['a[href*="/marketplace/item/"]'],
        ),
        container_timeouts_ms=[50],
        render_delay_ms=0,
        render_wait_selector='a[href*="/marketplace/item/"]',
        scroll=ScrollSettings(strategy="adaptive", max_scroll_attempts=3, stable_threshold=1, delay_between_scrolls_ms=0),
        anti_detection=AntiDetectionSettings(
            stealth_level="aggressive",
            block_media=True,
            inject_stealth_scripts=True,
            randomize_viewport=True,
        ),
        supported_url_patterns=[r"facebook\.com/marketplace", r"facebook\.com/groups/.*/buy_sell"],
        external_id=ExternalIdRule(mode="group", patterns=[r"/marketplace/item/(\d+)"], prefix="FB-"),
        base_url="https://www.facebook.com",
        login_patterns=["log in to continue"],
        checkpoint_patterns=["checkpoint", "confirm your identity"],
    )


@pytest.fixture
def monitor() -> MonitorWithFilters:
    return MonitorWithFilters(
        id="mon-1",
        user_id="user-1",
        name="Civic",
        site="OLX",
        search_url="https://www.olx.com.br/autos-e-pecas/carros?q=civic",
    )


@pytest.fixture
def facebook_monitor() -> MonitorWithFilters:
    return MonitorWithFilters(
        id="mon-fb",
        user_id="user-1",
        name="Bikes",
        site="FACEBOOK_MARKETPLACE",
        search_url="https://www.facebook.com/marketplace/campinas/search/?query=bike",
    )


@pytest.fixture
def forensics_dir(tmp_path: Path) -> Path:
    return tmp_path / "forensics"
