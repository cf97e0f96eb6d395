"""
Page diagnosis: decide what kind of page the browser actually landed on.

Signal extraction runs one in-page evaluation; classification is a pure
function over those signals so it can be tested without a browser.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from radar_engine.domain.entities.diagnosis import PageDiagnosis, PageSignals, PageType
from radar_engine.domain.entities.site_config import SiteConfig
from radar_engine.utils.config import DiagnosisConfig, ForensicsConfig
from radar_engine.utils.logger import get_logger, log_event
from radar_engine.utils.validators import sanitize_filename

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)

SCREENSHOT_TIMEOUT_MS = 10000

# Evaluated in the page; returns raw marker/pattern hits and size counters
SIGNALS_SCRIPT = """
(params) => {
    const bodyText = (document.body && document.body.innerText || '').toLowerCase();
    const bodyLength = bodyText.length;
    const has = (selector) => !!document.querySelector(selector);
    const anyIn = (patterns) => patterns.some((p) => bodyText.includes(p.toLowerCase()));

    let visibleElements = 0;
    document.querySelectorAll('*').forEach((el) => {
        const style = window.getComputedStyle(el);
        if (style.display !== 'none' && style.visibility !== 'hidden') {
            visibleElements++;
        }
    });

    return {
        hasRecaptcha: has('.g-recaptcha, #g-recaptcha, iframe[src*="recaptcha"]'),
        hasHcaptcha: has('.h-captcha, iframe[src*="hcaptcha"]'),
        hasCloudflare: has('#cf-wrapper, .cf-browser-verification, #challenge-running, #challenge-form'),
        hasDatadome: has('[data-datadome], iframe[src*="datadome"]'),
        hasLoginForm: has('form[action*="login"], input[name="user_id"], #login_user_id, input[type="password"]'),
        hasLoginText: anyIn(params.loginPatterns),
        hasNoResultsMsg: anyIn(params.noResultsPatterns),
        hasCheckpoint: anyIn(params.checkpointPatterns),
        visibleElements,
        bodyLength,
    };
}
"""


def signals_from_evaluation(raw: Dict[str, Any], thresholds: DiagnosisConfig) -> PageSignals:
    """Build PageSignals from the dict returned by SIGNALS_SCRIPT."""
    body_length = int(raw.get("bodyLength") or 0)
    return PageSignals(
        has_recaptcha=bool(raw.get("hasRecaptcha")),
        has_hcaptcha=bool(raw.get("hasHcaptcha")),
        has_cloudflare=bool(raw.get("hasCloudflare")),
        has_datadome=bool(raw.get("hasDatadome")),
        has_login_form=bool(raw.get("hasLoginForm")),
        has_login_text=bool(raw.get("hasLoginText")),
        has_no_results_msg=bool(raw.get("hasNoResultsMsg")),
        has_search_results=body_length > thresholds.content_body_length,
        has_checkpoint=bool(raw.get("hasCheckpoint")),
        visible_elements=int(raw.get("visibleElements") or 0),
        body_length=body_length,
    )


def classify_page(
    signals: PageSignals,
    final_url: str,
    config: SiteConfig,
    thresholds: Optional[DiagnosisConfig] = None,
) -> PageType:
    """
    Classify a page from its signals. Pure and deterministic.

    Rules are evaluated in a fixed order and the first hit wins, so a login
    wall that also says "no results" is LOGIN_REQUIRED, never NO_RESULTS.

    Args:
        signals: Observations from the page.
        final_url: URL after redirects.
        config: Site config (login URL patterns).
        thresholds: Body/element thresholds (default: DiagnosisConfig()).

    Returns:
        The page type.
    """
    thresholds = thresholds or DiagnosisConfig()

    if signals.has_checkpoint:
        return PageType.CHECKPOINT

    if signals.has_login_text:
        return PageType.LOGIN_REQUIRED
    if signals.has_login_form and any(p in final_url for p in config.login_url_patterns):
        return PageType.LOGIN_REQUIRED

    if signals.has_recaptcha or signals.has_hcaptcha:
        return PageType.CAPTCHA

    if signals.has_cloudflare or signals.has_datadome:
        return PageType.BLOCKED

    if signals.has_no_results_msg:
        return PageType.NO_RESULTS

    if signals.body_length < thresholds.empty_body_length:
        return PageType.EMPTY

    if (
        signals.body_length > thresholds.content_body_length
        or signals.visible_elements > thresholds.content_visible_elements
    ):
        return PageType.CONTENT

    return PageType.UNKNOWN


class PageDiagnoser:
    """
    Extracts page signals, classifies them and collects forensics.

    Attributes:
        thresholds: Classification thresholds.
        forensics: Screenshot settings.
    """

    def __init__(
        self,
        thresholds: Optional[DiagnosisConfig] = None,
        forensics: Optional[ForensicsConfig] = None,
    ):
        self.thresholds = thresholds or DiagnosisConfig()
        self.forensics = forensics or ForensicsConfig()

    async def extract_signals(self, page: "Page", config: SiteConfig) -> PageSignals:
        """Run the single in-page evaluation and return its signals."""
        raw = await page.evaluate(
            SIGNALS_SCRIPT,
            {
                "noResultsPatterns": list(config.no_results_patterns),
                "loginPatterns": list(config.login_patterns),
                "checkpointPatterns": list(config.checkpoint_patterns),
            },
        )
        return signals_from_evaluation(raw or {}, self.thresholds)

    async def diagnose(self, page: "Page", config: SiteConfig, requested_url: str) -> PageDiagnosis:
        """
        Diagnose the page currently loaded.

        Args:
            page: Page after navigation.
            config: Site config.
            requested_url: URL the scrape asked for.

        Returns:
            PageDiagnosis with the classified page type.
        """
        final_url = page.url
        try:
            title = await page.title()
        except Exception:
            title = "[ERROR]"

        signals = await self.extract_signals(page, config)
        page_type = classify_page(signals, final_url, config, self.thresholds)

        logger.debug(
            f"Diagnosed {config.site}: {page_type.value} "
            f"(body={signals.body_length}, visible={signals.visible_elements})"
        )

        return PageDiagnosis(
            page_type=page_type,
            url=requested_url,
            final_url=final_url,
            title=title,
            body_length=signals.body_length,
            signals=signals,
        )

    async def collect_forensics(
        self,
        page: "Page",
        diagnosis: PageDiagnosis,
        monitor_id: str,
    ) -> Optional[str]:
        """
        Save a viewport screenshot of a failed page.

        Never raises; a failed screenshot returns None.

        Returns:
            Screenshot path, or None if disabled or the capture failed.
        """
        screenshot_path: Optional[str] = None

        if self.forensics.enabled:
            directory = Path(self.forensics.directory)
            safe_id = sanitize_filename(monitor_id, max_length=64)
            target = directory / f"engine-{safe_id}-{int(time.time() * 1000)}.png"
            try:
                directory.mkdir(parents=True, exist_ok=True)
                # Viewport only; full-page captures of long result lists can exhaust memory
                await page.screenshot(path=str(target), full_page=False, timeout=SCREENSHOT_TIMEOUT_MS)
                screenshot_path = str(target)
            except Exception as e:
                logger.warning(f"Forensic screenshot failed for monitor {monitor_id}: {e}")

        log_event(
            logger,
            "ENGINE_DIAGNOSIS",
            monitor_id,
            pageType=diagnosis.page_type,
            finalUrl=diagnosis.final_url,
            bodyLength=diagnosis.body_length,
            selector=diagnosis.selector_used,
            screenshot=screenshot_path,
        )

        return screenshot_path
