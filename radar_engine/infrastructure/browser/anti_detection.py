"""
Anti-detection measures applied to each browser context.

Handles:
- Resource blocking (images, fonts, CSS, media) to cut bandwidth
- Stealth init scripts graded by the site's stealth level
- User-Agent and viewport rotation
- Jittered delays so timing does not look scripted
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Dict, List

from radar_engine.domain.entities.site_config import AntiDetectionSettings
from radar_engine.utils.logger import get_logger

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Route

logger = get_logger(__name__)


# ============================================
# Constants
# ============================================

# Realistic User-Agent strings (rotate to avoid detection)
USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    # Chrome on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    # Firefox on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    # Safari on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
]

VIEWPORTS = [
    {"width": 1920, "height": 1080},
    {"width": 1366, "height": 768},
    {"width": 1536, "height": 864},
    {"width": 1440, "height": 900},
    {"width": 1680, "height": 1050},
    {"width": 1280, "height": 720},
]

DEFAULT_VIEWPORT = {"width": 1920, "height": 1080}

IMAGE_PATTERN = "**/*.{png,jpg,jpeg,gif,svg,ico,webp}"
FONT_PATTERN = "**/*.{woff,woff2,ttf,otf,eot}"
CSS_PATTERN = "**/*.css"
MEDIA_PATTERN = "**/*.{mp4,mp3,avi,mov}"

JITTER_SPREAD = 0.15

# webdriver, plugins and languages
STANDARD_STEALTH_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });

    Object.defineProperty(navigator, 'languages', {
        get: () => ['pt-BR', 'pt', 'en-US', 'en']
    });
"""

# window.chrome and notification permission query
AGGRESSIVE_STEALTH_SCRIPT = """
    if (!window.chrome) {
        window.chrome = { runtime: {} };
    }

    const originalQuery = window.navigator.permissions.query;
    window.navigator.permissions.query = (parameters) =>
        parameters.name === 'notifications'
            ? Promise.resolve({ state: 'denied' })
            : originalQuery(parameters);
"""


def blocked_resource_patterns(settings: AntiDetectionSettings) -> List[str]:
    """Glob patterns for the resource classes the site blocks."""
    patterns = []
    if settings.block_images:
        patterns.append(IMAGE_PATTERN)
    if settings.block_fonts:
        patterns.append(FONT_PATTERN)
    if settings.block_css:
        patterns.append(CSS_PATTERN)
    if settings.block_media:
        patterns.append(MEDIA_PATTERN)
    return patterns


def stealth_scripts(settings: AntiDetectionSettings) -> List[str]:
    """Init scripts to inject for the site's stealth level."""
    if not settings.inject_stealth_scripts or settings.stealth_level == "minimal":
        return []

    scripts = [STANDARD_STEALTH_SCRIPT]
    if settings.stealth_level == "aggressive":
        scripts.append(AGGRESSIVE_STEALTH_SCRIPT)
    return scripts


def accept_language(locale: str) -> str:
    """Accept-Language header value for a locale such as ``pt-BR``."""
    language = locale.split("-")[0]
    return f"{locale},{language};q=0.9,en-US;q=0.8,en;q=0.7"


async def _abort_route(route: "Route") -> None:
    await route.abort()


async def apply_anti_detection(context: "BrowserContext", settings: AntiDetectionSettings) -> None:
    """
    Apply resource blocking, stealth scripts and headers to a context.

    Playwright does not accept comma-joined globs, so one route is
    registered per pattern.

    Args:
        context: Fresh browser context for this scrape.
        settings: The site's anti-detection settings.
    """
    patterns = blocked_resource_patterns(settings)
    for pattern in patterns:
        await context.route(pattern, _abort_route)

    scripts = stealth_scripts(settings)
    for script in scripts:
        await context.add_init_script(script)

    await context.set_extra_http_headers({"Accept-Language": accept_language(settings.locale)})

    logger.debug(
        f"Anti-detection applied: level={settings.stealth_level}, "
        f"blocked={len(patterns)} patterns, scripts={len(scripts)}"
    )


def random_user_agent() -> str:
    """Pick a User-Agent string at random."""
    return random.choice(USER_AGENTS)


def random_viewport() -> Dict[str, int]:
    """Pick a common desktop viewport at random."""
    return dict(random.choice(VIEWPORTS))


def viewport_for(settings: AntiDetectionSettings) -> Dict[str, int]:
    """Randomized viewport when the site asks for it, the default otherwise."""
    if settings.randomize_viewport:
        return random_viewport()
    return dict(DEFAULT_VIEWPORT)


def apply_jitter(base_ms: int, spread: float = JITTER_SPREAD) -> int:
    """
    Randomize a delay within ``base_ms * (1 ± spread)``.

    Example:
        >>> 850 <= apply_jitter(1000) <= 1150
        True
    """
    factor = random.uniform(1.0 - spread, 1.0 + spread)
    return round(base_ms * factor)
