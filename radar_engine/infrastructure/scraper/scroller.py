"""
Scrolling to trigger lazy-loaded listings.

- fixed: scroll a set number of evenly spaced steps down the page
- adaptive: scroll to the bottom until the item count stops growing
  (infinite-scroll feeds such as Facebook Marketplace)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from radar_engine.domain.entities.site_config import ScrollSettings
from radar_engine.utils.logger import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)

# Listing selectors shared by the supported marketplaces, most specific first
COUNT_ITEMS_SCRIPT = """
() => {
    const selectors = [
        'a[href*="/marketplace/item/"]',
        '[data-ds-component="DS-AdCard"]',
        'li.ui-search-layout__item',
        '[data-position]',
        'article',
        '[role="listitem"]',
    ];
    for (const sel of selectors) {
        const count = document.querySelectorAll(sel).length;
        if (count > 0) return count;
    }
    return 0;
}
"""

SCROLL_STEP_SCRIPT = "([current, total]) => window.scrollTo(0, document.body.scrollHeight / total * (current + 1))"
SCROLL_BOTTOM_SCRIPT = "window.scrollTo(0, document.body.scrollHeight)"


async def scroll_page(page: "Page", settings: ScrollSettings) -> int:
    """
    Scroll according to the site's strategy.

    Args:
        page: Loaded page.
        settings: Scroll settings from the site config.

    Returns:
        Number of scroll steps performed.
    """
    delay = settings.delay_between_scrolls_ms / 1000

    if settings.strategy == "fixed":
        scrolls = await _scroll_fixed(page, settings.fixed_steps, delay)
    else:
        scrolls = await _scroll_adaptive(page, settings, delay)

    logger.debug(f"Scrolling complete ({settings.strategy}): {scrolls} steps")
    return scrolls


async def _scroll_fixed(page: "Page", steps: int, delay: float) -> int:
    for i in range(steps):
        await page.evaluate(SCROLL_STEP_SCRIPT, [i, steps])
        await asyncio.sleep(delay)
    return steps


async def _scroll_adaptive(page: "Page", settings: ScrollSettings, delay: float) -> int:
    scrolls_done = 0
    stable_count = 0
    previous_count = await count_visible_items(page)

    for _ in range(settings.max_scroll_attempts):
        await page.evaluate(SCROLL_BOTTOM_SCRIPT)
        scrolls_done += 1
        await asyncio.sleep(delay)

        current_count = await count_visible_items(page)

        if current_count <= previous_count:
            stable_count += 1
            if stable_count >= settings.stable_threshold:
                logger.debug(f"Item count stable at {current_count} after {scrolls_done} scrolls")
                break
        else:
            stable_count = 0

        previous_count = current_count

    return scrolls_done


async def count_visible_items(page: "Page") -> int:
    """Estimate how many listing items the page currently holds."""
    count = await page.evaluate(COUNT_ITEMS_SCRIPT)
    return int(count or 0)
