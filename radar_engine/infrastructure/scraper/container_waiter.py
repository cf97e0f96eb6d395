"""
Progressive wait for the listing container.

Tries every container selector at each timeout level, shortest first, so a
fast page is detected quickly and a slow page still gets the full budget.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

from radar_engine.utils.logger import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)

LEVEL_PAUSE_SECONDS = 1.0


@dataclass(frozen=True)
class ContainerWaitResult:
    """Outcome of :func:`wait_for_container`."""

    success: bool
    selector: Optional[str]
    timeout_ms: int
    attempts: int


@dataclass(frozen=True)
class SelectorMatch:
    """First selector with matches and its element count."""

    selector: Optional[str]
    count: int


async def wait_for_container(
    page: "Page",
    selectors: Sequence[str],
    timeouts_ms: Sequence[int],
    level_pause: float = LEVEL_PAUSE_SECONDS,
) -> ContainerWaitResult:
    """
    Wait for the first container selector that attaches with a non-zero count.

    Args:
        page: Loaded page.
        selectors: Container selectors in priority order.
        timeouts_ms: Timeout levels, usually increasing.
        level_pause: Seconds to pause between timeout levels.

    Returns:
        ContainerWaitResult; ``success`` is False when nothing matched.
    """
    timeouts: List[int] = list(timeouts_ms) or [5000]

    for level, timeout in enumerate(timeouts):
        for selector in selectors:
            try:
                await page.wait_for_selector(selector, timeout=timeout, state="attached")
                count = await page.locator(selector).count()
            except Exception:
                # Timed out or invalid for this page; try the next selector
                continue

            if count > 0:
                logger.debug(f"Container found: {selector} ({count} elements, level {level + 1})")
                return ContainerWaitResult(
                    success=True,
                    selector=selector,
                    timeout_ms=timeout,
                    attempts=level + 1,
                )

        if level < len(timeouts) - 1:
            await asyncio.sleep(level_pause)

    logger.debug(f"No container matched after {len(timeouts)} levels")
    return ContainerWaitResult(
        success=False,
        selector=None,
        timeout_ms=timeouts[-1],
        attempts=len(timeouts),
    )


async def find_selector(page: "Page", selectors: Sequence[str]) -> SelectorMatch:
    """Return the first selector with at least one match on the page."""
    for selector in selectors:
        try:
            count = await page.locator(selector).count()
        except Exception:
            continue
        if count > 0:
            return SelectorMatch(selector=selector, count=count)
    return SelectorMatch(selector=None, count=0)
