"""
Listing extraction from search result containers.

The container elements are read from the page as HTML in one round trip and
parsed with BeautifulSoup, so field lookup, validation and filtering run
without further browser calls and can be tested on plain HTML.

Example:
    >>> extractor = AdExtractor(site_config)
    >>> output = await extractor.extract(page, "li.ui-search-layout__item", monitor)
    >>> print(f"{len(output.ads)} of {output.ads_raw} kept: {output.skipped_reasons}")
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from radar_engine.core.location_matcher import match_location
from radar_engine.domain.entities.monitor import MonitorWithFilters
from radar_engine.domain.entities.scraped_ad import ScrapedAd
from radar_engine.domain.entities.site_config import SiteConfig
from radar_engine.utils.logger import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)

OUTER_HTML_SCRIPT = "elements => elements.map((el) => el.outerHTML)"

IMAGE_ATTRIBUTES = ("src", "data-src", "data-lazy")

_NUMBER = re.compile(r"\d+(?:\.\d+)?")


# ============================================
# Price parsing
# ============================================

def parse_brl_price(text: str) -> float:
    """
    Parse a Brazilian price such as ``R$ 2.350,00``.

    Dots are thousands separators and the comma is the decimal mark.
    Unparseable text gives 0.

    Example:
        >>> parse_brl_price("R$ 2.350,00")
        2350.0
    """
    if not text:
        return 0.0
    cleaned = text.replace("R$", "")
    cleaned = re.sub(r"\s", "", cleaned).replace(".", "").replace(",", ".", 1)
    match = _NUMBER.search(cleaned)
    return float(match.group()) if match else 0.0


def parse_lenient_price(text: str) -> float:
    """
    Parse a price by keeping only digits and the decimal comma.

    Used for auction sites whose bid labels mix words, symbols and
    numbers (``Lance atual: R$ 15.000,00``).
    """
    if not text:
        return 0.0
    cleaned = re.sub(r"[^\d,]", "", text).replace(",", ".", 1)
    match = _NUMBER.search(cleaned)
    return float(match.group()) if match else 0.0


PRICE_PARSERS = {
    "brl": parse_brl_price,
    "auto": parse_lenient_price,
}


# ============================================
# Extraction
# ============================================

@dataclass
class RawAd:
    """Field text read from one container, before validation."""

    title: str = ""
    price_text: str = ""
    url: str = ""
    image_url: str = ""
    location: str = ""


@dataclass
class AdExtractionOutput:
    """Valid ads plus the counters explaining what was dropped."""

    ads: List[ScrapedAd]
    ads_raw: int
    skipped_reasons: Dict[str, int] = field(default_factory=dict)


def _text(tag: Optional[Tag]) -> str:
    return tag.get_text(" ", strip=True) if tag is not None else ""


def _first_text(root: Tag, selectors: Sequence[str]) -> str:
    for selector in selectors:
        found = root.select_one(selector)
        text = _text(found)
        if text:
            return text
    return ""


class AdExtractor:
    """
    Turns container HTML into validated ScrapedAd objects for one site.

    Attributes:
        config: Site config supplying selectors, URL/ID rules and price format.
    """

    def __init__(self, config: SiteConfig):
        self.config = config
        self._parse_price = PRICE_PARSERS[config.price_format]

    async def extract(
        self,
        page: "Page",
        container_selector: str,
        monitor: MonitorWithFilters,
    ) -> AdExtractionOutput:
        """
        Read every container matching ``container_selector`` and extract ads.

        Args:
            page: Loaded, scrolled page.
            container_selector: Selector found by the container waiter.
            monitor: Monitor whose price/location filters apply.
        """
        html_cards = await page.locator(container_selector).evaluate_all(OUTER_HTML_SCRIPT)
        return self.parse_cards(html_cards or [], monitor)

    def parse_cards(self, html_cards: Sequence[str], monitor: MonitorWithFilters) -> AdExtractionOutput:
        """Validate and filter a list of container HTML fragments."""
        ads: List[ScrapedAd] = []
        skipped: Counter = Counter()
        seen_ids = set()
        raw_count = 0

        for html in html_cards:
            try:
                raw = self.parse_card(html)
            except Exception as e:
                logger.debug(f"Failed to parse container: {e}")
                continue
            if raw is None:
                continue
            raw_count += 1

            reason = self._skip_reason(raw, monitor)
            if reason:
                skipped[reason] += 1
                continue

            url = self.config.normalize_url(raw.url)
            external_id = self.config.external_id.extract(url)
            if external_id in seen_ids:
                skipped["duplicate"] += 1
                continue
            seen_ids.add(external_id)

            ads.append(
                ScrapedAd(
                    external_id=external_id,
                    title=raw.title,
                    price=self._parse_price(raw.price_text),
                    url=url,
                    image_url=raw.image_url or None,
                    location=raw.location or None,
                )
            )

        logger.debug(
            f"{self.config.site}: extracted {len(ads)}/{raw_count} ads, skipped {dict(skipped)}"
        )
        return AdExtractionOutput(ads=ads, ads_raw=raw_count, skipped_reasons=dict(skipped))

    def _skip_reason(self, raw: RawAd, monitor: MonitorWithFilters) -> Optional[str]:
        url = self.config.normalize_url(raw.url)
        if not url:
            return "no_url"

        if not self.config.external_id.extract(url):
            return "no_external_id"

        if not raw.title:
            return "no_title"

        price = self._parse_price(raw.price_text)
        # Unknown prices (0) are kept; the bounds only reject known prices
        if monitor.price_min and price > 0 and price < monitor.price_min:
            return "price_below_min"
        if monitor.price_max and price > 0 and price > monitor.price_max:
            return "price_above_max"

        if monitor.country:
            result = match_location(
                raw.location,
                country=monitor.country,
                state_region=monitor.state_region,
                city=monitor.city,
            )
            if not result.match:
                return result.reason

        return None

    def parse_card(self, html: str) -> Optional[RawAd]:
        """Read raw field text from one container's outer HTML."""
        soup = BeautifulSoup(html, "lxml")
        body = soup.body or soup
        root = body.find(True)
        if root is None:
            return None

        selectors = self.config.selectors
        return RawAd(
            title=self._extract_title(root),
            price_text=self._extract_price(root),
            url=self._extract_url(root),
            image_url=self._extract_image(root),
            location=_first_text(root, selectors.location),
        )

    def _extract_title(self, root: Tag) -> str:
        title = _first_text(root, self.config.selectors.title)
        if title:
            return title

        title = _text(root.select_one("h2, h3"))
        if title:
            return title

        # Anchor containers (Facebook) carry the title in a bare span
        if root.name == "a":
            for span in root.find_all("span"):
                text = _text(span)
                if 3 < len(text) < 200 and not text[0].isdigit() and "R$" not in text:
                    return text
        return ""

    def _extract_price(self, root: Tag) -> str:
        # Price selectors can be shared with other text; prefer text with a digit
        for selector in self.config.selectors.price:
            for found in root.select(selector):
                text = _text(found)
                if any(c.isdigit() for c in text):
                    return text
        return ""

    def _extract_url(self, root: Tag) -> str:
        if root.name == "a":
            return root.get("href") or ""

        for selector in self.config.selectors.link:
            found = root.select_one(selector)
            if found is not None and found.get("href"):
                return found["href"]

        first_link = root.find("a", href=True)
        return first_link["href"] if first_link is not None else ""

    def _extract_image(self, root: Tag) -> str:
        for selector in self.config.selectors.image:
            img = root.select_one(selector)
            if img is None:
                continue
            for attribute in IMAGE_ATTRIBUTES:
                value = img.get(attribute)
                if value:
                    return value
        return ""
