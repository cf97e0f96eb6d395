"""
Search URL resolution for monitors.

URL_ONLY monitors are scraped at exactly the URL the user saved.
STRUCTURED_FILTERS monitors have their URL built from location and keyword
fields, for the sites that support it.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from urllib.parse import quote

from radar_engine.domain.entities.monitor import MonitorWithFilters
from radar_engine.domain.entities.site_config import SiteConfig
from radar_engine.utils.exceptions import UrlBuildError
from radar_engine.utils.logger import get_logger

logger = get_logger(__name__)

FACEBOOK_MARKETPLACE_BASE = "https://www.facebook.com/marketplace"


@dataclass(frozen=True)
class UrlBuildResult:
    """A built search URL with a human-readable location tag for logs."""

    url: str
    location: str


def slugify(text: str) -> str:
    """
    Convert a place name to a URL slug.

    Example:
        >>> slugify("São José dos Campos")
        'sao-jose-dos-campos'
    """
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    slug = stripped.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def build_facebook_marketplace_url(monitor: MonitorWithFilters) -> UrlBuildResult:
    """
    Build a Facebook Marketplace search URL from structured filters.

    - city + keyword: ``/marketplace/{city}/search/?query={keyword}``
    - city only: ``/marketplace/{city}/``
    - keyword only: ``/marketplace/search/?query={keyword}``

    Raises:
        UrlBuildError: If neither a city nor a keyword is given.
    """
    country = (monitor.country or "").strip()
    state = (monitor.state_region or "").strip()
    city = (monitor.city or "").strip()
    keywords = monitor.keywords

    if not city and not keywords:
        location_tag = "-".join(p for p in (country, state) if p) or "NONE"
        raise UrlBuildError(
            "Cannot build Facebook Marketplace URL without city or keyword. "
            f"Location: {location_tag}. Provide at least a city or keyword.",
            site=monitor.site,
        )

    query = quote(keywords, safe="")
    if city:
        city_slug = slugify(city)
        if keywords:
            url = f"{FACEBOOK_MARKETPLACE_BASE}/{city_slug}/search/?query={query}"
        else:
            url = f"{FACEBOOK_MARKETPLACE_BASE}/{city_slug}/"
    else:
        url = f"{FACEBOOK_MARKETPLACE_BASE}/search/?query={query}"

    location = "-".join(p for p in (country, state, city) if p) or "GLOBAL"
    return UrlBuildResult(url=url, location=location)


URL_BUILDERS: Dict[str, Callable[[MonitorWithFilters], UrlBuildResult]] = {
    "FACEBOOK_MARKETPLACE": build_facebook_marketplace_url,
}


def build_search_url(monitor: MonitorWithFilters) -> Optional[UrlBuildResult]:
    """
    Build a URL for a STRUCTURED_FILTERS monitor.

    Returns:
        The built URL, or None for URL_ONLY monitors and sites without a
        builder.

    Raises:
        UrlBuildError: If the site's builder rejects the filters.
    """
    if monitor.mode != "STRUCTURED_FILTERS":
        return None

    builder = URL_BUILDERS.get(monitor.site.upper())
    if builder is None:
        return None
    return builder(monitor)


def resolve_search_url(monitor: MonitorWithFilters, config: SiteConfig) -> str:
    """
    Decide which URL a scrape navigates to.

    Order: structured-filters builder, the monitor's saved URL, then the
    site's default search URL.

    Raises:
        UrlBuildError: If no URL can be determined.
    """
    built = build_search_url(monitor)
    if built is not None:
        logger.info(f"URL_BUILDER: {monitor.site} location={built.location} url={built.url}")
        return built.url

    if monitor.search_url and monitor.search_url.strip():
        return monitor.search_url.strip()

    if config.default_search_url:
        logger.warning(
            f"Monitor {monitor.id} has no search URL; using default for {config.site}"
        )
        return config.default_search_url

    raise UrlBuildError(f"Monitor {monitor.id} has no search URL", site=config.site)
