# Core Package
"""
Scraping engine, page diagnosis, site registry and URL resolution.
"""

from radar_engine.core.location_matcher import LocationMatch, match_location
from radar_engine.core.marketplace_engine import EngineFactory, MarketplaceEngine
from radar_engine.core.page_diagnoser import PageDiagnoser, classify_page
from radar_engine.core.site_registry import SiteRegistry, load_site_registry
from radar_engine.core.url_builder import build_search_url, resolve_search_url

__all__ = [
    # Engine
    "MarketplaceEngine",
    "EngineFactory",
    # Diagnosis
    "PageDiagnoser",
    "classify_page",
    # Sites
    "SiteRegistry",
    "load_site_registry",
    # URLs and filters
    "build_search_url",
    "resolve_search_url",
    "LocationMatch",
    "match_location",
]
