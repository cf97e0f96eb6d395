"""Unit tests for search URL resolution."""

import pytest

from radar_engine.core.url_builder import (
    build_facebook_marketplace_url,
    build_search_url,
    resolve_search_url,
    slugify,
)
from radar_engine.domain.entities.monitor import MonitorWithFilters
from radar_engine.utils.exceptions import UrlBuildError


def fb_monitor(**kwargs) -> MonitorWithFilters:
    values = {"id": "mon-fb", "user_id": "user-1", "site": "FACEBOOK_MARKETPLACE", "mode": "STRUCTURED_FILTERS"}
    values.update(kwargs)
    return MonitorWithFilters(**values)


class TestSlugify:
    """Test place name slugs."""

    @pytest.mark.parametrize("text,expected", [
        ("São José dos Campos", "sao-jose-dos-campos"),
        ("Campinas", "campinas"),
        ("  Rio  de   Janeiro ", "rio-de-janeiro"),
        ("Mogi-Guaçu", "mogi-guacu"),
        ("St. Louis", "st-louis"),
    ])
    def test_slugify(self, text, expected):
        """Test accents, spaces and punctuation are normalized."""
        assert slugify(text) == expected


class TestFacebookBuilder:
    """Test the Facebook Marketplace URL builder."""

    def test_city_and_keyword(self):
        """Test city plus keyword gives a city search."""
        result = build_facebook_marketplace_url(
            fb_monitor(country="BR", state_region="SP", city="São Paulo", filters={"keywords": "iphone 13"})
        )
        assert result.url == "https://www.facebook.com/marketplace/sao-paulo/search/?query=iphone%2013"
        assert result.location == "BR-SP-São Paulo"

    def test_city_only(self):
        """Test a city without keyword browses the city."""
        result = build_facebook_marketplace_url(fb_monitor(city="Campinas"))
        assert result.url == "https://www.facebook.com/marketplace/campinas/"

    def test_keyword_only(self):
        """Test a keyword without city searches globally."""
        result = build_facebook_marketplace_url(fb_monitor(filters={"keyword": "bike"}))
        assert result.url == "https://www.facebook.com/marketplace/search/?query=bike"
        assert result.location == "GLOBAL"

    def test_neither_raises(self):
        """Test a monitor with neither city nor keyword cannot be built."""
        with pytest.raises(UrlBuildError, match="city or keyword"):
            build_facebook_marketplace_url(fb_monitor(country="BR"))


class TestResolveSearchUrl:
    """Test the resolution order."""

    def test_url_only_ignores_builder(self, facebook_config):
        """Test URL_ONLY monitors use their saved URL verbatim."""
        monitor = fb_monitor(mode="URL_ONLY", search_url=" https://www.facebook.com/marketplace/x ", city="Campinas")
        assert build_search_url(monitor) is None
        assert resolve_search_url(monitor, facebook_config) == "https://www.facebook.com/marketplace/x"

    def test_builder_wins_for_structured(self, facebook_config):
        """Test structured filters override the saved URL."""
        monitor = fb_monitor(search_url="https://www.facebook.com/marketplace/old", city="Campinas")
        assert resolve_search_url(monitor, facebook_config) == "https://www.facebook.com/marketplace/campinas/"

    def test_structured_without_builder_uses_saved_url(self, olx_config, monitor):
        """Test sites without a builder fall back to the saved URL."""
        structured = monitor.model_copy(update={"mode": "STRUCTURED_FILTERS"})
        assert resolve_search_url(structured, olx_config) == monitor.search_url

    def test_default_search_url(self, olx_config):
        """Test the site default is used when the monitor has no URL."""
        monitor = MonitorWithFilters(id="m", user_id="u", site="OLX")
        assert resolve_search_url(monitor, olx_config) == "https://www.olx.com.br/"

    def test_nothing_to_resolve(self, facebook_config):
        """Test an error when no URL can be determined."""
        monitor = MonitorWithFilters(id="m", user_id="u", site="FACEBOOK_MARKETPLACE", search_url="  ")
        with pytest.raises(UrlBuildError):
            resolve_search_url(monitor, facebook_config)
