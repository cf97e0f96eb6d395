"""Unit tests for best-effort location matching."""

import pytest

from radar_engine.core.location_matcher import (
    CITY_MISMATCH,
    COUNTRY_MISMATCH,
    STATE_MISMATCH,
    match_location,
)


class TestMatchLocation:
    """Test the ordered matching rules."""

    @pytest.mark.parametrize("country", [None, "", "WORLDWIDE", "worldwide"])
    def test_no_country_matches_everything(self, country):
        """Test an unset or worldwide country never filters."""
        assert match_location("Austin, TX", country=country, state_region="SP").match

    def test_empty_location_matches(self):
        """Test listings without location text are kept."""
        assert match_location("", country="BR", state_region="SP", city="Campinas").match
        assert match_location(None, country="BR").match

    def test_br_location_for_br_monitor(self):
        """Test a Brazilian location matches a BR monitor."""
        assert match_location("Campinas - SP", country="BR").match

    def test_us_location_for_br_monitor(self):
        """Test a location exclusive to the US is a country mismatch."""
        result = match_location("Miami, FL", country="BR")
        assert not result.match
        assert result.reason == COUNTRY_MISMATCH

    def test_br_location_for_us_monitor(self):
        """Test the check works in the other direction."""
        result = match_location("Belo Horizonte, Minas Gerais", country="US")
        assert result.reason == COUNTRY_MISMATCH

    def test_shared_abbreviation_not_a_mismatch(self):
        """Test abbreviations used in both countries do not decide the country."""
        assert match_location("Florianópolis - SC", country="US").match

    def test_other_country_skips_country_check(self):
        """Test countries without patterns go straight to state/city checks."""
        assert match_location("Austin, TX", country="PT").match

    def test_state_whole_word(self):
        """Test the state must appear as a whole word."""
        assert match_location("Campinas - SP", country="BR", state_region="sp").match
        result = match_location("Espírito Santo - ES", country="BR", state_region="S")
        assert result.reason == STATE_MISMATCH

    def test_city_substring(self):
        """Test the city may appear anywhere in the text."""
        assert match_location("Centro, Campinas - SP", country="BR", city="campinas").match
        result = match_location("Sorocaba - SP", country="BR", state_region="SP", city="Campinas")
        assert result.reason == CITY_MISMATCH
