"""Unit tests for listing extraction from container HTML."""

import pytest

from radar_engine.domain.entities.monitor import MonitorWithFilters
from radar_engine.domain.entities.site_config import ExternalIdRule, SelectorSet, SiteConfig
from radar_engine.infrastructure.scraper.parsers.ad_extractor import (
    AdExtractor,
    parse_brl_price,
    parse_lenient_price,
)


def make_monitor(**kwargs) -> MonitorWithFilters:
    values = {"id": "mon-1", "user_id": "user-1", "site": "OLX"}
    values.update(kwargs)
    return MonitorWithFilters(**values)


class TestPriceParsing:
    """Test price text parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("R$ 2.350,00", 2350.0),
        ("R$ 85.000", 85000.0),
        ("R$1.234.567,89", 1234567.89),
        ("45", 45.0),
        ("R$ 99,90", 99.9),
        ("Grátis", 0.0),
        ("", 0.0),
    ])
    def test_brl(self, text, expected):
        """Test dots are thousands separators and the comma is decimal."""
        assert parse_brl_price(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text,expected", [
        ("Lance atual: R$ 15.000,00", 15000.0),
        ("Lance inicial 3.500", 3500.0),
        ("sem lance", 0.0),
    ])
    def test_lenient(self, text, expected):
        """Test auction labels keep only digits and the decimal comma."""
        assert parse_lenient_price(text) == pytest.approx(expected)


class TestParseCards:
    """Test validation, filtering and dedup across cards."""

    def test_extracts_fields(self, olx_config, card):
        """Test a well-formed card becomes a complete ScrapedAd."""
        output = AdExtractor(olx_config).parse_cards([card("123")], make_monitor())

        assert output.ads_raw == 1
        assert output.skipped_reasons == {}
        ad = output.ads[0]
        assert ad.external_id == "OLX-123"
        assert ad.title == "Honda Civic 2018"
        assert ad.price == 85000.0
        assert ad.url == "https://www.olx.com.br/autos/honda-civic-123"
        assert ad.image_url == "https://img.olx.com.br/123.jpg"
        assert ad.location == "Campinas - SP"

    def test_skip_reasons_counted(self, olx_config, card):
        """Test every dropped card is counted under its reason."""
        cards = [
            card("1"),
            card("2", href=""),
            card("3", href="/autos/sem-id"),
            card("4", title=""),
            card("5", price="R$ 500"),
            card("6", price="R$ 900.000"),
            card("1"),
        ]
        monitor = make_monitor(price_min=1000, price_max=200000)

        output = AdExtractor(olx_config).parse_cards(cards, monitor)

        assert [ad.external_id for ad in output.ads] == ["OLX-1"]
        assert output.ads_raw == 7
        assert output.skipped_reasons == {
            "no_url": 1,
            "no_external_id": 1,
            "no_title": 1,
            "price_below_min": 1,
            "price_above_max": 1,
            "duplicate": 1,
        }
        assert output.ads_raw == len(output.ads) + sum(output.skipped_reasons.values())

    def test_unknown_price_kept(self, olx_config, card):
        """Test a zero (unparsed) price is not rejected by the bounds."""
        monitor = make_monitor(price_min=1000)
        output = AdExtractor(olx_config).parse_cards([card("7", price="A combinar")], monitor)

        assert len(output.ads) == 1
        assert output.ads[0].price == 0.0

    def test_location_filter(self, olx_config, card):
        """Test location filters only apply when the monitor has a country."""
        cards = [card("1", location="Campinas - SP"), card("2", location="Curitiba - PR")]

        unfiltered = AdExtractor(olx_config).parse_cards(cards, make_monitor(state_region="SP"))
        filtered = AdExtractor(olx_config).parse_cards(cards, make_monitor(country="BR", state_region="SP"))

        assert len(unfiltered.ads) == 2
        assert [ad.external_id for ad in filtered.ads] == ["OLX-1"]
        assert filtered.skipped_reasons == {"location_state_mismatch": 1}

    def test_country_mismatch(self, olx_config, card):
        """Test a US location is dropped for a BR monitor."""
        output = AdExtractor(olx_config).parse_cards(
            [card("1", location="Austin, TX")], make_monitor(country="BR")
        )
        assert output.skipped_reasons == {"location_country_mismatch": 1}

    def test_empty_input(self, olx_config):
        """Test no cards gives an empty output."""
        output = AdExtractor(olx_config).parse_cards([], make_monitor())
        assert output.ads == []
        assert output.ads_raw == 0


class TestSiteVariants:
    """Test site-specific card shapes."""

    def test_anchor_container_title_from_span(self, facebook_config):
        """Test Facebook anchor cards take the title from a bare span."""
        html = (
            '<a href="/marketplace/item/987654321/?ref=search">'
            '<img src="https://scontent.xx.fbcdn.net/p.jpg"/>'
            "<span><span>R$ 1.200</span></span>"
            "<span><span>Bicicleta aro 29</span></span>"
            "<span><span>Campinas, SP</span></span>"
            "</a>"
        )
        config = facebook_config.model_copy(update={
            "selectors": SelectorSet(
                containers=['a[href*="/marketplace/item/"]'],
                title=["span.missing"],
                price=["span"],
            ),
        })

        output = AdExtractor(config).parse_cards([html], make_monitor(site="FACEBOOK_MARKETPLACE"))

        ad = output.ads[0]
        assert ad.external_id == "FB-987654321"
        assert ad.title == "Bicicleta aro 29"
        assert ad.price == 1200.0
        assert ad.url == "https://www.facebook.com/marketplace/item/987654321/?ref=search"
        assert ad.image_url == "https://scontent.xx.fbcdn.net/p.jpg"

    def test_price_selector_skips_text_without_digits(self, olx_config):
        """Test shared price selectors prefer text containing a digit."""
        config = olx_config.model_copy(update={
            "selectors": SelectorSet(containers=["li"], title=["h2"], price=["p"]),
        })
        html = '<li><a href="/v-55"><h2>Sofá</h2><p>Novo</p><p>R$ 700</p></a></li>'

        output = AdExtractor(config).parse_cards([html], make_monitor())

        assert output.ads[0].price == 700.0

    def test_auction_last_segment_and_lenient_price(self):
        """Test auction sites use the last URL segment and lenient prices."""
        config = SiteConfig(
            site="LEILAO",
            domain="leilao.generic",
            selectors=SelectorSet(containers=[".lote"], title=[".titulo"], price=[".lance"], link=["a"]),
            external_id=ExternalIdRule(mode="last_segment", prefix="LEI-"),
            price_format="auto",
            base_url="https://leiloes.example.com",
        )
        html = (
            '<div class="lote"><a href="/lotes/apartamento-centro-77?x=1">ver</a>'
            '<span class="titulo">Apartamento Centro</span>'
            '<span class="lance">Lance atual: R$ 150.000,00</span></div>'
        )

        output = AdExtractor(config).parse_cards([html], make_monitor(site="LEILAO"))

        ad = output.ads[0]
        assert ad.external_id == "LEI-apartamento-centro-77"
        assert ad.price == 150000.0

    def test_mercado_livre_full_match_id(self):
        """Test full_match ids strip separators from the listing code."""
        rule = ExternalIdRule(mode="full_match", patterns=[r"/ML[A-Z]-?(\d+)"])
        assert rule.extract("https://produto.mercadolivre.com.br/MLB-3456789012-civic") == "MLB3456789012"


class TestExtract:
    """Test the page round trip."""

    @pytest.mark.asyncio
    async def test_extract_reads_container_html(self, olx_config, fake_page_cls, card):
        """Test extract pulls outer HTML for the selected container."""
        page = fake_page_cls(containers={"li.card": [card("10"), card("11")]})

        output = await AdExtractor(olx_config).extract(page, "li.card", make_monitor())

        assert [ad.external_id for ad in output.ads] == ["OLX-10", "OLX-11"]
