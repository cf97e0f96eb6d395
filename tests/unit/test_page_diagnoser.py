"""Unit tests for page classification and forensics."""

import pytest

from radar_engine.core.page_diagnoser import (
    SIGNALS_SCRIPT,
    PageDiagnoser,
    classify_page,
    signals_from_evaluation,
)
from radar_engine.domain.entities.diagnosis import PageDiagnosis, PageSignals, PageType
from radar_engine.utils.config import DiagnosisConfig, ForensicsConfig

CONTENT_BODY = 8000


def content_signals(**overrides) -> PageSignals:
    values = {"body_length": CONTENT_BODY, "visible_elements": 120}
    values.update(overrides)
    return PageSignals(**values)


class TestClassifyPage:
    """Test the pure classification rules and their order."""

    def test_content_by_body_length(self, olx_config):
        """Test a large body is CONTENT."""
        assert classify_page(content_signals(), "https://www.olx.com.br/x", olx_config) is PageType.CONTENT

    def test_content_by_visible_elements(self, olx_config):
        """Test many visible elements are CONTENT even with a mid-size body."""
        signals = PageSignals(body_length=1000, visible_elements=80)
        assert classify_page(signals, "https://www.olx.com.br/x", olx_config) is PageType.CONTENT

    def test_unknown_in_between(self, olx_config):
        """Test a mid-size page with few elements stays UNKNOWN."""
        signals = PageSignals(body_length=1000, visible_elements=10)
        assert classify_page(signals, "https://www.olx.com.br/x", olx_config) is PageType.UNKNOWN

    def test_empty_body(self, olx_config):
        """Test a tiny body is EMPTY."""
        signals = PageSignals(body_length=50, visible_elements=3)
        assert classify_page(signals, "https://www.olx.com.br/x", olx_config) is PageType.EMPTY

    def test_login_wins_over_no_results(self, olx_config):
        """Test a login wall that also says 'no results' is LOGIN_REQUIRED."""
        signals = content_signals(has_login_text=True, has_no_results_msg=True)
        assert classify_page(signals, "https://www.olx.com.br/x", olx_config) is PageType.LOGIN_REQUIRED

    def test_checkpoint_checked_first(self, facebook_config):
        """Test CHECKPOINT beats login and captcha markers."""
        signals = content_signals(has_checkpoint=True, has_login_text=True, has_recaptcha=True)
        url = "https://www.facebook.com/checkpoint/"
        assert classify_page(signals, url, facebook_config) is PageType.CHECKPOINT

    def test_login_form_needs_login_url(self, olx_config):
        """Test a password field alone does not mean LOGIN_REQUIRED."""
        signals = content_signals(has_login_form=True)
        assert classify_page(signals, "https://www.olx.com.br/autos", olx_config) is PageType.CONTENT
        assert classify_page(signals, "https://conta.olx.com.br/login?r=1", olx_config) is PageType.LOGIN_REQUIRED

    def test_captcha_before_blocked(self, olx_config):
        """Test CAPTCHA markers win over WAF markers."""
        signals = content_signals(has_hcaptcha=True, has_cloudflare=True)
        assert classify_page(signals, "https://www.olx.com.br/x", olx_config) is PageType.CAPTCHA

    @pytest.mark.parametrize("flag", ["has_cloudflare", "has_datadome"])
    def test_blocked(self, olx_config, flag):
        """Test WAF markers classify as BLOCKED."""
        signals = content_signals(**{flag: True})
        assert classify_page(signals, "https://www.olx.com.br/x", olx_config) is PageType.BLOCKED

    def test_blocked_before_no_results(self, olx_config):
        """Test BLOCKED is checked before NO_RESULTS."""
        signals = content_signals(has_datadome=True, has_no_results_msg=True)
        assert classify_page(signals, "https://www.olx.com.br/x", olx_config) is PageType.BLOCKED

    def test_no_results_before_empty(self, olx_config):
        """Test a short 'no results' page is NO_RESULTS, not EMPTY."""
        signals = PageSignals(has_no_results_msg=True, body_length=40)
        assert classify_page(signals, "https://www.olx.com.br/x", olx_config) is PageType.NO_RESULTS

    def test_custom_thresholds(self, olx_config):
        """Test thresholds come from DiagnosisConfig."""
        thresholds = DiagnosisConfig(empty_body_length=500, content_body_length=600)
        signals = PageSignals(body_length=400)
        assert classify_page(signals, "https://x", olx_config, thresholds) is PageType.EMPTY

    def test_deterministic(self, olx_config):
        """Test identical inputs always give the same page type."""
        signals = content_signals(has_no_results_msg=True)
        results = {classify_page(signals, "https://x", olx_config) for _ in range(10)}
        assert results == {PageType.NO_RESULTS}


class TestSignalsFromEvaluation:
    """Test conversion of the in-page evaluation result."""

    def test_maps_camel_case_keys(self, signals):
        """Test every raw flag lands on the right field."""
        raw = signals(body_length=6000, visible=70, hasRecaptcha=True, hasCheckpoint=True)
        result = signals_from_evaluation(raw, DiagnosisConfig())

        assert result.has_recaptcha
        assert result.has_checkpoint
        assert not result.has_login_text
        assert result.body_length == 6000
        assert result.visible_elements == 70
        assert result.has_search_results

    def test_missing_keys_default(self):
        """Test an empty evaluation gives an all-false signal set."""
        result = signals_from_evaluation({}, DiagnosisConfig())
        assert result == PageSignals()


class TestPageDiagnoser:
    """Test diagnosis against a fake page."""

    @pytest.mark.asyncio
    async def test_diagnose_passes_site_patterns(self, fake_page_cls, signals, olx_config):
        """Test the evaluation receives the site's text patterns."""
        page = fake_page_cls(signals=[signals(hasNoResultsMsg=True)])
        page.url = "https://www.olx.com.br/autos?q=x"

        diagnosis = await PageDiagnoser().diagnose(page, olx_config, "https://www.olx.com.br/autos?q=x")

        script, params = page.evaluations[0]
        assert script == SIGNALS_SCRIPT
        assert params["noResultsPatterns"] == ["nenhum resultado"]
        assert params["loginPatterns"] == ["faça login"]
        assert diagnosis.page_type is PageType.NO_RESULTS
        assert diagnosis.final_url == "https://www.olx.com.br/autos?q=x"
        assert diagnosis.title == "Resultados"
        assert diagnosis.body_length == 8000

    @pytest.mark.asyncio
    async def test_collect_forensics_writes_viewport_screenshot(self, fake_page_cls, forensics_dir):
        """Test the screenshot is viewport-only and lands in the forensics directory."""
        page = fake_page_cls()
        diagnoser = PageDiagnoser(forensics=ForensicsConfig(directory=str(forensics_dir)))
        diagnosis = PageDiagnosis(page_type=PageType.UNKNOWN, url="https://x")

        path = await diagnoser.collect_forensics(page, diagnosis, "mon/1")

        assert path is not None
        assert path.startswith(str(forensics_dir))
        assert "engine-mon_1-" in path
        assert page.screenshots[0]["full_page"] is False
        assert forensics_dir.exists()

    @pytest.mark.asyncio
    async def test_collect_forensics_disabled(self, fake_page_cls, forensics_dir):
        """Test no screenshot when forensics are disabled."""
        page = fake_page_cls()
        diagnoser = PageDiagnoser(forensics=ForensicsConfig(enabled=False, directory=str(forensics_dir)))

        path = await diagnoser.collect_forensics(page, PageDiagnosis(PageType.EMPTY, "https://x"), "m")

        assert path is None
        assert page.screenshots == []

    @pytest.mark.asyncio
    async def test_collect_forensics_never_raises(self, fake_page_cls, forensics_dir):
        """Test a failing screenshot returns None."""

        class BrokenPage(fake_page_cls):
            async def screenshot(self, **kwargs):
                raise RuntimeError("Target closed")

        diagnoser = PageDiagnoser(forensics=ForensicsConfig(directory=str(forensics_dir)))
        path = await diagnoser.collect_forensics(BrokenPage(), PageDiagnosis(PageType.EMPTY, "https://x"), "m")

        assert path is None
