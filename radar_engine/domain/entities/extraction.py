"""
Extraction result entities and the persistence-friendly diagnosis record.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .diagnosis import PageDiagnosis, PageType
from .scraped_ad import ScrapedAd

AuthSource = Literal["anonymous", "session-pool", "fresh-login"]


@dataclass
class ExtractionMetrics:
    """Counters and timings collected during one scrape."""

    duration_ms: int = 0
    authenticated: bool = False
    auth_source: AuthSource = "anonymous"
    selector_used: Optional[str] = None
    ads_raw: int = 0
    ads_valid: int = 0
    skipped_reasons: Dict[str, int] = field(default_factory=dict)
    scrolls_done: int = 0
    retry_attempts: int = 0
    crash_recoveries: int = 0
    error: Optional[str] = None


@dataclass
class ExtractionResult:
    """Outcome of a scrape. Zero ads are always explained by ``diagnosis``."""

    ads: List[ScrapedAd]
    diagnosis: PageDiagnosis
    metrics: ExtractionMetrics

    @property
    def success(self) -> bool:
        return self.metrics.error is None


@dataclass
class AuthContextResult:
    """A ready-to-use browser context and page for one scrape.

    ``cleanup`` closes the page and context it created and never the shared
    browser; it must be awaited exactly once.
    """

    browser: Any
    context: Any
    page: Any
    authenticated: bool
    source: AuthSource
    cleanup: Callable[[], Awaitable[None]]
    session_id: Optional[str] = None


class DiagnosisSignals(BaseModel):
    """Boolean page signals in the shape stored alongside monitor logs."""

    model_config = ConfigDict(frozen=True)

    recaptcha: bool = False
    hcaptcha: bool = False
    cloudflare: bool = False
    datadome: bool = False
    login_required: bool = False
    checkpoint: bool = False
    no_results: bool = False


class DiagnosisRecord(BaseModel):
    """Flattened projection of a diagnosis and its metrics for persistence."""

    model_config = ConfigDict(frozen=True)

    page_type: PageType
    final_url: str = ""
    selector_used: Optional[str] = None
    authenticated: bool = False
    auth_source: str = "anonymous"
    ads_raw: int = 0
    ads_valid: int = 0
    duration_ms: int = 0
    body_length: int = 0
    signals: DiagnosisSignals = Field(default_factory=DiagnosisSignals)
    anti_detection: str = "minimal"
    skipped_reasons: Dict[str, int] = Field(default_factory=dict)
    retry_attempts: int = 0
    error: Optional[str] = None


def to_diagnosis_record(result: ExtractionResult, stealth_level: str) -> DiagnosisRecord:
    """Project a result onto a DiagnosisRecord. Pure; ``result`` is not modified."""
    diagnosis = result.diagnosis
    metrics = result.metrics
    signals = diagnosis.signals

    return DiagnosisRecord(
        page_type=diagnosis.page_type,
        final_url=diagnosis.final_url,
        selector_used=metrics.selector_used,
        authenticated=metrics.authenticated,
        auth_source=metrics.auth_source,
        ads_raw=metrics.ads_raw,
        ads_valid=metrics.ads_valid,
        duration_ms=metrics.duration_ms,
        body_length=diagnosis.body_length,
        signals=DiagnosisSignals(
            recaptcha=signals.has_recaptcha,
            hcaptcha=signals.has_hcaptcha,
            cloudflare=signals.has_cloudflare,
            datadome=signals.has_datadome,
            login_required=signals.has_login_text or signals.has_login_form,
            checkpoint=signals.has_checkpoint,
            no_results=signals.has_no_results_msg,
        ),
        anti_detection=stealth_level,
        skipped_reasons=dict(metrics.skipped_reasons),
        retry_attempts=metrics.retry_attempts,
        error=metrics.error,
    )
