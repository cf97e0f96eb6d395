# Domain Entities Package
"""
Core scraping entities: site configs, monitors, listings and diagnoses.
"""

from .diagnosis import PageDiagnosis, PageSignals, PageType
from .extraction import (
    AuthContextResult,
    AuthSource,
    DiagnosisRecord,
    DiagnosisSignals,
    ExtractionMetrics,
    ExtractionResult,
    to_diagnosis_record,
)
from .monitor import MonitorWithFilters
from .scraped_ad import ScrapedAd
from .session import SessionStatus, StoredSession
from .site_config import (
    AntiDetectionSettings,
    ExternalIdRule,
    RateLimitSettings,
    ScrollSettings,
    SelectorSet,
    SiteConfig,
)

__all__ = [
    "AntiDetectionSettings",
    "AuthContextResult",
    "AuthSource",
    "DiagnosisRecord",
    "DiagnosisSignals",
    "ExternalIdRule",
    "ExtractionMetrics",
    "ExtractionResult",
    "MonitorWithFilters",
    "PageDiagnosis",
    "PageSignals",
    "PageType",
    "RateLimitSettings",
    "ScrapedAd",
    "ScrollSettings",
    "SelectorSet",
    "SessionStatus",
    "SiteConfig",
    "StoredSession",
    "to_diagnosis_record",
]
