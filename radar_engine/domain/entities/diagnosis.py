"""
Page diagnosis entities: what kind of page the browser actually landed on.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class PageType(str, Enum):
    """Classification of a loaded search page."""

    CONTENT = "CONTENT"
    NO_RESULTS = "NO_RESULTS"
    LOGIN_REQUIRED = "LOGIN_REQUIRED"
    CHECKPOINT = "CHECKPOINT"
    CAPTCHA = "CAPTCHA"
    BLOCKED = "BLOCKED"
    EMPTY = "EMPTY"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class PageSignals:
    """Raw observations taken from the page in a single evaluation."""

    has_recaptcha: bool = False
    has_hcaptcha: bool = False
    has_cloudflare: bool = False
    has_datadome: bool = False
    has_login_form: bool = False
    has_login_text: bool = False
    has_no_results_msg: bool = False
    has_search_results: bool = False
    has_checkpoint: bool = False
    visible_elements: int = 0
    body_length: int = 0


@dataclass
class PageDiagnosis:
    """Classified page plus the signals that led to the classification.

    ``page_type`` is the only field updated after creation: a solved CAPTCHA
    replaces the diagnosis with the re-diagnosed state, and a missing
    container downgrades it to UNKNOWN.
    """

    page_type: PageType
    url: str
    final_url: str = ""
    title: str = ""
    body_length: int = 0
    signals: PageSignals = field(default_factory=PageSignals)
    selector_used: Optional[str] = None
    screenshot_path: Optional[str] = None

    @classmethod
    def for_error(cls, url: str, page_type: PageType) -> "PageDiagnosis":
        """Diagnosis for a scrape that never produced a classifiable page."""
        return cls(
            page_type=page_type,
            url=url,
            signals=PageSignals(
                has_login_text=page_type is PageType.LOGIN_REQUIRED,
                has_checkpoint=page_type is PageType.CHECKPOINT,
            ),
        )
