"""
SiteConfig entity describing how one marketplace is scraped.

Site configs are loaded once from YAML at process start and never mutated.
Everything that varies per site (selectors, timeouts, stealth level, how
listing IDs and prices are read) is data here, so the engine itself stays
site-agnostic.
"""

import re
from functools import cached_property
from typing import List, Literal, Optional, Pattern

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

AuthMode = Literal["anonymous", "cookies_optional", "cookies_required"]
StealthLevel = Literal["minimal", "standard", "aggressive"]
ScrollStrategy = Literal["fixed", "adaptive"]
PriceFormat = Literal["brl", "auto"]
ExternalIdMode = Literal["group", "full_match", "last_segment"]

DEFAULT_LOGIN_URL_PATTERNS = ["/login", "/signin", "/account-verification"]


def _check_patterns(patterns: List[str]) -> List[str]:
    for pattern in patterns:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ValueError(f"Invalid regex {pattern!r}: {e}") from e
    return patterns


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class SelectorSet(_Frozen):
    """Ordered fallback CSS selector lists, one per listing field."""

    containers: List[str] = Field(min_length=1)
    title: List[str] = Field(default_factory=list)
    price: List[str] = Field(default_factory=list)
    link: List[str] = Field(default_factory=list)
    location: List[str] = Field(default_factory=list)
    image: List[str] = Field(default_factory=lambda: ["img"])


class RateLimitSettings(_Frozen):
    """Token bucket parameters for one site."""

    tokens_per_interval: int = Field(default=10, ge=1)
    interval_seconds: float = Field(default=60.0, gt=0.0)
    max_tokens: int = Field(default=20, ge=1)

    @model_validator(mode="after")
    def validate_capacity(self) -> "RateLimitSettings":
        if self.max_tokens < self.tokens_per_interval:
            raise ValueError("max_tokens must be at least tokens_per_interval")
        return self


class ScrollSettings(_Frozen):
    """How far to scroll before extraction."""

    strategy: ScrollStrategy = "fixed"
    fixed_steps: int = Field(default=3, ge=0)
    max_scroll_attempts: int = Field(default=10, ge=1)
    stable_threshold: int = Field(default=2, ge=1)
    delay_between_scrolls_ms: int = Field(default=1000, ge=0)


class AntiDetectionSettings(_Frozen):
    """Stealth level and resource blocking applied to each context."""

    stealth_level: StealthLevel = "minimal"
    block_images: bool = True
    block_fonts: bool = True
    block_css: bool = False
    block_media: bool = False
    inject_stealth_scripts: bool = False
    randomize_viewport: bool = False
    locale: str = "pt-BR"


class ExternalIdRule(_Frozen):
    """Data-driven rule that turns a listing URL into a dedup key.

    Modes:
        group: ``prefix`` + first capture group of the first matching pattern
        full_match: whole match of the first matching pattern, with ``/``
            and ``-`` removed (``/MLB-123`` becomes ``MLB123``)
        last_segment: ``prefix`` + last path segment of the URL

    When nothing matches and ``fallback_pattern`` is set, its first group is
    used with ``fallback_prefix``.
    """

    mode: ExternalIdMode = "group"
    patterns: List[str] = Field(default_factory=list)
    prefix: str = ""
    fallback_pattern: Optional[str] = None
    fallback_prefix: str = ""

    @field_validator("patterns")
    @classmethod
    def validate_patterns(cls, v: List[str]) -> List[str]:
        return _check_patterns(v)

    @cached_property
    def compiled(self) -> List[Pattern[str]]:
        return [re.compile(p, re.IGNORECASE) for p in self.patterns]

    def extract(self, url: str) -> str:
        """Return the external ID for ``url``, or ``""`` when none applies."""
        if not url:
            return ""

        if self.mode == "last_segment":
            slug = url.rstrip("/").split("/")[-1].split("?")[0]
            return f"{self.prefix}{slug}" if slug else ""

        for pattern in self.compiled:
            match = pattern.search(url)
            if not match:
                continue
            if self.mode == "full_match":
                return match.group(0).replace("/", "").replace("-", "")
            return f"{self.prefix}{match.group(1)}"

        if self.fallback_pattern:
            match = re.search(self.fallback_pattern, url)
            if match:
                return f"{self.fallback_prefix}{match.group(1)}"

        return ""


class SiteConfig(_Frozen):
    """Everything the engine needs to know about one marketplace."""

    site: str
    domain: str
    auth_mode: AuthMode = "anonymous"
    custom_auth_provider: Optional[str] = None
    selectors: SelectorSet
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    container_timeouts_ms: List[int] = Field(default_factory=lambda: [5000, 10000, 15000], min_length=1)
    navigation_timeout_ms: int = Field(default=30000, gt=0)
    render_delay_ms: int = Field(default=1000, ge=0)
    render_wait_selector: Optional[str] = None
    scroll: ScrollSettings = Field(default_factory=ScrollSettings)
    anti_detection: AntiDetectionSettings = Field(default_factory=AntiDetectionSettings)
    supported_url_patterns: List[str] = Field(default_factory=list)
    external_id: ExternalIdRule = Field(default_factory=ExternalIdRule)
    price_format: PriceFormat = "brl"
    base_url: Optional[str] = None
    no_results_patterns: List[str] = Field(default_factory=list)
    login_patterns: List[str] = Field(default_factory=list)
    checkpoint_patterns: List[str] = Field(default_factory=list)
    login_url_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_LOGIN_URL_PATTERNS))
    default_search_url: Optional[str] = None

    @field_validator("site")
    @classmethod
    def validate_site(cls, v: str) -> str:
        """Normalize site identifiers to upper case."""
        if not v.strip():
            raise ValueError("site cannot be empty")
        return v.strip().upper()

    @field_validator("supported_url_patterns")
    @classmethod
    def validate_url_patterns(cls, v: List[str]) -> List[str]:
        return _check_patterns(v)

    @cached_property
    def compiled_url_patterns(self) -> List[Pattern[str]]:
        return [re.compile(p, re.IGNORECASE) for p in self.supported_url_patterns]

    def supports_url(self, url: str) -> bool:
        """True when ``url`` matches one of the supported patterns.

        A site without patterns accepts every URL.
        """
        if not self.supported_url_patterns:
            return True
        return any(p.search(url) for p in self.compiled_url_patterns)

    def normalize_url(self, url: str) -> str:
        """Make a scraped (possibly relative) href absolute."""
        if not url:
            return ""
        if url.startswith("http"):
            return url
        if url.startswith("//"):
            return f"https:{url}"
        if not self.base_url:
            return url
        return f"{self.base_url.rstrip('/')}/{url.lstrip('/')}"
