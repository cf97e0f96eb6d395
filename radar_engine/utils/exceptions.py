"""
Custom exception hierarchy for the scraping engine.

Provides a structured exception hierarchy for different error scenarios:
- AppException: Base for all application errors
- ConfigError: Configuration-related errors
- ScraperError: Scrape failures, each tagged with an ErrorKind
- ValidationError: Input validation errors

Each exception includes:
- Descriptive message
- Optional error code for programmatic handling
- Optional context dictionary for debugging

Scraper errors are produced at the point of failure with an explicit
ErrorKind, so the engine and the retry helper branch on the tag rather
than on message text.

Example:
    >>> from radar_engine.utils.exceptions import BlockedError
    >>> raise BlockedError("WAF challenge", site="OLX", url=url)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Tag carried by every ScraperError."""

    AUTH_REQUIRED = "AUTH_REQUIRED"
    CRASH_DETECTED = "CRASH_DETECTED"
    BLOCKED = "BLOCKED"
    CAPTCHA_FAILED = "CAPTCHA_FAILED"
    AMBIGUOUS = "AMBIGUOUS"
    TRANSIENT = "TRANSIENT"
    UNSUPPORTED_TARGET = "UNSUPPORTED_TARGET"
    RATE_LIMITED = "RATE_LIMITED"

    @property
    def retryable(self) -> bool:
        """Whether the generic backoff may retry errors of this kind.

        Authentication errors go to the caller's circuit breaker and crash
        errors go to the engine's relaunch loop; neither waits on backoff.
        """
        return self not in _NON_RETRYABLE_KINDS


_NON_RETRYABLE_KINDS = frozenset({
    ErrorKind.AUTH_REQUIRED,
    ErrorKind.CRASH_DETECTED,
    ErrorKind.UNSUPPORTED_TARGET,
})


# ============================================
# Base Exception
# ============================================


class AppException(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this class, allowing:
    - Catch-all handling of application errors
    - Consistent error structure across the app
    - Error code and context support

    Attributes:
        message: Human-readable error description.
        code: Optional error code for programmatic handling.
        context: Optional dictionary with debugging context.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error description.
            code: Optional error code (e.g., "CONFIG_INVALID").
            context: Optional dict with additional debugging info.
        """
        self.message = message
        self.code = code or self._default_code()
        self.context = context or {}
        super().__init__(self.message)

    def _default_code(self) -> str:
        """Generate default error code from class name."""
        # Convert CamelCase to UPPER_SNAKE_CASE
        name = self.__class__.__name__
        code = ""
        for i, char in enumerate(name):
            if char.isupper() and i > 0:
                code += "_"
            code += char.upper()
        return code

    def __str__(self) -> str:
        """String representation with code if available."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
        }


# ============================================
# Configuration Errors
# ============================================


class ConfigError(AppException):
    """
    Base exception for configuration-related errors.

    Raised when there are issues with:
    - Loading configuration files
    - Parsing YAML
    - Validating configuration values
    """

    pass


class ConfigFileNotFoundError(ConfigError):
    """Raised when a required configuration file is not found."""

    def __init__(
        self,
        message: str = "Configuration file not found",
        path: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path
        super().__init__(message, code="CONFIG_FILE_NOT_FOUND", context=context, **kwargs)


class ConfigurationError(ConfigError):
    """
    Raised when configuration is invalid or cannot be parsed.

    Example:
        >>> raise ConfigurationError(
        ...     "Duplicate site in registry",
        ...     context={"site": "OLX"}
        ... )
    """

    def __init__(
        self,
        message: str = "Invalid configuration",
        **kwargs,
    ) -> None:
        super().__init__(message, code="CONFIG_INVALID", **kwargs)


class UnknownSiteError(ConfigError):
    """Raised when a site identifier has no registered SiteConfig."""

    def __init__(
        self,
        message: str = "Unknown site",
        site: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if site:
            context["site"] = site
        super().__init__(message, code="UNKNOWN_SITE", context=context, **kwargs)


# ============================================
# Scraper Errors
# ============================================


class ScraperError(AppException):
    """
    Base exception for scrape failures.

    Every subclass sets ``kind``; the retry helper consults
    ``kind.retryable`` and the engine maps the kind to a final page type.

    Attributes:
        kind: ErrorKind tag of this failure.
    """

    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        site: Optional[str] = None,
        url: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if site:
            context["site"] = site
        if url:
            context["url"] = url
        kwargs.setdefault("code", self.kind.value)
        super().__init__(message, context=context, **kwargs)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class UnsupportedTargetError(ScraperError):
    """Raised when a monitor URL does not match the site's allowed patterns."""

    kind = ErrorKind.UNSUPPORTED_TARGET


class UrlBuildError(UnsupportedTargetError):
    """Raised when a structured-filters monitor cannot be turned into a URL."""

    def __init__(self, message: str = "Cannot build search URL", **kwargs) -> None:
        kwargs.setdefault("code", "URL_BUILD_FAILED")
        super().__init__(message, **kwargs)


class AuthenticationRequiredError(ScraperError):
    """
    Raised when the target demands a login or an account checkpoint.

    Example:
        >>> raise AuthenticationRequiredError(
        ...     "FACEBOOK_MARKETPLACE account verification required",
        ...     page_type="CHECKPOINT",
        ...     site="FACEBOOK_MARKETPLACE",
        ... )
    """

    kind = ErrorKind.AUTH_REQUIRED

    def __init__(
        self,
        message: str = "Authentication required",
        page_type: str = "LOGIN_REQUIRED",
        **kwargs,
    ) -> None:
        self.page_type = page_type
        kwargs.setdefault("code", page_type)
        super().__init__(message, **kwargs)


class CaptchaError(ScraperError):
    """Raised when a CAPTCHA could not be cleared (no solver, failed, persists)."""

    kind = ErrorKind.CAPTCHA_FAILED

    def __init__(
        self,
        message: str = "Captcha not solved",
        reason: str = "CAPTCHA_FAILED",
        **kwargs,
    ) -> None:
        self.reason = reason
        kwargs.setdefault("code", reason)
        super().__init__(message, **kwargs)


class BlockedError(ScraperError):
    """Raised when a WAF or bot-mitigation page was served."""

    kind = ErrorKind.BLOCKED


class BrowserCrashError(ScraperError):
    """
    Raised when the shared browser process died or disconnected.

    Attributes:
        browser: The browser instance the failed attempt was using, when known.
    """

    kind = ErrorKind.CRASH_DETECTED

    def __init__(self, message: str, browser: Optional[Any] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.browser = browser


class TransientScrapeError(ScraperError):
    """Raised for timeouts, network errors and other retryable failures."""

    kind = ErrorKind.TRANSIENT


class NavigationError(TransientScrapeError):
    """Raised when navigation to the target URL fails."""

    def __init__(
        self,
        message: str = "Navigation failed",
        status_code: Optional[int] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if status_code:
            context["status_code"] = status_code
        self.status_code = status_code
        kwargs.setdefault("code", "NAVIGATION_ERROR")
        super().__init__(message, context=context, **kwargs)


class RateLimitError(ScraperError):
    """
    Raised when a rate-limit token could not be obtained in time.

    Example:
        >>> raise RateLimitError("Bucket starved", retry_after=60, site="OLX")
    """

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if retry_after:
            context["retry_after_seconds"] = retry_after
        super().__init__(message, context=context, **kwargs)


class BrowserManagerClosedError(ScraperError):
    """Raised when a context is requested after shutdown began."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, message: str = "Browser manager is shutting down", **kwargs) -> None:
        kwargs.setdefault("code", "BROWSER_MANAGER_CLOSED")
        super().__init__(message, **kwargs)


# ============================================
# Validation Errors
# ============================================


class ValidationError(AppException):
    """
    Base exception for input validation errors.

    Raised when monitor input or configuration data fails validation.
    """

    pass


class InvalidURLError(ValidationError):
    """Raised when URL is invalid."""

    def __init__(
        self,
        message: str = "Invalid URL",
        url: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url
        super().__init__(message, code="INVALID_URL", context=context, **kwargs)


def is_authentication_error(error: BaseException) -> bool:
    """True when the error is tagged as authentication-class."""
    return isinstance(error, ScraperError) and error.kind is ErrorKind.AUTH_REQUIRED


def is_browser_crash_error(error: BaseException) -> bool:
    """True when the error is tagged as a browser crash."""
    return isinstance(error, ScraperError) and error.kind is ErrorKind.CRASH_DETECTED
