"""Configuration management system using Pydantic v2 and YAML.

This module provides type-safe configuration loading with validation
for the scraping engine. Per-site selector data lives in a separate
YAML file (see ``radar_engine.core.site_registry``).
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from radar_engine.utils.exceptions import ConfigFileNotFoundError, ConfigurationError


class BrowserConfig(BaseModel):
    """Configuration for the shared browser process."""

    headless: bool = Field(default=True, description="Run browser in headless mode")
    max_contexts: int = Field(default=5, ge=1, description="Maximum concurrent browser contexts")
    launch_args: list[str] = Field(
        default_factory=lambda: [
            "--disable-blink-features=AutomationControlled",
            "--disable-dev-shm-usage",
            "--no-sandbox",
        ],
        description="Extra Chromium launch arguments",
    )
    drain_timeout_seconds: float = Field(default=30.0, ge=0.0, description="Shutdown drain budget")
    drain_poll_seconds: float = Field(default=0.5, gt=0.0, description="Shutdown drain poll interval")


class RetryConfig(BaseModel):
    """Overrides for the ``scraping`` retry preset."""

    max_attempts: int = Field(default=7, ge=1)
    initial_delay: float = Field(default=3.0, ge=0.0, description="Seconds before the first retry")
    max_delay: float = Field(default=30.0, ge=0.0, description="Upper bound for any single delay")
    backoff_factor: float = Field(default=2.0, ge=1.0)

    @model_validator(mode='after')
    def validate_delays(self) -> 'RetryConfig':
        """Ensure the initial delay does not exceed the cap."""
        if self.initial_delay > self.max_delay:
            raise ValueError("initial_delay must not exceed max_delay")
        return self


class RateLimiterConfig(BaseModel):
    """Configuration for the per-site token buckets."""

    max_wait_seconds: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Give up on a token after this many seconds (None waits forever)",
    )


class CaptchaConfig(BaseModel):
    """Configuration for the external CAPTCHA solving service."""

    service: Optional[str] = Field(default=None, description="2captcha, anti-captcha or None")
    api_key: Optional[str] = Field(default=None, description="Falls back to CAPTCHA_API_KEY env var")
    poll_interval_seconds: float = Field(default=5.0, gt=0.0)
    max_polls: int = Field(default=24, ge=1)
    request_timeout_seconds: float = Field(default=30.0, gt=0.0)

    @field_validator('service')
    @classmethod
    def validate_service(cls, v: Optional[str]) -> Optional[str]:
        """Validate solver service name."""
        if v is None:
            return v
        valid_services = ["2captcha", "anti-captcha"]
        v_lower = v.lower()
        if v_lower not in valid_services:
            raise ValueError(f"Invalid captcha service. Choose from: {valid_services}")
        return v_lower

    @model_validator(mode='after')
    def resolve_api_key(self) -> 'CaptchaConfig':
        if self.api_key is None:
            self.api_key = os.environ.get('CAPTCHA_API_KEY') or None
        return self


class DiagnosisConfig(BaseModel):
    """Body-size and element-count thresholds used by page classification."""

    empty_body_length: int = Field(default=200, ge=0, description="Below this the page is EMPTY")
    content_body_length: int = Field(default=5000, ge=0, description="Above this the page is CONTENT")
    content_visible_elements: int = Field(default=50, ge=0, description="Above this the page is CONTENT")

    @model_validator(mode='after')
    def validate_thresholds(self) -> 'DiagnosisConfig':
        if self.empty_body_length > self.content_body_length:
            raise ValueError("empty_body_length must not exceed content_body_length")
        return self


class ForensicsConfig(BaseModel):
    """Configuration for failure screenshots."""

    enabled: bool = Field(default=True)
    directory: str = Field(default="./data/forensics", description="Directory for screenshots")


class EngineConfig(BaseModel):
    """Engine-level recovery knobs."""

    max_crash_retries: int = Field(default=2, ge=0, description="Browser relaunches per scrape")
    captcha_settle_ms: int = Field(default=3000, ge=0, description="Wait after a solved CAPTCHA")
    render_wait_timeout_ms: int = Field(default=10000, ge=0)


class AppConfig(BaseModel):
    """Root configuration model containing all sub-configurations."""

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    rate_limiter: RateLimiterConfig = Field(default_factory=RateLimiterConfig)
    captcha: CaptchaConfig = Field(default_factory=CaptchaConfig)
    diagnosis: DiagnosisConfig = Field(default_factory=DiagnosisConfig)
    forensics: ForensicsConfig = Field(default_factory=ForensicsConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    sites_file: str = Field(default="config/sites.yaml", description="Per-site configuration file")
    sessions_file: Optional[str] = Field(default=None, description="JSON session store (None keeps sessions in memory)")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Choose from: {valid_levels}")
        return v_upper

    def resolve_path(self, relative: str) -> Path:
        """Resolve a configured path against the project root."""
        path = Path(relative)
        if path.is_absolute():
            return path
        return PROJECT_ROOT / path


PROJECT_ROOT = Path(__file__).parent.parent.parent

# Singleton pattern for configuration
_config: Optional[AppConfig] = None


def load_config(config_path: Optional[Path | str] = None) -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to configuration file. Defaults to config/config.yaml
                    relative to project root, or RADAR_ENGINE_CONFIG env var

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigFileNotFoundError: If config file doesn't exist
        ConfigurationError: If configuration is invalid
    """
    if config_path is None:
        env_config_path = os.environ.get('RADAR_ENGINE_CONFIG')
        if env_config_path:
            config_path = Path(env_config_path)
        else:
            config_path = PROJECT_ROOT / "config" / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigFileNotFoundError(
            f"Configuration file not found: {config_path}. "
            f"Set the RADAR_ENGINE_CONFIG environment variable to the config file path.",
            path=str(config_path),
        )

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f) or {}
        return AppConfig.model_validate(config_dict)
    except (yaml.YAMLError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid configuration in {config_path}: {e}",
            context={"path": str(config_path)},
        ) from e


def get_config(config_path: Optional[Path | str] = None, reload: bool = False) -> AppConfig:
    """Get configuration instance (singleton pattern).

    Args:
        config_path: Path to configuration file (only used on first call or if reload=True)
        reload: Force reload of configuration

    Returns:
        Cached or newly loaded AppConfig instance
    """
    global _config

    if _config is None or reload:
        _config = load_config(config_path)

    return _config


def reset_config() -> None:
    """Reset cached configuration (useful for testing)."""
    global _config
    _config = None
