"""Unit tests for configuration loading and validation."""

from pathlib import Path

import pytest
import yaml

from radar_engine.utils.config import (
    AppConfig,
    CaptchaConfig,
    DiagnosisConfig,
    RetryConfig,
    get_config,
    load_config,
)
from radar_engine.utils.exceptions import ConfigFileNotFoundError, ConfigurationError

SHIPPED_CONFIG = Path(__file__).parent.parent.parent / "config" / "config.yaml"


class TestSectionValidation:
    """Test validation of individual config sections."""

    def test_retry_defaults_match_scraping_preset(self):
        """Test retry defaults are the scraping preset."""
        config = RetryConfig()
        assert config.max_attempts == 7
        assert config.initial_delay == 3.0
        assert config.max_delay == 30.0

    def test_retry_initial_above_max(self):
        """Test the initial delay may not exceed the cap."""
        with pytest.raises(ValueError, match="initial_delay"):
            RetryConfig(initial_delay=60, max_delay=30)

    def test_captcha_service_normalized(self):
        """Test service names are case-insensitive."""
        assert CaptchaConfig(service="2Captcha").service == "2captcha"

    def test_captcha_service_invalid(self):
        """Test unknown services are rejected."""
        with pytest.raises(ValueError):
            CaptchaConfig(service="deathbycaptcha")

    def test_captcha_key_from_env(self, monkeypatch):
        """Test the API key falls back to CAPTCHA_API_KEY."""
        monkeypatch.setenv("CAPTCHA_API_KEY", "secret")
        assert CaptchaConfig(service="2captcha").api_key == "secret"

    def test_captcha_key_absent(self, monkeypatch):
        """Test no key when neither config nor env set one."""
        monkeypatch.delenv("CAPTCHA_API_KEY", raising=False)
        assert CaptchaConfig().api_key is None

    def test_diagnosis_thresholds_ordered(self):
        """Test the empty threshold cannot exceed the content threshold."""
        with pytest.raises(ValueError):
            DiagnosisConfig(empty_body_length=6000, content_body_length=5000)

    def test_log_level_normalized(self):
        """Test log levels are upper-cased and validated."""
        assert AppConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValueError):
            AppConfig(log_level="LOUD")


class TestLoadConfig:
    """Test loading configuration files."""

    def test_load_from_yaml(self, tmp_path):
        """Test loading configuration from YAML file."""
        config_data = {
            "browser": {"headless": False, "max_contexts": 2},
            "retry": {"max_attempts": 3, "initial_delay": 0.5, "max_delay": 2.0},
            "rate_limiter": {"max_wait_seconds": 120},
            "engine": {"max_crash_retries": 1},
            "sessions_file": "data/test_sessions.json",
            "log_level": "WARNING",
        }

        config_file = tmp_path / "test_config.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        config = load_config(config_file)

        assert config.browser.headless is False
        assert config.browser.max_contexts == 2
        assert config.retry.max_attempts == 3
        assert config.rate_limiter.max_wait_seconds == 120
        assert config.engine.max_crash_retries == 1
        assert config.sessions_file == "data/test_sessions.json"
        assert config.diagnosis.content_body_length == 5000
        assert config.log_level == "WARNING"

    def test_empty_file_uses_defaults(self, tmp_path):
        """Test an empty YAML file gives the default config."""
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")

        config = load_config(config_file)

        assert config.browser.max_contexts == 5
        assert config.sessions_file is None
        assert config.rate_limiter.max_wait_seconds is None

    def test_shipped_config(self):
        """Test the bundled config file loads."""
        config = load_config(SHIPPED_CONFIG)
        assert config.sites_file == "config/sites.yaml"
        assert config.rate_limiter.max_wait_seconds == 600
        assert config.captcha.service is None

    def test_env_var_path(self, tmp_path, monkeypatch):
        """Test RADAR_ENGINE_CONFIG selects the file."""
        config_file = tmp_path / "env.yaml"
        config_file.write_text("log_level: ERROR\n")
        monkeypatch.setenv("RADAR_ENGINE_CONFIG", str(config_file))

        assert load_config().log_level == "ERROR"

    def test_invalid_yaml(self, tmp_path):
        """Test error handling for invalid YAML."""
        config_file = tmp_path / "invalid.yaml"
        config_file.write_text("invalid: yaml: content:")

        with pytest.raises(ConfigurationError):
            load_config(config_file)

    def test_invalid_values(self, tmp_path):
        """Test schema violations become ConfigurationError."""
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("browser:\n  max_contexts: 0\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(config_file)
        assert exc_info.value.context["path"] == str(config_file)

    def test_missing_file(self):
        """Test error handling for missing config file."""
        with pytest.raises(ConfigFileNotFoundError):
            load_config("/nonexistent/config.yaml")

    def test_resolve_path(self):
        """Test relative paths resolve against the project root."""
        config = AppConfig()
        assert config.resolve_path("config/sites.yaml").is_absolute()
        assert config.resolve_path("/tmp/x.json") == Path("/tmp/x.json")


class TestConfigSingleton:
    """Test configuration singleton pattern."""

    def test_config_caching(self, tmp_path):
        """Test configuration is cached when loaded from file."""
        config_file = tmp_path / "singleton_test.yaml"
        config_file.write_text("log_level: DEBUG\n")

        config1 = get_config(config_file)
        config2 = get_config(config_file)

        assert config1 is config2
        assert config1.log_level == "DEBUG"

    def test_reload(self, tmp_path):
        """Test reload=True reads the file again."""
        config_file = tmp_path / "reload.yaml"
        config_file.write_text("log_level: DEBUG\n")
        first = get_config(config_file)

        config_file.write_text("log_level: ERROR\n")
        second = get_config(config_file, reload=True)

        assert first is not second
        assert second.log_level == "ERROR"
