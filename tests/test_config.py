"""
Tests for the configuration system.
"""
import os
from pathlib import Path

import pytest

from build_tracker.config import (
    LoggingConfig,
    PollingConfig,
    RegistryConfig,
    ServiceConfig,
    Settings,
    configure,
    get_settings,
    load_env,
)


class TestServiceConfig:
    """Test service configuration."""

    def test_defaults(self):
        config = ServiceConfig()

        assert config.base_url == "http://localhost:3000/"
        assert config.request_timeout == 10.0
        assert config.auth_token is None

    def test_trailing_slash_added(self):
        assert ServiceConfig(base_url="https://builds.example.com/api").base_url == (
            "https://builds.example.com/api/"
        )

    def test_validation(self):
        with pytest.raises(ValueError):
            ServiceConfig(base_url="ftp://builds.example.com/")
        with pytest.raises(ValueError):
            ServiceConfig(request_timeout=0)


class TestPollingConfig:
    """Test polling schedule configuration."""

    def test_defaults(self):
        config = PollingConfig()

        assert config.initial_delay == 10.0
        assert config.interval == 10.0
        assert config.max_interval is None
        assert config.max_poll_duration == 7200

    def test_validation(self):
        with pytest.raises(ValueError):
            PollingConfig(initial_delay=-1)
        with pytest.raises(ValueError):
            PollingConfig(interval=10, max_interval=5)
        with pytest.raises(ValueError):
            PollingConfig(backoff_factor=0.5)
        with pytest.raises(ValueError):
            PollingConfig(max_poll_duration=0)

    def test_unbounded_polling_allowed(self):
        assert PollingConfig(max_poll_duration=None).max_poll_duration is None


class TestRegistryConfig:
    """Test registry configuration."""

    def test_defaults(self):
        config = RegistryConfig()

        assert config.backend == "file"
        assert config.path.name == "registry.json"
        assert config.fallback_display_name == "Unknown Agent"

    def test_string_path_converted(self):
        config = RegistryConfig(path="~/builds.json")
        assert isinstance(config.path, Path)
        assert "~" not in str(config.path)

    def test_invalid_backend(self):
        with pytest.raises(ValueError, match="Invalid registry backend"):
            RegistryConfig(backend="sqlite")


class TestLoggingConfig:
    def test_invalid_level(self):
        with pytest.raises(ValueError):
            LoggingConfig(level="VERBOSE")

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            LoggingConfig(format="xml")


class TestSettings:
    """Test master settings."""

    def test_default_settings(self):
        settings = Settings.default()

        assert isinstance(settings.service, ServiceConfig)
        assert isinstance(settings.polling, PollingConfig)
        assert isinstance(settings.registry, RegistryConfig)
        assert isinstance(settings.logging, LoggingConfig)

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BUILD_TRACKER_BASE_URL", "https://builds.example.com")
        monkeypatch.setenv("BUILD_TRACKER_AUTH_TOKEN", "secret")
        monkeypatch.setenv("BUILD_TRACKER_POLL_INTERVAL", "15")
        monkeypatch.setenv("BUILD_TRACKER_POLL_MAX_INTERVAL", "60")
        monkeypatch.setenv("BUILD_TRACKER_POLL_MAX_DURATION", "off")
        monkeypatch.setenv("BUILD_TRACKER_REGISTRY_BACKEND", "Memory")
        monkeypatch.setenv("BUILD_TRACKER_REGISTRY_PATH", str(tmp_path / "r.json"))
        monkeypatch.setenv("BUILD_TRACKER_LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.service.base_url == "https://builds.example.com/"
        assert settings.service.auth_token == "secret"
        assert settings.polling.interval == 15.0
        assert settings.polling.max_interval == 60.0
        assert settings.polling.max_poll_duration is None
        assert settings.registry.backend == "memory"
        assert settings.registry.path == tmp_path / "r.json"
        assert settings.logging.level == "DEBUG"

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "tracker.yaml"
        path.write_text(
            "service:\n"
            "  base_url: https://builds.example.com/\n"
            "polling:\n"
            "  initial_delay: 5\n"
            "  max_poll_duration: null\n"
            "registry:\n"
            "  backend: redis\n"
            "  namespace: apk\n"
        )

        settings = Settings.from_file(path)

        assert settings.service.base_url == "https://builds.example.com/"
        assert settings.polling.initial_delay == 5
        assert settings.polling.max_poll_duration is None
        assert settings.registry.backend == "redis"
        assert settings.registry.namespace == "apk"

    def test_from_toml(self, tmp_path):
        path = tmp_path / "tracker.toml"
        path.write_text(
            "[polling]\n"
            "interval = 30\n"
            "\n"
            "[logging]\n"
            'format = "text"\n'
        )

        settings = Settings.from_file(path)

        assert settings.polling.interval == 30
        assert settings.logging.format == "text"

    def test_schema_rejects_unknown_keys(self, tmp_path):
        path = tmp_path / "tracker.yaml"
        path.write_text("polling:\n  intervall: 3\n")

        with pytest.raises(ValueError, match="Configuration validation failed"):
            Settings.from_file(path)

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "tracker.ini"
        path.write_text("")

        with pytest.raises(ValueError, match="Unsupported"):
            Settings.from_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Settings.from_file(tmp_path / "nope.yaml")

    def test_to_dict(self, tmp_path):
        settings = Settings(registry=RegistryConfig(path=tmp_path / "r.json"))
        data = settings.to_dict()

        assert data["registry"]["path"] == str(tmp_path / "r.json")
        assert data["polling"]["interval"] == 10.0


class TestGlobalSettings:
    """Test global configuration helpers."""

    def test_configure_replaces_sections(self):
        polling = PollingConfig(interval=3)
        settings = configure(Settings(), polling=polling)

        assert settings.polling is polling
        assert get_settings() is settings

    def test_load_env(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("BUILD_TRACKER_TEST_VALUE=loaded\n")
        monkeypatch.delenv("BUILD_TRACKER_TEST_VALUE", raising=False)

        assert load_env(str(env_file)) is True
        assert os.environ["BUILD_TRACKER_TEST_VALUE"] == "loaded"
        monkeypatch.delenv("BUILD_TRACKER_TEST_VALUE")
