"""Unit tests for waymark.settings and waymark.logging_config."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from waymark.logging_config import JsonLineFormatter, configure_logging
from waymark.settings.config import PROJECT_ROOT, Settings, get_settings


class TestSettings:
    """TOML layering and environment overrides."""

    def test_defaults_from_toml(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("WAYMARK_ENV", raising=False)
        settings = Settings()
        assert settings.env == "local"
        assert settings.locator.default_timeout_ms == 10_000
        assert settings.stability.poll_interval_ms == 100
        assert settings.stability.history_size == 50
        assert settings.browser.headless is True

    def test_env_profile_layered(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WAYMARK_ENV", "dev")
        settings = Settings()
        assert settings.debug is True
        assert settings.browser.headless is False
        assert settings.logging.level == "DEBUG"
        # untouched keys keep their defaults
        assert settings.browser.timeout_ms == 30_000

    def test_env_var_overrides_toml(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WAYMARK_STABILITY__GRACE_MS", "250")
        monkeypatch.setenv("WAYMARK_LOCATOR__RETRY_COUNT", "3")
        settings = Settings()
        assert settings.stability.grace_ms == 250
        assert settings.locator.retry_count == 3

    def test_relative_paths_resolved(self) -> None:
        settings = Settings()
        assert Path(settings.journey.journey_dir) == PROJECT_ROOT / "config" / "journeys"
        assert Path(settings.browser.video_dir).is_absolute()

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


class TestLogging:
    """Logging configuration."""

    def test_json_formatter(self) -> None:
        record = logging.LogRecord("waymark.test", logging.WARNING, __file__, 1, "hello %s", ("world",), None)
        entry = json.loads(JsonLineFormatter().format(record))
        assert entry["severity"] == "WARNING"
        assert entry["message"] == "hello world"
        assert entry["logger"] == "waymark.test"

    def test_configure_logging_levels(self) -> None:
        root = logging.getLogger()
        saved_level, saved_handlers = root.level, root.handlers[:]
        try:
            configure_logging("debug")
            assert root.level == logging.DEBUG
            assert logging.getLogger("playwright").level == logging.WARNING
            configure_logging("INFO", json_format=True)
            assert isinstance(root.handlers[0].formatter, JsonLineFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
