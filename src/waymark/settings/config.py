"""Configuration loader for Waymark using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (WAYMARK_* with __ for nesting)
  3. settings.local.toml
  4. settings.{env}.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("WAYMARK_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "WAYMARK_ENV"
DEFAULT_ENV = "local"


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class LocatorSettings(BaseSettings):
    """Selector resolution defaults."""

    model_config = SettingsConfigDict(env_prefix="WAYMARK_LOCATOR__")

    default_timeout_ms: int = 10_000
    retry_count: int = 0
    retry_interval_ms: int = 1_000
    min_strategy_timeout_ms: int = 100
    visibility_timeout_ms: int = 1_000
    fallback_viewport_width: int = 1280
    fallback_viewport_height: int = 720


class StabilitySettings(BaseSettings):
    """Page stability sampling parameters."""

    model_config = SettingsConfigDict(env_prefix="WAYMARK_STABILITY__")

    timeout_ms: int = 30_000
    poll_interval_ms: int = 100
    grace_ms: int = 500
    mutation_sample_ms: int = 100
    mutation_threshold: int = 10
    network_idle_ms: int = 500
    network_busy_cap_ms: int = 10_000
    action_stability_timeout_ms: int = 5_000
    max_retries: int = 2
    retry_delay_ms: int = 1_000
    post_check_delay_ms: int = 500
    history_size: int = 50


class JourneySettings(BaseSettings):
    """Journey execution defaults."""

    model_config = SettingsConfigDict(env_prefix="WAYMARK_JOURNEY__")

    interaction_timeout_ms: int = 5_000
    element_timeout_ms: int = 10_000
    navigate_timeout_ms: int = 30_000
    wait_condition_timeout_ms: int = 10_000
    step_condition_timeout_ms: int = 1_000
    handle_action_timeout_ms: int = 2_000
    form_timeout_ms: int = 5_000
    submit_timeout_ms: int = 5_000
    retry_backoff_ms: int = 500
    typing_delay_ms: int = 50
    max_plausible_timeout_ms: int = 60_000
    journey_dir: str = "config/journeys"


class BrowserSettings(BaseSettings):
    """Playwright browser settings."""

    model_config = SettingsConfigDict(env_prefix="WAYMARK_BROWSER__")

    headless: bool = True
    timeout_ms: int = 30_000
    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str = ""
    record_video: bool = False
    video_dir: str = "data/recordings"
    sandbox: bool = True


class LoggingSettings(BaseSettings):
    """Logging output configuration."""

    model_config = SettingsConfigDict(env_prefix="WAYMARK_LOGGING__")

    level: str = "INFO"
    json_format: bool = False


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root Waymark settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="WAYMARK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False

    locator: LocatorSettings = Field(default_factory=LocatorSettings)
    stability: StabilitySettings = Field(default_factory=StabilitySettings)
    journey: JourneySettings = Field(default_factory=JourneySettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths against project_root."""
        root = self.project_root
        if not Path(self.browser.video_dir).is_absolute():
            self.browser.video_dir = str(root / self.browser.video_dir)
        if not Path(self.journey.journey_dir).is_absolute():
            self.journey.journey_dir = str(root / self.journey.journey_dir)
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
