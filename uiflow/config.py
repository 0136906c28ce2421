"""
Application configuration management using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runner settings loaded from environment variables (prefix ``UIFLOW_``)."""

    model_config = SettingsConfigDict(
        env_prefix="UIFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Playwright
    playwright_browser: Literal["chromium", "firefox", "webkit"] = "chromium"
    playwright_headless: bool = True
    playwright_timeout: int = 30000  # milliseconds
    playwright_slow_mo: int = 0
    playwright_test_id_attribute: str = "data-testid"

    # Runner defaults
    step_timeout_ms: int = Field(default=30000, ge=0)
    run_timeout_ms: int = Field(default=300000, ge=0)
    failure_policy: Literal["stop_on_failure", "continue_on_failure"] = "stop_on_failure"
    poll_interval_ms: int = Field(default=100, gt=0)

    # Fixtures
    fixture_seed: int | None = None
    fixture_locale: str = "pt_BR"

    # Target application. Credentials are injected, never hardcoded.
    base_url: str = ""
    login_email: str = ""
    login_password: SecretStr = SecretStr("")

    # Storage
    screenshot_dir: str = "./screenshots"
    screenshot_on_failure: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
