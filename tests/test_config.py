"""Tests for environment-driven settings."""

from uiflow.config import Settings
from uiflow.core.workflow import FailurePolicy, RunConfig


def test_reads_prefixed_environment(monkeypatch) -> None:
    monkeypatch.setenv("UIFLOW_STEP_TIMEOUT_MS", "1500")
    monkeypatch.setenv("UIFLOW_FAILURE_POLICY", "continue_on_failure")
    monkeypatch.setenv("UIFLOW_LOGIN_PASSWORD", "s3cret")

    settings = Settings()

    assert settings.step_timeout_ms == 1500
    assert "s3cret" not in repr(settings)
    assert settings.login_password.get_secret_value() == "s3cret"
    assert RunConfig.from_settings(settings).failure_policy == FailurePolicy.CONTINUE_ON_FAILURE


def test_only_runner_settings_are_declared(monkeypatch) -> None:
    monkeypatch.setenv("UIFLOW_APP_ENV", "production")

    settings = Settings()

    assert "app_env" not in Settings.model_fields
    assert not hasattr(settings, "is_production")
