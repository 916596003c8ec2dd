"""Unit tests for settings and provider mode resolution."""

from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from adstudio.config.provider_modes import effective_generation_provider, provider_mode_reason
from adstudio.config.settings import Settings, get_settings, reset_settings_cache, settings


def test_test_environment_is_applied():
    assert settings.environment == "test"
    assert settings.generation_provider == "fake"
    assert settings.api_key == "test-api-key"


def test_defaults(monkeypatch):
    monkeypatch.delenv("GENERATION_PROVIDER", raising=False)
    cfg = Settings(_env_file=None)

    assert cfg.generation_provider == "real"
    assert cfg.generation_timeout_seconds == 1800
    assert cfg.segment_count == 4
    assert cfg.circuit_breaker_enabled is True


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("GENERATION_TIMEOUT_SECONDS", "90")
    monkeypatch.setenv("RECONCILE_CONCURRENCY", "8")

    cfg = Settings(_env_file=None)

    assert cfg.generation_timeout_seconds == 90
    assert cfg.reconcile_concurrency == 8


@pytest.mark.parametrize("field", ["generation_timeout_seconds", "reconcile_batch_size", "segment_count"])
def test_non_positive_values_rejected(field):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: 0})


def test_default_api_key_rejected_in_production(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")

    with pytest.raises(ValidationError):
        Settings(_env_file=None, api_key="dev-api-key")


def test_settings_cache_reset(monkeypatch):
    first = get_settings()
    assert get_settings() is first

    monkeypatch.setenv("SEGMENT_COUNT", "6")
    reset_settings_cache()
    try:
        assert get_settings().segment_count == 6
    finally:
        monkeypatch.delenv("SEGMENT_COUNT")
        reset_settings_cache()


@pytest.mark.parametrize(
    "mode,use_fake,expected",
    [
        ("real", False, "real"),
        ("real", True, "fake"),
        ("fake", False, "fake"),
        ("off", True, "off"),
        ("REAL", "yes", "fake"),
        ("bogus", False, "real"),
    ],
)
def test_effective_generation_provider(mode, use_fake, expected):
    cfg = SimpleNamespace(generation_provider=mode, use_fake_providers=use_fake)

    assert effective_generation_provider(cfg) == expected


@pytest.mark.parametrize(
    "values,expected",
    [
        ({"generation_provider": "real", "use_fake_providers": True}, "USE_FAKE_PROVIDERS overrides GENERATION_PROVIDER=real"),
        ({"generation_provider": "real", "wavespeed_api_key": ""}, "GENERATION_PROVIDER=real (WAVESPEED_API_KEY missing)"),
        ({"generation_provider": "real", "wavespeed_api_key": "k"}, "GENERATION_PROVIDER=real"),
        ({"generation_provider": "off", "use_fake_providers": True}, "GENERATION_PROVIDER=off"),
    ],
)
def test_provider_mode_reason(values, expected):
    assert provider_mode_reason(SimpleNamespace(**values)) == expected
