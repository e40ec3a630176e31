# tests/test_settings.py
from __future__ import annotations

from datetime import time

import pytest
from pydantic import ValidationError

from upvista_core.core.settings import Settings

REQUIRED = {
    "supabase_url": "https://project.supabase.co/",
    "supabase_service_role_key": "service-key",
    "jwt_secret": "secret",
}


def make_settings(**overrides: object) -> Settings:
    return Settings(_env_file=None, **{**REQUIRED, **overrides})  # type: ignore[arg-type]


def test_defaults_and_normalisation() -> None:
    config = make_settings()

    assert config.supabase_url == "https://project.supabase.co"
    assert config.storage_base_url == "https://project.supabase.co/storage/v1"
    assert config.data_provider == "supabase"
    assert config.feed_default_limit == 20
    assert config.trending_decay_hours == 24.0
    assert config.digest_at == time(9, 0)


def test_provider_is_case_insensitive_and_checked() -> None:
    assert make_settings(data_provider=" Supabase ").data_provider == "supabase"
    with pytest.raises(ValidationError, match="unsupported data provider"):
        make_settings(data_provider="firebase")


def test_unknown_options_are_rejected() -> None:
    with pytest.raises(ValidationError):
        make_settings(not_a_setting=True)


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FEED_MAX_LIMIT", "50")
    monkeypatch.setenv("CLEANUP_AT", "04:30")
    monkeypatch.setenv("CORS_ORIGINS", '["https://upvista.example"]')

    config = make_settings()

    assert config.feed_max_limit == 50
    assert config.cleanup_at == time(4, 30)
    assert config.cors_origins == ["https://upvista.example"]


def test_weekday_bounds() -> None:
    with pytest.raises(ValidationError):
        make_settings(digest_weekly_weekday=7)
