from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.config import Settings, get_settings, reset_settings_cache


def test_defaults_disable_optional_transports() -> None:
    settings = Settings(_env_file=None)

    assert settings.sendgrid_api_key is None
    assert settings.sms_gateway_url is None
    assert settings.dispatch_sweep_interval_seconds == 60
    assert settings.cors_origin_list == ["*"]


def test_sendgrid_requires_key_and_sender_together() -> None:
    with pytest.raises(ValidationError, match="must both be provided"):
        Settings(_env_file=None, sendgrid_api_key="SG.fake")


def test_sendgrid_sender_must_look_like_an_address() -> None:
    with pytest.raises(ValidationError, match="valid email"):
        Settings(_env_file=None, sendgrid_api_key="SG.fake", sendgrid_sender="nobody")


def test_cors_origins_are_split_and_trimmed() -> None:
    settings = Settings(_env_file=None, cors_origins="https://a.example.com, https://b.example.com,")

    assert settings.cors_origin_list == ["https://a.example.com", "https://b.example.com"]
    assert Settings(_env_file=None, cors_origins="").cors_origin_list == []


def test_settings_are_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "7")
    reset_settings_cache()
    try:
        assert get_settings().retry_max_attempts == 7
    finally:
        reset_settings_cache()
