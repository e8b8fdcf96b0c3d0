"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from src.config import Settings, get_settings


def test_defaults() -> None:
    settings = Settings()
    assert settings.cancel_label == "キャンセル"
    assert settings.relocate_label == "別日"
    assert settings.record_id_min_width == 3
    assert settings.share_token_length == 32
    assert settings.near_miss_threshold == 0.0


def test_environment_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings are read from environment variables."""
    monkeypatch.setenv("NEAR_MISS_THRESHOLD", "0.85")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    settings = Settings()

    assert settings.near_miss_threshold == 0.85
    assert settings.log_level == "DEBUG"


def test_validation() -> None:
    with pytest.raises(ValidationError):
        Settings(near_miss_threshold=1.5)
    with pytest.raises(ValidationError):
        Settings(share_token_length=8)


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()
