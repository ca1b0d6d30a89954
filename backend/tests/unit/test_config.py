"""Tests for configuration functionality."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from voicetasks.core.config import Settings, get_settings, reload_settings
from voicetasks.core.matching import DEFAULT_CONFIG, get_matching_config


def test_settings_defaults() -> None:
    """Test that settings have correct defaults."""
    settings = Settings(env="development")

    assert settings.host_bind_address == "127.0.0.1"
    assert settings.host_port == 8000
    assert settings.log_level == "INFO"
    assert settings.openai_model == "gpt-4o"
    assert settings.openai_temperature == 0.1
    assert settings.graph_api_base_url == "https://graph.microsoft.com/v1.0"
    assert settings.microsoft_push_new_tasks is False
    assert settings.match_minimum_similarity == 0.5
    assert settings.match_containment_score == 0.8
    assert settings.is_debug is True

    assert settings.config_dir == settings.data_dir / "config"
    assert settings.database_dir == settings.data_dir / "database"
    assert settings.logs_dir == settings.data_dir / "logs"


def test_settings_from_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that settings can be loaded from environment variables."""
    monkeypatch.setenv("VOICETASKS_ENV", "production")
    monkeypatch.setenv("VOICETASKS_HOST_BIND_ADDRESS", "0.0.0.0")
    monkeypatch.setenv("VOICETASKS_HOST_PORT", "9000")

    settings = reload_settings()

    assert settings.env == "production"
    assert settings.host_bind_address == "0.0.0.0"
    assert settings.host_port == 9000
    assert settings.is_debug is False


def test_third_party_credentials_use_conventional_names(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("MICROSOFT_CLIENT_ID", "client-from-env")

    settings = reload_settings()

    assert settings.openai_api_key == "sk-test"
    assert settings.microsoft_client_id == "client-from-env"


def test_settings_from_env_file(tmp_path: Path) -> None:
    """Test that settings can be loaded from .env file."""
    env_file = tmp_path / ".env"
    env_file.write_text("VOICETASKS_HOST_PORT=8080\nVOICETASKS_LOG_LEVEL=DEBUG\n")

    settings = Settings(env="production", _env_file=str(env_file))

    assert settings.host_port == 8080
    assert settings.log_level == "DEBUG"
    assert settings.is_debug is True


def test_settings_from_json_file(settings: Settings) -> None:
    """Nested sections in settings.json are flattened into field names."""
    (settings.config_dir / "settings.json").write_text(
        json.dumps({"openai": {"model": "gpt-4o-mini"}, "match": {"minimum_similarity": 0.6}})
    )

    reloaded = reload_settings()

    assert reloaded.openai_model == "gpt-4o-mini"
    assert reloaded.match_minimum_similarity == 0.6


def test_env_vars_override_json_file(settings: Settings, monkeypatch: pytest.MonkeyPatch) -> None:
    (settings.config_dir / "settings.json").write_text(json.dumps({"host_port": 7000}))
    monkeypatch.setenv("VOICETASKS_HOST_PORT", "7100")

    assert reload_settings().host_port == 7100


def test_settings_validation() -> None:
    with pytest.raises(ValidationError):
        Settings(host_port=0)

    with pytest.raises(ValidationError):
        Settings(env="invalid")

    with pytest.raises(ValidationError):
        Settings(match_minimum_similarity=1.5)


def test_get_settings_singleton() -> None:
    assert get_settings() is get_settings()


def test_data_dir_creation(tmp_path: Path) -> None:
    """Test that data directories are created automatically."""
    settings = Settings(data_dir=tmp_path / "elsewhere")

    assert settings.config_dir.is_dir()
    assert settings.database_dir.is_dir()
    assert settings.logs_dir.is_dir()
    assert settings.database_file == settings.database_dir / "voicetasks.db"


def test_matching_config_follows_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    assert get_matching_config() is DEFAULT_CONFIG

    monkeypatch.setenv("VOICETASKS_MATCH_MINIMUM_SIMILARITY", "0.65")
    reload_settings()

    config = get_matching_config()
    assert config.minimum_similarity == 0.65
    assert config.containment_score == DEFAULT_CONFIG.containment_score
