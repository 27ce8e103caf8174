"""Functional tests for configuration precedence and validation.

Tests exercise real load_config(), no mocks.
"""

import json
import pytest
from pydantic import ValidationError

from zodiac_bot._errors import ConfigError
from zodiac_bot.config import DEFAULT_CONTENT_PATH, find_project_config, load_config, Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "DISCORD_TOKEN", "DB_CONNECTION", "ZODIAC_BOT_PREFIX", "ZODIAC_BOT_CONTENT_PATH",
        "ZODIAC_BOT_DB_POOL_MIN", "ZODIAC_BOT_DB_POOL_MAX", "ZODIAC_BOT_LOG_LEVEL",
        "ZODIAC_BOT_THEME", "ZODIAC_BOT_TRACING",
    ):
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    settings = Settings()
    assert settings.command_prefix == "~"
    assert settings.content_path == str(DEFAULT_CONTENT_PATH)
    assert settings.discord_token is None
    assert settings.tracing is False


def test_project_config_overrides_user(tmp_path, monkeypatch):
    """Project .zodiac-bot/settings.json overrides user settings for the same key."""
    user_settings = tmp_path / "user" / "settings.json"
    user_settings.parent.mkdir(parents=True)
    user_settings.write_text(json.dumps({"command_prefix": "!", "db_pool_max": 5}))

    project_dir = tmp_path / "project" / ".zodiac-bot"
    project_dir.mkdir(parents=True)
    (project_dir / "settings.json").write_text(json.dumps({"command_prefix": "$"}))

    monkeypatch.setattr("zodiac_bot.config.SETTINGS_FILE", user_settings)
    monkeypatch.chdir(tmp_path / "project")

    settings = load_config()
    assert settings.command_prefix == "$"
    assert settings.db_pool_max == 5


def test_env_overrides_project_config(tmp_path, monkeypatch):
    project_dir = tmp_path / ".zodiac-bot"
    project_dir.mkdir()
    (project_dir / "settings.json").write_text(json.dumps({"command_prefix": "$"}))

    monkeypatch.setattr("zodiac_bot.config.SETTINGS_FILE", tmp_path / "nonexistent.json")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ZODIAC_BOT_PREFIX", "?")
    monkeypatch.setenv("DB_CONNECTION", "postgresql://bot@localhost/zodiac")

    settings = load_config()
    assert settings.command_prefix == "?"
    assert settings.db_connection == "postgresql://bot@localhost/zodiac"


def test_malformed_project_config_skipped(tmp_path, monkeypatch, capsys):
    project_dir = tmp_path / ".zodiac-bot"
    project_dir.mkdir()
    (project_dir / "settings.json").write_text("{not json")

    monkeypatch.setattr("zodiac_bot.config.SETTINGS_FILE", tmp_path / "nonexistent.json")
    monkeypatch.chdir(tmp_path)

    settings = load_config()
    assert settings.command_prefix == "~"
    assert "Error loading project config" in capsys.readouterr().out


def test_find_project_config_absent(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert find_project_config() is None


def test_prefix_rejects_whitespace():
    with pytest.raises(ValidationError):
        Settings(command_prefix="! ")
    with pytest.raises(ValidationError):
        Settings(command_prefix="")


def test_pool_bounds_validated():
    with pytest.raises(ValidationError):
        Settings(db_pool_min=5, db_pool_max=2)


def test_log_level_case_insensitive():
    assert Settings(log_level="debug").log_level == "DEBUG"


def test_require_runtime_lists_missing():
    with pytest.raises(ConfigError) as exc_info:
        Settings().require_runtime()
    assert "DISCORD_TOKEN" in str(exc_info.value)
    assert "DB_CONNECTION" in str(exc_info.value)

    with pytest.raises(ConfigError) as exc_info:
        Settings(discord_token="abc").require_runtime()
    assert "DISCORD_TOKEN" not in str(exc_info.value)
    assert "DB_CONNECTION" in str(exc_info.value)


def test_require_runtime_passes_when_configured():
    Settings(discord_token="abc", db_connection="postgresql://localhost/zodiac").require_runtime()


def test_secrets_hidden_from_repr():
    settings = Settings(discord_token="secret-token", db_connection="postgresql://u:pw@h/db")
    assert "secret-token" not in repr(settings)
    assert "pw@h" not in repr(settings)
