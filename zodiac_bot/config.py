import os
import json
from pathlib import Path
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from zodiac_bot._errors import ConfigError

APP_NAME = "zodiac-bot"

# XDG Paths - Explicit XDG resolution so ~/.config/ is used even on macOS
CONFIG_DIR = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config")) / APP_NAME
DATA_DIR = Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share")) / APP_NAME
SETTINGS_FILE = CONFIG_DIR / "settings.json"

# Packaged content repository, complete for all twelve signs
DEFAULT_CONTENT_PATH = Path(__file__).resolve().parent / "data" / "content.yaml"


def _ensure_dirs() -> None:
    """Create config and data directories (idempotent)."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    DATA_DIR.mkdir(parents=True, exist_ok=True)


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class Settings(BaseModel):
    # Required at runtime (see require_runtime)
    discord_token: Optional[str] = Field(default=None, repr=False)
    # libpq DSN or key/value string, e.g. "postgresql://bot:pw@localhost/zodiac"
    db_connection: Optional[str] = Field(default=None, repr=False)

    # Commands
    command_prefix: str = Field(default="~")
    content_path: str = Field(default=str(DEFAULT_CONTENT_PATH))

    # Database handle
    db_pool_min: int = Field(default=1, ge=1)
    db_pool_max: int = Field(default=10, ge=1, le=100)
    db_timeout: float = Field(default=5.0, gt=0)
    keepalive_interval: float = Field(default=30.0, gt=0)

    # Behavior
    log_level: LogLevel = Field(default="INFO")
    theme: str = Field(default="light")
    tracing: bool = Field(default=False)

    @field_validator("command_prefix")
    @classmethod
    def _validate_prefix(cls, v: str) -> str:
        if not v or any(ch.isspace() for ch in v):
            raise ValueError(f"command_prefix must be non-empty without whitespace, got {v!r}")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "Settings":
        if self.db_pool_min > self.db_pool_max:
            raise ValueError(
                f"db_pool_min ({self.db_pool_min}) must not exceed db_pool_max ({self.db_pool_max})"
            )
        return self

    @model_validator(mode='before')
    @classmethod
    def fill_from_env(cls, data: dict) -> dict:
        """Env vars override all file-based values (highest precedence layer)."""
        env_map = {
            "discord_token": "DISCORD_TOKEN",
            "db_connection": "DB_CONNECTION",
            "command_prefix": "ZODIAC_BOT_PREFIX",
            "content_path": "ZODIAC_BOT_CONTENT_PATH",
            "db_pool_min": "ZODIAC_BOT_DB_POOL_MIN",
            "db_pool_max": "ZODIAC_BOT_DB_POOL_MAX",
            "db_timeout": "ZODIAC_BOT_DB_TIMEOUT",
            "keepalive_interval": "ZODIAC_BOT_KEEPALIVE_INTERVAL",
            "log_level": "ZODIAC_BOT_LOG_LEVEL",
            "theme": "ZODIAC_BOT_THEME",
            "tracing": "ZODIAC_BOT_TRACING",
        }

        for field, env_var in env_map.items():
            val = os.getenv(env_var)
            if val:
                data[field] = val
        return data

    def require_runtime(self) -> None:
        """Raise ConfigError unless both the bot token and DB descriptor are set."""
        missing = []
        if not self.discord_token:
            missing.append("DISCORD_TOKEN")
        if not self.db_connection:
            missing.append("DB_CONNECTION")
        if missing:
            raise ConfigError(
                f"Missing required configuration: {', '.join(missing)}. "
                f"Set the environment variable(s) or add them to {SETTINGS_FILE}."
            )


def find_project_config() -> Path | None:
    """Return .zodiac-bot/settings.json in cwd if it exists, else None."""
    candidate = Path.cwd() / ".zodiac-bot" / "settings.json"
    return candidate if candidate.is_file() else None


def load_config() -> Settings:
    data: dict = {}

    # Layer 1: User config (~/.config/zodiac-bot/settings.json)
    if SETTINGS_FILE.exists():
        with open(SETTINGS_FILE, "r") as f:
            try:
                data = json.load(f)
            except Exception as e:
                print(f"Error loading settings.json: {e}. Using defaults.")

    # Layer 2: Project config (<cwd>/.zodiac-bot/settings.json), shallow merge
    project_config = find_project_config()
    if project_config is not None:
        with open(project_config, "r") as f:
            try:
                data |= json.load(f)
            except Exception as e:
                print(f"Error loading project config {project_config}: {e}. Skipping.")

    # Layer 3: Env vars (handled by fill_from_env model_validator)
    return Settings.model_validate(data)


# Lazy settings singleton: directories created on first access, not at import time.
_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the global Settings instance, creating it on first call."""
    global _settings
    if _settings is None:
        _ensure_dirs()
        _settings = load_config()
    return _settings


def __getattr__(name: str):
    """Lazy module attribute: ``from zodiac_bot.config import settings`` works without import-time side effects."""
    if name == "settings":
        return get_settings()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
