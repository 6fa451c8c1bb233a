"""Configuration management for the Kan reminder scheduler."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_REPO_ROOT = Path(__file__).resolve().parents[1]
_DEFAULT_CONFIG_PATH = _REPO_ROOT / "config" / "kan-reminders.yml"
_USER_CONFIG_PATHS = [
    Path("~/.config/kan-reminders/config.yml").expanduser(),
    Path("/config/kan-reminders.yml"),
]
_USER_SECRETS_PATHS = [
    Path("~/.config/kan-reminders/secrets.yml").expanduser(),
    Path("/config/secrets.yml"),
]


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk, returning an empty mapping if missing."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def _yaml_settings_source(paths: list[Path]):
    """Create a Pydantic settings source for a list of YAML paths."""

    def source() -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for path in paths:
            merged.update(_load_yaml(path))
        return merged

    return source


def _set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    """Set a dotted-path value on a nested mapping, creating containers."""
    parts = path.split(".")
    cursor = target
    for key in parts[:-1]:
        node = cursor.get(key)
        if not isinstance(node, dict):
            node = {}
            cursor[key] = node
        cursor = node
    cursor[parts[-1]] = value


def _parse_env_value(raw: str, kind: str) -> Any:
    """Parse an environment value into the requested primitive type."""
    if kind == "int":
        return int(raw)
    if kind == "bool":
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    return raw


def _env_settings_source():
    """Create a settings source that maps environment variables to config keys."""
    mapping = {
        "ANTHROPIC_API_KEY": ("anthropic_api_key", "str"),
        "LOG_LEVEL": ("log_level", "str"),
        "LOG_JSON": ("log_json", "bool"),
        "DATABASE_URL": ("database.url", "str"),
        "KAN_BASE_URL": ("kan.base_url", "str"),
        "KAN_SERVICE_API_KEY": ("kan.api_key", "str"),
        "TELEGRAM_BOT_TOKEN": ("telegram.bot_token", "str"),
        "TELEGRAM_API_URL": ("telegram.api_url", "str"),
        "LLM_BASE_URL": ("llm.base_url", "str"),
        "LLM_TIMEOUT": ("llm.timeout", "int"),
        "LITELLM_MODEL": ("llm.model", "str"),
        "VAGUENESS_MODEL": ("vagueness.model", "str"),
        "REMINDER_INTERVAL_HOURS": ("reminders.interval_hours", "int"),
        "STALE_DAYS": ("reminders.stale_days", "int"),
        "REMINDER_RETENTION_DAYS": ("reminders.retention_days", "int"),
        "SPRINT_START_DATE": ("reminders.cycle_start_date", "str"),
        "MAX_CONCURRENT_WORKSPACES": ("reminders.max_concurrent_workspaces", "int"),
    }

    def source() -> dict[str, Any]:
        data: dict[str, Any] = {}
        for env_key, (path, kind) in mapping.items():
            raw = os.environ.get(env_key)
            if raw is None:
                continue
            _set_nested_value(data, path, _parse_env_value(raw, kind))
        return data

    return source


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite:///data/kan-reminders.db"


class HttpConfig(BaseModel):
    """Default timeouts for outbound HTTP calls."""

    timeout: int = 30
    connect_timeout: int = 10


class KanConfig(BaseModel):
    """Kan task board REST API configuration."""

    base_url: str = "https://tasks.xdeca.com"
    api_key: str | None = None


class TelegramConfig(BaseModel):
    """Telegram Bot API configuration."""

    bot_token: str | None = None
    api_url: str = "https://api.telegram.org"


class LlmConfig(BaseModel):
    """Language model routing settings."""

    model: str = "anthropic:claude-haiku-4-5"
    base_url: str | None = None
    timeout: int = 60


class VaguenessConfig(BaseModel):
    """Vagueness classifier settings."""

    model: str | None = None
    cache_ttl_hours: int = 24
    sweep_interval_seconds: int = 3600
    max_tokens: int = 150

    @field_validator("sweep_interval_seconds")
    @classmethod
    def validate_sweep_interval(cls, value: int) -> int:
        """Ensure the cache sweep interval is positive."""
        if value < 1:
            raise ValueError("vagueness.sweep_interval_seconds must be >= 1.")
        return value


class ReminderConfig(BaseModel):
    """Reminder scheduling configuration defaults."""

    interval_hours: int = 1
    stale_days: int = 14
    retention_days: int = 7
    cycle_start_date: str | None = None
    cycle_length_days: int = 14
    initial_delay_seconds: float = 5.0
    prune_hour: int = 3
    max_concurrent_workspaces: int = 8

    @field_validator("interval_hours")
    @classmethod
    def validate_interval_hours(cls, value: int) -> int:
        """Ensure the tick interval is positive."""
        if value < 1:
            raise ValueError("reminders.interval_hours must be >= 1.")
        return value

    @field_validator("stale_days")
    @classmethod
    def validate_stale_days(cls, value: int) -> int:
        """Ensure the stale threshold is positive."""
        if value < 1:
            raise ValueError("reminders.stale_days must be >= 1.")
        return value

    @field_validator("retention_days")
    @classmethod
    def validate_retention_days(cls, value: int) -> int:
        """Ensure the ledger retention horizon is positive."""
        if value < 1:
            raise ValueError("reminders.retention_days must be >= 1.")
        return value

    @field_validator("cycle_length_days")
    @classmethod
    def validate_cycle_length(cls, value: int) -> int:
        """Ensure the cycle is at least as long as the planning window."""
        if value < 2:
            raise ValueError("reminders.cycle_length_days must be >= 2.")
        return value

    @field_validator("initial_delay_seconds")
    @classmethod
    def validate_initial_delay(cls, value: float) -> float:
        """Ensure the startup delay is non-negative."""
        if value < 0:
            raise ValueError("reminders.initial_delay_seconds must be >= 0.")
        return value

    @field_validator("prune_hour")
    @classmethod
    def validate_prune_hour(cls, value: int) -> int:
        """Ensure the prune hour is a valid hour of day."""
        if not 0 <= value <= 23:
            raise ValueError("reminders.prune_hour must be between 0 and 23.")
        return value

    @field_validator("max_concurrent_workspaces")
    @classmethod
    def validate_max_concurrent_workspaces(cls, value: int) -> int:
        """Ensure at least one workspace can be processed at a time."""
        if value < 1:
            raise ValueError("reminders.max_concurrent_workspaces must be >= 1.")
        return value


class Settings(BaseSettings):
    """Application settings loaded from environment variables and YAML files."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Layer settings sources in descending order of precedence."""
        return (
            init_settings,
            _env_settings_source(),
            _yaml_settings_source(_USER_SECRETS_PATHS),
            _yaml_settings_source(_USER_CONFIG_PATHS),
            _yaml_settings_source([_DEFAULT_CONFIG_PATH]),
        )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # LLM Configuration
    anthropic_api_key: str | None = None
    llm: LlmConfig = Field(default_factory=LlmConfig)
    vagueness: VaguenessConfig = Field(default_factory=VaguenessConfig)

    # Collaborators
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    kan: KanConfig = Field(default_factory=KanConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)

    # Scheduling
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)

    def missing_credentials(self) -> list[str]:
        """Return the names of required startup credentials that are unset."""
        missing: list[str] = []
        if not self.telegram.bot_token:
            missing.append("TELEGRAM_BOT_TOKEN")
        if not self.kan.api_key:
            missing.append("KAN_SERVICE_API_KEY")
        return missing


# Global settings instance
settings = Settings()
