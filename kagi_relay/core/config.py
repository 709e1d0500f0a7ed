"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Quota keys keep the flat ``QUERY_LIMIT_*`` names used by existing deployments
of the bot, so they are declared with explicit aliases instead of a prefix.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables, but
    static type checkers treat required fields as constructor arguments.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_kagi_settings() -> "KagiSettings":
    return KagiSettings()  # type: ignore[call-arg]


def _build_quota_settings() -> "QuotaSettings":
    return QuotaSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    identity_header: str = Field(
        "X-User-ID",
        description="Header carrying the invoking chat user's identity",
    )
    max_message_length: int = Field(
        2000,
        description="Maximum characters the chat platform accepts in one message",
        ge=100,
    )
    allow_direct_messages: bool = Field(
        True,
        description="Allow commands issued outside a guild (direct messages)",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class KagiSettings(BaseSettings):
    """Kagi API client configuration."""

    api_key: str | None = Field(
        None,
        description="Kagi API token, sent as 'Authorization: Bot <token>'",
    )
    base_url: str = Field(
        "https://kagi.com/api/v0",
        description="Base URL of the Kagi API",
    )
    timeout_seconds: float = Field(
        30.0,
        description="Request timeout in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="KAGI_",
        case_sensitive=False,
    )


class QuotaSettings(BaseSettings):
    """Raw quota settings.

    Limits and periods are kept as strings here and parsed by
    ``kagi_relay.quota.config.build_quota_configuration`` so that malformed
    values surface as a ConfigurationError rather than a settings error.
    """

    global_limit: str | None = Field("-1", validation_alias="QUERY_LIMIT_GLOBAL")
    global_period: str | None = Field(None, validation_alias="QUERY_LIMIT_GLOBAL_PERIOD")

    fastgpt_limit: str | None = Field(None, validation_alias="QUERY_LIMIT_FASTGPT")
    fastgpt_period: str | None = Field(None, validation_alias="QUERY_LIMIT_FASTGPT_PERIOD")
    websearch_limit: str | None = Field(None, validation_alias="QUERY_LIMIT_WEBSEARCH")
    websearch_period: str | None = Field(None, validation_alias="QUERY_LIMIT_WEBSEARCH_PERIOD")
    newssearch_limit: str | None = Field(None, validation_alias="QUERY_LIMIT_NEWSSEARCH")
    newssearch_period: str | None = Field(None, validation_alias="QUERY_LIMIT_NEWSSEARCH_PERIOD")
    summarize_limit: str | None = Field(None, validation_alias="QUERY_LIMIT_SUMMARIZE")
    summarize_period: str | None = Field(None, validation_alias="QUERY_LIMIT_SUMMARIZE_PERIOD")
    search_limit: str | None = Field(None, validation_alias="QUERY_LIMIT_SEARCH")
    search_period: str | None = Field(None, validation_alias="QUERY_LIMIT_SEARCH_PERIOD")

    persist: bool = Field(
        False,
        validation_alias="QUERY_LIMITS_PERSIST",
        description="Load usage records at startup and save them on every write",
    )
    data_file: str = Field(
        "data/query_records.json",
        validation_alias="QUERY_LIMITS_DATA_FILE",
        description="Location of the JSON usage record file",
    )
    privileged_users: str | None = Field(
        None,
        validation_alias="QUERY_LIMITS_PRIVILEGED_USERS",
        description="Comma-separated identities exempt from all limits",
    )
    compaction_interval_seconds: int = Field(
        3600,
        validation_alias="QUERY_LIMITS_COMPACTION_INTERVAL_SECONDS",
        description="Interval between retention compaction passes",
        ge=1,
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        populate_by_name=True,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate log file at this size (0 disables)")
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation id header")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Quota values are validated when the quota engine is built at startup.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    kagi: KagiSettings = Field(default_factory=_build_kagi_settings)
    quota: QuotaSettings = Field(default_factory=_build_quota_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
