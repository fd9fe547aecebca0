"""
Configuration for the signal ingestion service.

This module handles loading configuration from environment variables
with sensible defaults.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes")


@dataclass
class TelegramConfig:
    """Telegram credentials and channel selection."""

    bot_token: str = field(default_factory=lambda: os.getenv("TELEGRAM_BOT_TOKEN", ""))
    api_id: int = field(default_factory=lambda: _env_int("TELEGRAM_API_ID", 0))
    api_hash: str = field(default_factory=lambda: os.getenv("TELEGRAM_API_HASH", ""))
    # Username of the public channel, without "@"
    channel: str = field(
        default_factory=lambda: os.getenv("TELEGRAM_CHANNEL", "EyadTraderBot2").lstrip("@")
    )
    session_name: str = field(
        default_factory=lambda: os.getenv("TELEGRAM_SESSION_NAME", "signal_ingest_session")
    )
    api_base: str = field(
        default_factory=lambda: os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org")
    )
    poll_limit: int = field(default_factory=lambda: _env_int("TELEGRAM_POLL_LIMIT", 100))
    webhook_url: str = field(default_factory=lambda: os.getenv("TELEGRAM_WEBHOOK_URL", ""))


@dataclass
class SourceConfig:
    """Which upstream the ingestion loop pulls from."""

    kind: str = field(default_factory=lambda: os.getenv("SIGNAL_SOURCE", "bot_api"))
    rss_bridge_url: str = field(
        default_factory=lambda: os.getenv(
            "RSS_BRIDGE_URL", "https://rsshub.app/telegram/channel/{channel}"
        )
    )
    channel_page_url: str = field(
        default_factory=lambda: os.getenv("CHANNEL_PAGE_URL", "https://t.me/s/{channel}")
    )
    timeout_seconds: float = field(
        default_factory=lambda: _env_float("FETCH_TIMEOUT_SECONDS", 10.0)
    )
    retries: int = field(default_factory=lambda: _env_int("FETCH_RETRIES", 2))


@dataclass
class IngestionConfig:
    """Lock, cursor and stall recovery settings for one ingestion cycle."""

    lock_ttl_seconds: int = field(default_factory=lambda: _env_int("INGEST_LOCK_TTL_SECONDS", 7))
    cursor_key: str = field(
        default_factory=lambda: os.getenv("INGEST_CURSOR_KEY", "fast_telegram_offset")
    )
    lock_key: str = field(default_factory=lambda: os.getenv("INGEST_LOCK_KEY", "tg_updates_lock"))
    empty_key: str = field(
        default_factory=lambda: os.getenv("INGEST_EMPTY_KEY", "fast_telegram_empty")
    )
    stall_threshold: int = field(default_factory=lambda: _env_int("INGEST_STALL_THRESHOLD", 3))
    stall_window_seconds: int = field(
        default_factory=lambda: _env_int("INGEST_STALL_WINDOW_SECONDS", 60)
    )
    initial_cursor: int = field(default_factory=lambda: _env_int("INGEST_INITIAL_CURSOR", 0))


@dataclass
class ReconcileConfig:
    """Result reconciliation window."""

    window_policy: str = field(
        default_factory=lambda: os.getenv("RECONCILE_WINDOW_POLICY", "lookback")
    )
    lookback_minutes: int = field(
        default_factory=lambda: _env_int("RECONCILE_LOOKBACK_MINUTES", 120)
    )
    entry_window_minutes: int = field(
        default_factory=lambda: _env_int("RECONCILE_ENTRY_WINDOW_MINUTES", 20)
    )
    day_rollover_hours: int = field(
        default_factory=lambda: _env_int("RECONCILE_DAY_ROLLOVER_HOURS", 6)
    )


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: str = field(default_factory=lambda: os.getenv("DATABASE_PATH", "signals.db"))


@dataclass
class APIConfig:
    """API server configuration."""

    host: str = field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("API_PORT", 8000))
    cors_origins: list[str] = field(
        default_factory=lambda: os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    )
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG"))


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    file: str = field(default_factory=lambda: os.getenv("LOG_FILE", ""))
    max_mb: int = field(default_factory=lambda: _env_int("LOG_MAX_MB", 5))
    backups: int = field(default_factory=lambda: _env_int("LOG_BACKUPS", 5))


@dataclass
class RunnerConfig:
    """Polling runner configuration."""

    poll_interval_seconds: float = field(
        default_factory=lambda: _env_float("POLL_INTERVAL_SECONDS", 7.0)
    )
    max_backoff_seconds: float = field(
        default_factory=lambda: _env_float("MAX_BACKOFF_SECONDS", 300.0)
    )


@dataclass
class AppConfig:
    """Main configuration combining all configs."""

    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    reconcile: ReconcileConfig = field(default_factory=ReconcileConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)


# Global config instance
config = AppConfig()
