"""
Application configuration settings.

Centralizes all configuration parameters for the stock journal.
Supports environment-based configuration and sensible defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    path: Path = field(default_factory=lambda: Path("db/journal.db"))

    @property
    def url(self) -> str:
        """SQLAlchemy connection URL."""
        # Prefer direct URL if provided in environment
        env_url = os.environ.get("JOURNAL_DB_URL") or os.environ.get("DATABASE_URL")
        if env_url:
            return env_url

        return f"sqlite:///{self.path}"


@dataclass(frozen=True)
class PositionConfig:
    """Position bookkeeping rules."""
    # Current price floor applied on every price update
    min_current_price: float = 0.01

    # Size of top/worst/largest rankings
    ranking_size: int = 5


@dataclass(frozen=True)
class QuoteConfig:
    """Market data provider configuration."""
    # Yahoo Finance settings
    yfinance_timeout: int = 10
    yfinance_max_retries: int = 2

    # Cached quotes older than this are still served as stale fallbacks,
    # but logged as such
    stale_after_seconds: int = 900

    search_limit: int = 10

    # Seed for synthetic demo history (None = random each call)
    demo_seed: int | None = None


@dataclass(frozen=True)
class AlertConfig:
    """Price alert engine configuration."""
    poll_interval_seconds: float = 60.0
    quote_timeout_seconds: float = 10.0
    confirmation_prefix: str = "alert_set_"


@dataclass(frozen=True)
class NotificationConfig:
    """Notification delivery configuration."""
    telegram_token: str | None = None
    telegram_chat_id: str | None = None
    timeout: int = 10


@dataclass(frozen=True)
class FormatConfig:
    """Number formatting for CLI output."""
    decimal_places: int = 2
    percentage_decimal_places: int = 2


@dataclass
class Config:
    """
    Main configuration container.

    Usage:
        from config import config
        interval = config.alerts.poll_interval_seconds
    """
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    positions: PositionConfig = field(default_factory=PositionConfig)
    quotes: QuoteConfig = field(default_factory=QuoteConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    formatting: FormatConfig = field(default_factory=FormatConfig)

    # Base paths
    project_root: ClassVar[Path] = Path(__file__).parent

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create config from environment variables.

        Supports overrides via:
        - JOURNAL_DB_PATH: Custom database path
        - JOURNAL_ALERT_INTERVAL: Alert polling interval in seconds
        - TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID: Telegram delivery
        """
        db_path_env = os.getenv("JOURNAL_DB_PATH")
        db_config = DatabaseConfig(
            path=Path(db_path_env) if db_path_env else DatabaseConfig().path
        )

        interval_env = os.getenv("JOURNAL_ALERT_INTERVAL")
        alert_config = AlertConfig(
            poll_interval_seconds=float(interval_env) if interval_env else AlertConfig().poll_interval_seconds
        )

        notification_config = NotificationConfig(
            telegram_token=os.getenv("TELEGRAM_BOT_TOKEN"),
            telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID"),
        )

        return cls(
            database=db_config,
            alerts=alert_config,
            notifications=notification_config,
        )


# Global config instance
config = Config.from_env()
