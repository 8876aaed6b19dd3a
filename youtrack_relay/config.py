"""Configuration management."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .dedup import DEFAULT_MAX_SIZE


@dataclass(frozen=True)
class TrackerConfig:
    """YouTrack API configuration."""
    base_url: str
    token: str
    project_id: str             # project used for issues created from chat
    timeout: Optional[float]    # None means no request timeout


@dataclass(frozen=True)
class TelegramConfig:
    """Telegram bot configuration."""
    token: str
    chat_id: int


@dataclass(frozen=True)
class PollingConfig:
    """Poll loop configuration."""
    interval_seconds: int
    dedup_max_size: int


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    tracker: TrackerConfig
    telegram: TelegramConfig
    polling: PollingConfig
    log_level: str = "INFO"


def _optional_float(key: str) -> Optional[float]:
    """Parse an optional float environment variable; empty means unset."""
    value = os.getenv(key, "").strip()
    if not value:
        return None
    return float(value)


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """
    Load configuration from environment variables.

    Values from ``env_file`` (or a ``.env`` in the working directory) are
    loaded first but never override variables already set in the process.

    Raises:
        ValueError: If required configuration values are missing or invalid.
    """
    load_dotenv(env_file)

    youtrack_url = os.getenv("YOUTRACK_URL")
    youtrack_token = os.getenv("YOUTRACK_TOKEN")
    youtrack_project_id = os.getenv("YOUTRACK_PROJECT_ID")
    telegram_token = os.getenv("TELEGRAM_TOKEN")
    telegram_chat_id = os.getenv("TELEGRAM_CHAT_ID")

    missing = []
    if not youtrack_url:
        missing.append("YOUTRACK_URL")
    if not youtrack_token:
        missing.append("YOUTRACK_TOKEN")
    if not youtrack_project_id:
        missing.append("YOUTRACK_PROJECT_ID")
    if not telegram_token:
        missing.append("TELEGRAM_TOKEN")
    if not telegram_chat_id:
        missing.append("TELEGRAM_CHAT_ID")

    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    try:
        chat_id = int(telegram_chat_id)
    except ValueError:
        raise ValueError(f"TELEGRAM_CHAT_ID must be an integer, got {telegram_chat_id!r}")

    poll_interval = int(os.getenv("POLL_INTERVAL", "60"))
    if poll_interval <= 0:
        raise ValueError(f"POLL_INTERVAL must be positive, got {poll_interval}")

    return AppConfig(
        tracker=TrackerConfig(
            base_url=youtrack_url.rstrip("/"),
            token=youtrack_token,
            project_id=youtrack_project_id,
            timeout=_optional_float("HTTP_TIMEOUT_SECONDS"),
        ),
        telegram=TelegramConfig(
            token=telegram_token,
            chat_id=chat_id,
        ),
        polling=PollingConfig(
            interval_seconds=poll_interval,
            dedup_max_size=int(os.getenv("DEDUP_MAX_SIZE", str(DEFAULT_MAX_SIZE))),
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
