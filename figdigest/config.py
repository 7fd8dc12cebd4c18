"""
Centralized configuration for figdigest.

All configuration is loaded from environment variables with sensible defaults.
Secrets (encryption key, Slack webhook URL) have no defaults.

Usage:
    from figdigest.config import get_config
    cfg = get_config()
    print(cfg.redis.url)            # "redis://127.0.0.1:6379/0"
    print(cfg.digest.concurrency)   # 3
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from figdigest.errors import ConfigError

DIGEST_FORMATS = ("per-event", "daily-recap")

T = TypeVar("T", int, float)


@dataclass(frozen=True)
class RedisConfig:
    """Key-value store connection parameters."""

    url: str = "redis://127.0.0.1:6379/0"


@dataclass(frozen=True)
class FigmaConfig:
    """Figma REST API parameters."""

    api_url: str = "https://api.figma.com/v1"
    web_url: str = "https://www.figma.com"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class DigestConfig:
    """Digest run tuning."""

    lookback_hours: int = 24
    concurrency: int = 3
    warning_threshold_days: int = 3
    format: str = "per-event"


@dataclass(frozen=True)
class Config:
    """Top-level figdigest configuration."""

    encryption_key: str = ""
    slack_webhook_url: str = ""
    log_level: str = "INFO"

    redis: RedisConfig = field(default_factory=RedisConfig)
    figma: FigmaConfig = field(default_factory=FigmaConfig)
    digest: DigestConfig = field(default_factory=DigestConfig)

    def validate_for_digest(self) -> list[str]:
        """Return the names of mandatory settings that are missing for a digest run."""
        missing = []
        if not self.encryption_key:
            missing.append("FIGDIGEST_ENCRYPTION_KEY")
        if not self.slack_webhook_url:
            missing.append("FIGDIGEST_SLACK_WEBHOOK_URL")
        return missing


# Singleton
_config: Config | None = None


def get_config() -> Config:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _env_number(name: str, default: str, cast: Callable[[str], T]) -> T:
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name} environment variable: expected a number") from None


def _load_from_env() -> Config:
    """Load configuration from environment variables."""
    digest_format = os.environ.get("FIGDIGEST_DIGEST_FORMAT", "per-event")
    if digest_format not in DIGEST_FORMATS:
        digest_format = "per-event"

    redis_cfg = RedisConfig(
        url=os.environ.get("FIGDIGEST_REDIS_URL", "redis://127.0.0.1:6379/0"),
    )

    figma_cfg = FigmaConfig(
        api_url=os.environ.get("FIGDIGEST_FIGMA_API_URL", "https://api.figma.com/v1"),
        web_url=os.environ.get("FIGDIGEST_FIGMA_WEB_URL", "https://www.figma.com"),
        timeout_seconds=_env_number("FIGDIGEST_HTTP_TIMEOUT", "30", float),
    )

    digest_cfg = DigestConfig(
        lookback_hours=_env_number("FIGDIGEST_LOOKBACK_HOURS", "24", int),
        concurrency=_env_number("FIGDIGEST_CONCURRENCY", "3", int),
        warning_threshold_days=_env_number("FIGDIGEST_WARNING_DAYS", "3", int),
        format=digest_format,
    )

    return Config(
        encryption_key=os.environ.get("FIGDIGEST_ENCRYPTION_KEY", ""),
        slack_webhook_url=os.environ.get("FIGDIGEST_SLACK_WEBHOOK_URL", ""),
        log_level=os.environ.get("FIGDIGEST_LOG_LEVEL", "INFO").upper(),
        redis=redis_cfg,
        figma=figma_cfg,
        digest=digest_cfg,
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None
