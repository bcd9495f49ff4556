"""
Notification Hub configuration, read once from environment variables (no extra deps).
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from typing import List


def _get_list(var: str, default: List[str]) -> List[str]:
    val = os.getenv(var)
    if not val:
        return default
    # Split by comma and strip
    return [item.strip() for item in val.split(",") if item.strip()]


@dataclass
class Settings:
    app_name: str
    log_level: str
    cors_allowed_origins: List[str]
    # Broker (Redis lists)
    redis_url: str
    queue_name: str
    publish_timeout_seconds: float
    consumer_enabled: bool
    consumer_poll_seconds: float
    consumer_prefetch: int
    reconnect_delay_seconds: float
    # Processing step
    processing_min_delay: float
    processing_max_delay: float
    processing_failure_rate: float
    # Store retention
    retention_hours: float
    # Realtime
    observer_queue_size: int


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings(
            app_name=os.getenv("APP_NAME", "Notification Hub"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_allowed_origins=_get_list(
                "CORS_ALLOWED_ORIGINS",
                ["http://localhost:4200"],
            ),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            queue_name=os.getenv("NOTIFICATION_QUEUE", "notifications"),
            publish_timeout_seconds=float(
                os.getenv("BROKER_PUBLISH_TIMEOUT_SECONDS", "5.0")
            ),
            consumer_enabled=os.getenv("CONSUMER_ENABLED", "1") == "1",
            consumer_poll_seconds=float(os.getenv("CONSUMER_POLL_SECONDS", "1.0")),
            consumer_prefetch=int(os.getenv("CONSUMER_PREFETCH", "10")),
            reconnect_delay_seconds=float(
                os.getenv("BROKER_RECONNECT_DELAY_SECONDS", "5.0")
            ),
            processing_min_delay=float(os.getenv("PROCESSING_MIN_DELAY_SECONDS", "1.0")),
            processing_max_delay=float(os.getenv("PROCESSING_MAX_DELAY_SECONDS", "2.0")),
            processing_failure_rate=float(os.getenv("PROCESSING_FAILURE_RATE", "0.2")),
            retention_hours=float(os.getenv("RETENTION_HOURS", "24")),
            observer_queue_size=int(os.getenv("OBSERVER_QUEUE_SIZE", "100")),
        )
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the env"""
    global _settings
    _settings = None
