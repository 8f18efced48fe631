from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os
import socket

from shared_schemas import REGISTRATION_TOPIC


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the verification email consumer."""

    app_name: str = "notification-service"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    registration_topic: str = os.getenv("REGISTRATION_TOPIC", REGISTRATION_TOPIC)
    consumer_group: str = os.getenv("CONSUMER_GROUP", "notification-service")
    consumer_name: str = os.getenv("CONSUMER_NAME", socket.gethostname())
    consumer_block_ms: int = int(os.getenv("CONSUMER_BLOCK_MS", "1000"))
    retry_delay_seconds: float = float(os.getenv("CONSUMER_RETRY_DELAY_SECONDS", "2"))
    smtp_host: str = os.getenv("SMTP_HOST", "localhost")
    smtp_port: int = int(os.getenv("SMTP_PORT", "1025"))
    smtp_from: str = os.getenv("SMTP_FROM", "noreply@accounts.local")
    smtp_username: str = os.getenv("SMTP_USERNAME", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    smtp_starttls: bool = os.getenv("SMTP_STARTTLS", "false").lower() in {"1", "true", "yes"}
    smtp_timeout_seconds: float = float(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()
