"""Process entry point for the notification service."""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any

import redis

from .config import Settings, get_settings
from .consumer import VerificationConsumer
from .mailer import SmtpVerificationSender

logger = logging.getLogger(__name__)


def build_consumer(settings: Settings, client: redis.Redis) -> VerificationConsumer:
    sender = SmtpVerificationSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        from_addr=settings.smtp_from,
        username=settings.smtp_username,
        password=settings.smtp_password,
        starttls=settings.smtp_starttls,
        timeout=settings.smtp_timeout_seconds,
    )
    return VerificationConsumer(
        client,
        sender,
        stream=settings.registration_topic,
        group=settings.consumer_group,
        consumer_name=settings.consumer_name,
        block_ms=settings.consumer_block_ms,
        retry_delay_seconds=settings.retry_delay_seconds,
    )


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    stop = threading.Event()

    def _request_shutdown(signum: int, _frame: Any) -> None:
        logger.info("received signal %s, shutting down", signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)

    client = redis.from_url(settings.redis_url)
    logger.info("%s started", settings.app_name)
    try:
        build_consumer(settings, client).run(stop)
    finally:
        client.close()
    logger.info("%s stopped", settings.app_name)


if __name__ == "__main__":
    main()
