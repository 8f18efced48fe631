from __future__ import annotations

import fakeredis
import pytest

from notification_service.consumer import VerificationConsumer
from notification_service.mailer import EmailDeliveryError

STREAM = "user.registered"
GROUP = "notification-service"


class RecordingSender:
    """Captures verification requests; optionally fails or stops the consumer."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = False
        self.on_send = None

    def send_verification(self, to: str, token: str, base_url: str) -> None:
        if self.on_send is not None:
            self.on_send()
        if self.fail:
            raise EmailDeliveryError("relay refused the message")
        self.sent.append((to, token, base_url))


@pytest.fixture
def redis_client() -> fakeredis.FakeStrictRedis:
    client = fakeredis.FakeStrictRedis()
    client.flushall()
    return client


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def make_consumer(redis_client, sender):
    def _make(client=None, consumer_name: str = "worker-1") -> VerificationConsumer:
        consumer = VerificationConsumer(
            client or redis_client,
            sender,
            stream=STREAM,
            group=GROUP,
            consumer_name=consumer_name,
            block_ms=None,
            retry_delay_seconds=0,
        )
        return consumer

    return _make


@pytest.fixture
def consumer(make_consumer) -> VerificationConsumer:
    consumer = make_consumer()
    consumer.ensure_group()
    return consumer
