"""Registration event consumer that sends verification emails."""

from __future__ import annotations

import logging
import threading
from typing import Any

from prometheus_client import Counter
from pydantic import ValidationError
from redis import Redis
from redis.exceptions import RedisError, ResponseError

from shared_schemas import RegistrationEvent

from .mailer import EmailDeliveryError, VerificationSender

logger = logging.getLogger(__name__)

MESSAGES = Counter(
    "notification_registration_messages_total",
    "Registration events handled by the consumer, by outcome.",
    ["outcome"],
)

# "0" re-reads entries delivered to this consumer but never acknowledged,
# ">" asks for entries never delivered to the group.
PENDING_CURSOR = "0"
NEW_CURSOR = ">"


def _text(value: Any) -> str:
    return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else str(value)


def _field(fields: dict, name: str) -> Any:
    if name in fields:
        return fields[name]
    return fields.get(name.encode("ascii"))


class VerificationConsumer:
    """Reads registration events from a Redis stream consumer group.

    Every handled message is acknowledged, including ones that could not be
    decoded or whose email failed to send: notification delivery is best
    effort, and an unacknowledged poison message would be redelivered forever.
    A message is left pending only when the process dies mid-flight or its
    acknowledgement fails; it is read again on the next start or after the
    broker error is retried.
    """

    def __init__(
        self,
        client: Redis,
        sender: VerificationSender,
        *,
        stream: str,
        group: str,
        consumer_name: str,
        block_ms: int | None = 1000,
        retry_delay_seconds: float = 2.0,
    ) -> None:
        self._client = client
        self._sender = sender
        self._stream = stream
        self._group = group
        self._consumer_name = consumer_name
        self._block_ms = block_ms
        self._retry_delay = retry_delay_seconds
        self._cursor = PENDING_CURSOR

    def ensure_group(self) -> None:
        """Create the consumer group (and stream) unless it already exists."""
        try:
            self._client.xgroup_create(self._stream, self._group, id="0", mkstream=True)
            logger.info("created consumer group %s on %s", self._group, self._stream)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise

    def run(self, stop: threading.Event) -> None:
        """Process messages until ``stop`` is set."""
        self.ensure_group()
        logger.info(
            "consumer %s started on %s (group %s), waiting for messages",
            self._consumer_name,
            self._stream,
            self._group,
        )
        while not stop.is_set():
            try:
                self.poll_once()
            except RedisError as exc:
                logger.warning("consumer read error: %s", exc)
                # an entry whose ack failed is still pending for this consumer
                self._cursor = PENDING_CURSOR
                stop.wait(self._retry_delay)
        logger.info("consumer %s stopped", self._consumer_name)

    def poll_once(self) -> int:
        """Fetch and handle at most one message; return how many were handled."""
        # the pending backlog is drained without blocking
        block = None if self._cursor == PENDING_CURSOR else self._block_ms
        response = self._client.xreadgroup(
            self._group,
            self._consumer_name,
            {self._stream: self._cursor},
            count=1,
            block=block,
        )
        entries = [entry for _, stream_entries in response or [] for entry in stream_entries]
        if not entries:
            if self._cursor == PENDING_CURSOR:
                self._cursor = NEW_CURSOR
            return 0

        handled = 0
        for message_id, fields in entries:
            if fields is None:
                # pending entry that was trimmed from the stream
                self._ack(message_id)
                continue
            try:
                self.handle(message_id, fields)
            finally:
                self._ack(message_id)
            handled += 1
        return handled

    def handle(self, message_id: Any, fields: dict) -> None:
        raw_value = _field(fields, "value")
        try:
            if raw_value is None:
                raise ValueError("message has no value field")
            event = RegistrationEvent.model_validate_json(raw_value)
        except (ValidationError, ValueError) as exc:
            MESSAGES.labels(outcome="malformed").inc()
            logger.error("consumer: dropping malformed message %s: %s", _text(message_id), exc)
            return

        logger.info("consumer: received registration event for account %s", event.account_id)
        try:
            self._sender.send_verification(event.email, event.verification_token, event.base_url)
        except EmailDeliveryError as exc:
            MESSAGES.labels(outcome="send_failed").inc()
            logger.error(
                "consumer: verification email for account %s not sent",
                event.account_id,
                exc_info=exc,
            )
            return
        except Exception as exc:
            MESSAGES.labels(outcome="send_failed").inc()
            logger.error(
                "consumer: sender failed unexpectedly for account %s",
                event.account_id,
                exc_info=exc,
            )
            return

        MESSAGES.labels(outcome="sent").inc()
        logger.info("consumer: verification email sent for account %s", event.account_id)

    def _ack(self, message_id: Any) -> None:
        self._client.xack(self._stream, self._group, message_id)
