"""Publishing of domain events onto Redis Streams."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel
from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class PublishError(Exception):
    """Raised when an event could not be handed to the broker."""


class RedisStreamPublisher:
    """Appends events to a stream named after the topic.

    Entries carry two fields: ``key`` (the ordering key, e.g. recipient email)
    and ``value`` (the JSON payload). Streams are capped approximately at
    ``max_len`` entries.
    """

    def __init__(self, client: Redis, *, max_len: int | None = 100_000) -> None:
        self._client = client
        self._max_len = max_len

    def send(self, topic: str, key: str, payload: Any) -> str:
        """Publish ``payload`` and return the broker-assigned entry id."""
        if isinstance(payload, BaseModel):
            value = payload.model_dump_json()
        else:
            value = json.dumps(payload, default=str)

        logger.debug("publishing event to topic %s (key: %s)", topic, key)
        try:
            entry_id = self._client.xadd(
                topic,
                {"key": key, "value": value},
                maxlen=self._max_len,
                approximate=True,
            )
        except RedisError as exc:
            raise PublishError(f"failed to publish to {topic}") from exc

        if isinstance(entry_id, bytes):
            entry_id = entry_id.decode("ascii")
        logger.info("published event to topic %s (key: %s, id: %s)", topic, key, entry_id)
        return entry_id
