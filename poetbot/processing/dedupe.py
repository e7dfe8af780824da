"""Best-effort de-duplication of Slack events under at-least-once delivery.

Slack retries a webhook it did not see acknowledged in time, and the queue
transport retries a failed callback, so the same ``event_id`` can reach the
responder more than once, sometimes concurrently. The guard is consulted before
generation and again right before delivery, and an event is only marked once
its reply was posted, so a failed attempt stays eligible for retry. Two
near-simultaneous attempts can still both pass the checks; a rare duplicate
chat message is tolerated.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

import redis

from poetbot.config import Settings

logger = logging.getLogger("poetbot")


class DuplicateGuard(Protocol):
    def already_processed(self, event_id: str) -> bool:
        ...

    def mark_processed(self, event_id: str) -> None:
        ...


def _require_event_id(event_id: str) -> str:
    if not event_id or not event_id.strip():
        raise ValueError("event_id cannot be empty")
    return event_id.strip()


class InMemoryDuplicateGuard:
    """Process-local guard for development and tests; does not survive restarts."""

    def __init__(self) -> None:
        self._processed: set[str] = set()
        self._lock = threading.Lock()

    def already_processed(self, event_id: str) -> bool:
        event_id = _require_event_id(event_id)
        with self._lock:
            return event_id in self._processed

    def mark_processed(self, event_id: str) -> None:
        event_id = _require_event_id(event_id)
        with self._lock:
            self._processed.add(event_id)


class RedisDuplicateGuard:
    def __init__(
        self,
        client: Any,
        ttl_seconds: int = 86400,
        key_prefix: str = "poetbot:event:",
    ) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def _key(self, event_id: str) -> str:
        return f"{self.key_prefix}{_require_event_id(event_id)}"

    def already_processed(self, event_id: str) -> bool:
        return bool(self.client.exists(self._key(event_id)))

    def mark_processed(self, event_id: str) -> None:
        # SET NX keeps the first mark's TTL when two attempts both delivered.
        created = self.client.set(self._key(event_id), "1", nx=True, ex=self.ttl_seconds)
        if not created:
            logger.warning("Event already marked processed by another attempt. event_id=%s", event_id)


def build_duplicate_guard(config: Settings) -> DuplicateGuard:
    if not config.redis_url:
        logger.info("REDIS_URL not set; using in-memory duplicate guard")
        return InMemoryDuplicateGuard()
    client = redis.Redis.from_url(config.redis_url, decode_responses=True)
    return RedisDuplicateGuard(
        client,
        ttl_seconds=config.dedupe_ttl_seconds,
        key_prefix=config.dedupe_key_prefix,
    )
