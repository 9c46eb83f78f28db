"""Ledger of gateway webhook events that have already been handled.

Gateways deliver webhooks at least once: a timeout on our side, or a slow
200, and the same event arrives again.  Before acting on an event the
purchase workflow claims its id here; a second claim for the same id
reports a duplicate and the event is acknowledged without being
reprocessed.

Entries expire after RETENTION_SECONDS.  Razorpay stops redelivering well
within that window, so an expired claim cannot be replayed by the gateway.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from app.db.redis import redis_pool

RETENTION_SECONDS = 7 * 24 * 3600


@runtime_checkable
class WebhookEventLedger(Protocol):
    async def claim(self, event_id: str) -> bool:
        """Record ``event_id``.  True if this is the first claim, False if seen."""
        ...


class InMemoryWebhookEventLedger:
    """Per-process ledger for tests and single-instance dev."""

    def __init__(self, retention_seconds: int = RETENTION_SECONDS) -> None:
        self._retention = retention_seconds
        # event_id -> expiry (unix seconds)
        self._seen: dict[str, float] = {}

    async def claim(self, event_id: str) -> bool:
        now = time.time()
        self._prune(now)
        if event_id in self._seen:
            return False
        self._seen[event_id] = now + self._retention
        return True

    def _prune(self, now: float) -> None:
        # Retention is constant, so insertion order is expiry order.
        while self._seen:
            oldest, expires = next(iter(self._seen.items()))
            if expires > now:
                break
            del self._seen[oldest]


class RedisWebhookEventLedger:
    """Shared ledger: SET NX EX makes check-and-record one atomic command."""

    _PREFIX = "webhook:event:"

    def __init__(
        self, redis_client, retention_seconds: int = RETENTION_SECONDS
    ) -> None:
        self._redis = redis_client
        self._retention = retention_seconds

    async def claim(self, event_id: str) -> bool:
        created = await self._redis.set(
            f"{self._PREFIX}{event_id}", "1", nx=True, ex=self._retention
        )
        return bool(created)


if redis_pool is not None:
    webhook_ledger: WebhookEventLedger = RedisWebhookEventLedger(redis_pool)
else:
    webhook_ledger = InMemoryWebhookEventLedger()
