from __future__ import annotations

import datetime
from collections.abc import Callable
from typing import Protocol

from app.core.errors import ConflictError
from app.models.purchase import Purchase


class PurchaseRepo(Protocol):
    """Entitlement store.

    ``create`` must refuse a second record for the same (user, course), or a
    reused payment id, at the moment of insertion.  A caller's earlier
    ``exists`` check is only a fast path for a friendlier error.
    """

    async def exists(self, user_id: str, course_id: str) -> bool: ...
    async def create(
        self, user_id: str, course_id: str, order_id: str, payment_id: str
    ) -> Purchase: ...
    async def list_for_user(self, user_id: str) -> list[Purchase]: ...
    async def get_by_payment_id(self, payment_id: str) -> Purchase | None: ...


class InMemoryPurchaseRepo:
    """Dict-backed store keyed by (user_id, course_id).

    ``create`` has no await between its check and its insert, so on one
    event loop the pair check and the write happen as one step.
    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._store: dict[tuple[str, str], Purchase] = {}
        self._by_payment: dict[str, Purchase] = {}
        self._clock = clock or _now

    async def exists(self, user_id: str, course_id: str) -> bool:
        return (user_id, course_id) in self._store

    async def create(
        self, user_id: str, course_id: str, order_id: str, payment_id: str
    ) -> Purchase:
        key = (user_id, course_id)
        if key in self._store:
            raise ConflictError("You already purchased this course")
        if payment_id in self._by_payment:
            raise ConflictError("Payment has already been applied")

        purchase = Purchase.new(
            user_id=user_id,
            course_id=course_id,
            order_id=order_id,
            payment_id=payment_id,
            created_at=self._clock(),
        )
        self._store[key] = purchase
        self._by_payment[payment_id] = purchase
        return purchase

    async def list_for_user(self, user_id: str) -> list[Purchase]:
        return sorted(
            (p for p in self._store.values() if p.user_id == user_id),
            key=lambda p: p.created_at,
        )

    async def get_by_payment_id(self, payment_id: str) -> Purchase | None:
        return self._by_payment.get(payment_id)


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())
