from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from app.models.course import Course


@dataclass(frozen=True, slots=True)
class Purchase:
    """Entitlement record: ``user_id`` bought ``course_id``.

    Written once, after the gateway signature checks out.  Never updated.
    """

    id: str
    user_id: str
    course_id: str
    order_id: str
    payment_id: str
    created_at: int

    @staticmethod
    def new(
        *,
        user_id: str,
        course_id: str,
        order_id: str,
        payment_id: str,
        created_at: int,
    ) -> Purchase:
        return Purchase(
            id=str(uuid4()),
            user_id=user_id,
            course_id=course_id,
            order_id=order_id,
            payment_id=payment_id,
            created_at=created_at,
        )


@dataclass(frozen=True, slots=True)
class PurchasedCourse:
    purchase: Purchase
    course: Course


@dataclass(frozen=True, slots=True)
class GatewayOrder:
    """Pending-payment record owned by the gateway.

    ``notes`` carries the userId/courseId attached at checkout so the
    verify step can recover what the order was for.
    """

    order_id: str
    amount: int  # minor units
    currency: str
    receipt: str
    status: str = "created"  # created|attempted|paid
    notes: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    order: GatewayOrder
    course: Course


@dataclass(frozen=True, slots=True)
class WebhookOutcome:
    event: str
    processed: bool
    duplicate: bool = False
    payment_id: str | None = None
    # A Purchase with this payment id already exists.
    reconciled: bool = False
