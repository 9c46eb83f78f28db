"""Checkout, payment verification and webhook handling.

Per (user, course) a purchase moves through:

    NoOrder ──checkout──> OrderCreated ──verify ok──> Verified
                               │
                               ├── bad signature ──> Rejected
                               └── never paid ─────> Expired

Only Verified is persisted (as a Purchase record).  Orders live in the
gateway; a Rejected or Expired order is abandoned and the client starts
checkout again, which creates a new order.

The synchronous verify call is the only path that grants entitlement.
Webhooks are an audit channel: signature-checked, deduplicated by event id,
logged and counted, but they never write a Purchase.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any

from app.core.errors import (
    AlreadyPurchasedError,
    ConflictError,
    GatewayUnavailableError,
    NotFoundError,
    PaymentVerificationFailedError,
    ValidationError,
    WebhookSignatureError,
)
from app.core.metrics import PAYMENT_ORDERS, PAYMENT_VERIFICATIONS, PAYMENT_WEBHOOKS
from app.models.course import Course
from app.models.purchase import (
    CheckoutSession,
    Purchase,
    PurchasedCourse,
    WebhookOutcome,
)
from app.repos.course_repo import CourseRepo
from app.repos.purchase_repo import PurchaseRepo
from app.services.payment_gateway import PaymentGateway, verify_webhook_signature
from app.services.webhook_ledger import WebhookEventLedger

logger = logging.getLogger(__name__)

PAYMENT_CAPTURED = "payment.captured"


def new_receipt() -> str:
    """Receipt tag unique per checkout request (Razorpay caps it at 40 chars)."""
    return f"rcpt_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class PurchaseWorkflow:
    def __init__(
        self,
        courses: CourseRepo,
        purchases: PurchaseRepo,
        gateway: PaymentGateway | None,
        *,
        webhook_secret: str,
        event_ledger: WebhookEventLedger,
        currency: str = "INR",
    ) -> None:
        self._courses = courses
        self._purchases = purchases
        self._gateway = gateway
        self._webhook_secret = webhook_secret
        self._ledger = event_ledger
        self._currency = currency

    # --- checkout -----------------------------------------------------------

    async def initiate_checkout(self, user_id: str, course_id: str) -> CheckoutSession:
        course = await self._require_course(course_id)

        if await self._purchases.exists(user_id, course_id):
            logger.info(
                "Checkout refused, already purchased user=%s course=%s",
                user_id,
                course_id,
            )
            raise AlreadyPurchasedError()

        amount = course.price_in_minor_units()
        if amount <= 0:
            raise ValidationError("This course is free and cannot be purchased")

        gateway = self._require_gateway()
        try:
            order = await gateway.create_order(
                amount,
                self._currency,
                new_receipt(),
                {"userId": user_id, "courseId": course_id},
            )
        except Exception:
            PAYMENT_ORDERS.labels(result="gateway_error").inc()
            raise
        PAYMENT_ORDERS.labels(result="created").inc()

        logger.info(
            "Checkout started user=%s course=%s order_id=%s amount=%d",
            user_id,
            course_id,
            order.order_id,
            order.amount,
            extra={"course_id": course_id, "order_id": order.order_id},
        )
        return CheckoutSession(order=order, course=course)

    # --- verify ---------------------------------------------------------------

    async def verify_payment(
        self,
        user_id: str,
        course_id: str,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> Purchase:
        log_extra = {
            "course_id": course_id,
            "order_id": order_id,
            "payment_id": payment_id,
        }

        gateway = self._require_gateway()
        if not gateway.verify_payment_signature(order_id, payment_id, signature):
            PAYMENT_VERIFICATIONS.labels(result="signature_mismatch").inc()
            logger.warning(
                "Payment signature mismatch user=%s order_id=%s payment_id=%s",
                user_id,
                order_id,
                payment_id,
                extra=log_extra,
            )
            raise PaymentVerificationFailedError()

        await self._require_course(course_id)

        # A granted pair answers 409 without a gateway round-trip.
        if await self._purchases.exists(user_id, course_id):
            PAYMENT_VERIFICATIONS.labels(result="duplicate").inc()
            raise ConflictError("You already purchased this course")

        # The signature binds payment to order, not order to course.  The
        # notes we attached at checkout say what the order was for.
        order = await gateway.fetch_order(order_id)
        notes = order.notes or {}
        if notes.get("userId") != user_id or notes.get("courseId") != course_id:
            PAYMENT_VERIFICATIONS.labels(result="intent_mismatch").inc()
            logger.warning(
                "Order intent mismatch user=%s course=%s order_id=%s notes=%s",
                user_id,
                course_id,
                order_id,
                notes,
                extra=log_extra,
            )
            raise PaymentVerificationFailedError()

        try:
            purchase = await self._purchases.create(
                user_id, course_id, order_id, payment_id
            )
        except ConflictError:
            # Lost a race with a concurrent verify for the same pair.
            PAYMENT_VERIFICATIONS.labels(result="duplicate").inc()
            raise

        await self._courses.add_student(course_id, user_id)
        PAYMENT_VERIFICATIONS.labels(result="verified").inc()
        logger.info(
            "Payment verified user=%s course=%s order_id=%s payment_id=%s",
            user_id,
            course_id,
            order_id,
            payment_id,
            extra=log_extra,
        )
        return purchase

    # --- webhook --------------------------------------------------------------

    async def handle_webhook(
        self, raw_body: bytes, signature: str | None, event_id: str | None = None
    ) -> WebhookOutcome:
        """Authenticate, dedupe and record one gateway delivery.

        Anything past the signature check is acknowledged: a 4xx would make
        the gateway redeliver the same body indefinitely.  Malformed payloads
        are logged and counted instead.
        """
        if not verify_webhook_signature(raw_body, signature, self._webhook_secret):
            PAYMENT_WEBHOOKS.labels(event="unknown", result="invalid_signature").inc()
            logger.warning("Webhook rejected: signature mismatch")
            raise WebhookSignatureError()

        try:
            body = json.loads(raw_body)
        except ValueError:
            return _malformed("unknown", "body is not valid JSON", event_id)
        if not isinstance(body, dict):
            return _malformed("unknown", "body is not a JSON object", event_id)

        event = str(body.get("event") or "")
        if event != PAYMENT_CAPTURED:
            PAYMENT_WEBHOOKS.labels(event=event or "unknown", result="ignored").inc()
            logger.info("Webhook event ignored event=%s", event, extra={"event": event})
            return WebhookOutcome(event=event, processed=False)

        payment = _captured_payment(body)
        payment_id = payment.get("id") if payment is not None else None
        if payment is None or not payment_id:
            return _malformed(event, "no payment entity or payment id", event_id)
        payment_id = str(payment_id)
        order_id = payment.get("order_id")
        claim_key = event_id or f"{event}:{payment_id}"

        if not await self._ledger.claim(claim_key):
            PAYMENT_WEBHOOKS.labels(event=event, result="duplicate").inc()
            logger.info(
                "Webhook redelivery ignored event=%s payment_id=%s",
                event,
                payment_id,
                extra={"event": event, "payment_id": payment_id},
            )
            return WebhookOutcome(
                event=event, processed=False, duplicate=True, payment_id=payment_id
            )

        log_extra = {"event": event, "payment_id": payment_id, "order_id": order_id}
        purchase = await self._purchases.get_by_payment_id(payment_id)
        PAYMENT_WEBHOOKS.labels(event=event, result="processed").inc()
        if purchase is None:
            # Verify may still be in flight; nothing is granted from here.
            logger.warning(
                "Payment captured without a purchase record payment_id=%s "
                "order_id=%s amount=%s",
                payment_id,
                order_id,
                payment.get("amount"),
                extra=log_extra,
            )
        else:
            logger.info(
                "Payment captured payment_id=%s order_id=%s amount=%s "
                "user=%s course=%s",
                payment_id,
                order_id,
                payment.get("amount"),
                purchase.user_id,
                purchase.course_id,
                extra={**log_extra, "course_id": purchase.course_id},
            )
        return WebhookOutcome(
            event=event,
            processed=True,
            payment_id=payment_id,
            reconciled=purchase is not None,
        )

    # --- queries --------------------------------------------------------------

    async def has_purchased(self, user_id: str, course_id: str) -> bool:
        await self._require_course(course_id)
        return await self._purchases.exists(user_id, course_id)

    async def list_purchases(self, user_id: str) -> list[PurchasedCourse]:
        purchases = await self._purchases.list_for_user(user_id)
        courses = await self._courses.get_many(p.course_id for p in purchases)
        resolved = []
        for p in purchases:
            course = courses.get(p.course_id)
            if course is None:
                logger.warning(
                    "Purchase %s references missing course %s", p.id, p.course_id
                )
                continue
            resolved.append(PurchasedCourse(purchase=p, course=course))
        return resolved

    async def is_entitled(self, user_id: str, course: Course) -> bool:
        return await is_entitled(self._purchases, user_id, course)

    async def _require_course(self, course_id: str) -> Course:
        course = await self._courses.get(course_id)
        if course is None:
            raise NotFoundError("Course not found")
        return course

    def _require_gateway(self) -> PaymentGateway:
        if self._gateway is None:
            raise GatewayUnavailableError()
        return self._gateway


async def is_entitled(purchases: PurchaseRepo, user_id: str, course: Course) -> bool:
    """Instructors always; everyone else only with a Purchase record."""
    if course.is_instructor(user_id):
        return True
    return await purchases.exists(user_id, course.id)


def _captured_payment(body: dict[str, Any]) -> dict[str, Any] | None:
    try:
        entity = body["payload"]["payment"]["entity"]
    except (KeyError, TypeError):
        return None
    return entity if isinstance(entity, dict) else None


def _malformed(event: str, reason: str, event_id: str | None) -> WebhookOutcome:
    PAYMENT_WEBHOOKS.labels(event=event, result="malformed").inc()
    logger.warning(
        "Webhook payload malformed event=%s event_id=%s: %s",
        event,
        event_id,
        reason,
        extra={"event": event},
    )
    return WebhookOutcome(event=event, processed=False)
