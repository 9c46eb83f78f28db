"""Payment endpoints: checkout, verification, gateway webhook, purchase queries.

Browser flow:
  Client -> POST /v1/payments/checkout {courseId}
  -> gateway order created (amount in paise, notes={userId, courseId})
  -> client opens the gateway widget with orderId + keyId
  -> customer pays, widget returns (orderId, paymentId, signature)
  Client -> POST /v1/payments/verify {courseId, orderId, paymentId, signature}
  -> signature checked, Purchase written, buyer enrolled

The gateway separately POSTs /v1/payments/webhook.  That endpoint is
unauthenticated; the HMAC over the raw body is the only credential.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.api.dependencies import (
    ID_MAX_LENGTH,
    get_payment_gateway,
    get_purchase_workflow,
    require_user,
)
from app.models.course import Course
from app.models.principal import Principal
from app.models.purchase import Purchase
from app.services.payment_gateway import PaymentGateway
from app.services.purchase_workflow import PurchaseWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payments", tags=["payments"])


class _CamelModel(BaseModel):
    # The checkout widget speaks camelCase; accept snake_case too.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckoutIn(_CamelModel):
    course_id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)


class VerifyIn(_CamelModel):
    course_id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
    order_id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
    payment_id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
    # hex SHA-256 is 64 chars; not stored, only compared
    signature: str = Field(min_length=1, max_length=128)


class CourseSummaryOut(_CamelModel):
    id: str
    title: str
    price: str


class OrderOut(_CamelModel):
    id: str
    amount: int
    currency: str
    receipt: str


class CheckoutOut(_CamelModel):
    status: str = "success"
    order: OrderOut
    course: CourseSummaryOut
    key_id: str | None = None


class PurchaseOut(_CamelModel):
    id: str
    course_id: str
    order_id: str
    payment_id: str
    created_at: int


class VerifyOut(_CamelModel):
    status: str = "success"
    message: str
    purchase: PurchaseOut


class PurchaseStatusOut(_CamelModel):
    status: str = "success"
    has_purchased: bool


class PurchasedCourseOut(_CamelModel):
    purchase: PurchaseOut
    course: CourseSummaryOut


class PurchasesOut(_CamelModel):
    status: str = "success"
    results: int
    courses: list[PurchasedCourseOut]


class WebhookAckOut(BaseModel):
    status: str = "success"
    received: bool = True
    duplicate: bool = False


def _course_summary(course: Course) -> CourseSummaryOut:
    return CourseSummaryOut(id=course.id, title=course.title, price=str(course.price))


def _purchase_out(purchase: Purchase) -> PurchaseOut:
    return PurchaseOut(
        id=purchase.id,
        course_id=purchase.course_id,
        order_id=purchase.order_id,
        payment_id=purchase.payment_id,
        created_at=purchase.created_at,
    )


@router.post("/checkout", response_model=CheckoutOut, response_model_by_alias=True)
async def checkout(
    body: CheckoutIn,
    principal: Annotated[Principal, Depends(require_user)],
    workflow: Annotated[PurchaseWorkflow, Depends(get_purchase_workflow)],
    gateway: Annotated[PaymentGateway | None, Depends(get_payment_gateway)],
) -> CheckoutOut:
    session = await workflow.initiate_checkout(principal.user_id, body.course_id)
    return CheckoutOut(
        order=OrderOut(
            id=session.order.order_id,
            amount=session.order.amount,
            currency=session.order.currency,
            receipt=session.order.receipt,
        ),
        course=_course_summary(session.course),
        key_id=getattr(gateway, "key_id", None),
    )


@router.post("/verify", response_model=VerifyOut, response_model_by_alias=True)
async def verify(
    body: VerifyIn,
    principal: Annotated[Principal, Depends(require_user)],
    workflow: Annotated[PurchaseWorkflow, Depends(get_purchase_workflow)],
) -> VerifyOut:
    purchase = await workflow.verify_payment(
        principal.user_id,
        body.course_id,
        body.order_id,
        body.payment_id,
        body.signature,
    )
    return VerifyOut(
        message="Payment verified successfully",
        purchase=_purchase_out(purchase),
    )


@router.post("/webhook", response_model=WebhookAckOut)
async def webhook(
    request: Request,
    workflow: Annotated[PurchaseWorkflow, Depends(get_purchase_workflow)],
    x_razorpay_signature: Annotated[str | None, Header()] = None,
    x_razorpay_event_id: Annotated[str | None, Header()] = None,
) -> WebhookAckOut:
    # The MAC covers the bytes as received; never verify a re-serialization.
    raw_body = await request.body()
    outcome = await workflow.handle_webhook(
        raw_body, x_razorpay_signature, x_razorpay_event_id
    )
    return WebhookAckOut(duplicate=outcome.duplicate)


@router.get(
    "/purchase-status",
    response_model=PurchaseStatusOut,
    response_model_by_alias=True,
)
async def purchase_status(
    principal: Annotated[Principal, Depends(require_user)],
    workflow: Annotated[PurchaseWorkflow, Depends(get_purchase_workflow)],
    course_id: Annotated[
        str, Query(alias="courseId", min_length=1, max_length=ID_MAX_LENGTH)
    ],
) -> PurchaseStatusOut:
    purchased = await workflow.has_purchased(principal.user_id, course_id)
    return PurchaseStatusOut(has_purchased=purchased)


@router.get("/purchases", response_model=PurchasesOut, response_model_by_alias=True)
async def list_purchases(
    principal: Annotated[Principal, Depends(require_user)],
    workflow: Annotated[PurchaseWorkflow, Depends(get_purchase_workflow)],
) -> PurchasesOut:
    purchased = await workflow.list_purchases(principal.user_id)
    return PurchasesOut(
        results=len(purchased),
        courses=[
            PurchasedCourseOut(
                purchase=_purchase_out(p.purchase),
                course=_course_summary(p.course),
            )
            for p in purchased
        ],
    )
