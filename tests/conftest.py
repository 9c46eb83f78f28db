from __future__ import annotations

import asyncio
import json
from decimal import Decimal
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_purchase_workflow
from app.db.stores import memory_stores, reset_memory_stores
from app.main import app
from app.models.course import Course, Lecture
from app.services import token_service
from app.services.payment_gateway import RazorpayClient, compute_payment_signature
from app.services.purchase_workflow import PurchaseWorkflow
from app.services.webhook_ledger import webhook_ledger

KEY_ID = "rzp_test_key"
KEY_SECRET = "rzp_test_secret"
WEBHOOK_SECRET = "whsec_test_secret"
GATEWAY_BASE_URL = "https://api.razorpay.test"


@pytest.fixture(autouse=True)
def reset_marketplace_state():
    """Fresh in-memory stores (re-seeded), empty webhook ledger, no overrides."""
    reset_memory_stores()
    if hasattr(webhook_ledger, "_seen"):
        webhook_ledger._seen.clear()  # type: ignore[union-attr]
    yield
    app.dependency_overrides.clear()
    app.state.payment_gateway = None


# ---------------------------------------------------------------------------
# Fake Razorpay Orders API
# ---------------------------------------------------------------------------


class FakeRazorpay:
    """In-process stand-in for the Orders API, served through MockTransport.

    The real RazorpayClient runs against it, so URL building, auth, and
    response parsing are exercised.  Set ``fail_status`` to make every call
    return that HTTP status, or ``raise_exc`` to make every call raise.
    """

    def __init__(self) -> None:
        self.orders: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_status: int | None = None
        self.raise_exc: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_exc is not None:
            raise self.raise_exc
        if self.fail_status is not None:
            return httpx.Response(
                self.fail_status,
                json={"error": {"description": "simulated gateway failure"}},
            )

        if request.method == "POST" and request.url.path == "/v1/orders":
            body = json.loads(request.content)
            order_id = f"order_{len(self.orders) + 1:06d}"
            order = {
                "id": order_id,
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
                "notes": body.get("notes") or [],
            }
            self.orders[order_id] = order
            return httpx.Response(200, json=order)

        if request.method == "GET" and request.url.path.startswith("/v1/orders/"):
            order = self.orders.get(request.url.path.rsplit("/", 1)[-1])
            if order is None:
                return httpx.Response(
                    400,
                    json={"error": {"description": "The id provided does not exist"}},
                )
            return httpx.Response(200, json=order)

        return httpx.Response(404, json={"error": {"description": "not found"}})

    def add_order(self, order_id: str, notes: dict | list, amount: int = 50000) -> None:
        self.orders[order_id] = {
            "id": order_id,
            "entity": "order",
            "amount": amount,
            "currency": "INR",
            "receipt": "rcpt_test",
            "status": "created",
            "notes": notes,
        }


@pytest.fixture
def razorpay() -> FakeRazorpay:
    return FakeRazorpay()


@pytest.fixture
def gateway(razorpay: FakeRazorpay) -> RazorpayClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(razorpay.handler))
    return RazorpayClient(
        KEY_ID,
        KEY_SECRET,
        base_url=GATEWAY_BASE_URL,
        timeout_seconds=2.0,
        http_client=http_client,
    )


@pytest.fixture
def client(gateway: RazorpayClient) -> TestClient:
    """TestClient with payments wired to the fake gateway.

    The lifespan does not run without ``with TestClient(...)``, so the
    gateway goes on app.state directly and the workflow is overridden to
    use the test webhook secret.
    """
    app.state.payment_gateway = gateway

    def _workflow() -> PurchaseWorkflow:
        return PurchaseWorkflow(
            memory_stores.courses,
            memory_stores.purchases,
            gateway,
            webhook_secret=WEBHOOK_SECRET,
            event_ledger=webhook_ledger,
        )

    app.dependency_overrides[get_purchase_workflow] = _workflow
    return TestClient(app)


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth_headers(username: str = "test-user") -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(username)}"}


@pytest.fixture
def token() -> str:
    return mint_token()


# ---------------------------------------------------------------------------
# Catalogue and payment helpers
# ---------------------------------------------------------------------------


def create_test_course(
    course_id: str = "course-1",
    *,
    price: str = "500",
    lectures: int = 4,
    instructor_id: str = "instructor-9",
    **fields: Any,
) -> Course:
    """Persist a course with ``lectures`` lectures in the memory store.

    Published unless ``is_published=False``; other ``fields`` (title,
    category, ratings, ...) go straight to ``Course``.
    """
    fields.setdefault("title", f"Course {course_id}")
    fields.setdefault("is_published", True)
    course = Course(
        id=course_id,
        price=Decimal(price),
        instructor_id=instructor_id,
        **fields,
    )

    async def _add() -> Course | None:
        await memory_stores.courses.add(course)
        for n in range(1, lectures + 1):
            await memory_stores.courses.add_lecture(
                Lecture(
                    id=f"{course_id}-lec-{n}",
                    course_id=course_id,
                    title=f"Lecture {n}",
                    position=n,
                )
            )
        return await memory_stores.courses.get(course_id)

    stored = asyncio.run(_add())
    assert stored is not None
    return stored


def sign_payment(order_id: str, payment_id: str) -> str:
    return compute_payment_signature(order_id, payment_id, KEY_SECRET)
