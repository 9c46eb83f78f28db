"""Assert that payment signatures and gateway secrets never appear in logs.

These tests drive the payment endpoints at DEBUG and search every captured
record (message and formatted args) for the sensitive values.
"""

from __future__ import annotations

import json
import logging

import pytest
from fastapi.testclient import TestClient

from app.services.payment_gateway import compute_webhook_signature
from tests.conftest import (
    KEY_SECRET,
    WEBHOOK_SECRET,
    auth_headers,
    create_test_course,
    sign_payment,
)


def _all_log_text(caplog: pytest.LogCaptureFixture) -> str:
    return " ".join(r.getMessage() for r in caplog.records)


def test_verify_does_not_log_signature_or_key_secret(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    create_test_course("course-1")
    headers = auth_headers("buyer")
    with caplog.at_level(logging.DEBUG):
        order_id = client.post(
            "/v1/payments/checkout", json={"courseId": "course-1"}, headers=headers
        ).json()["order"]["id"]
        signature = sign_payment(order_id, "pay_secret_check")
        resp = client.post(
            "/v1/payments/verify",
            json={
                "courseId": "course-1",
                "orderId": order_id,
                "paymentId": "pay_secret_check",
                "signature": signature,
            },
            headers=headers,
        )

    assert resp.status_code == 200
    text = _all_log_text(caplog)
    assert signature not in text, "Payment signature found in log output!"
    assert KEY_SECRET not in text, "Key secret found in log output!"
    # The identifiers around the secret are what gets logged.
    assert order_id in text


def test_failed_verify_does_not_log_submitted_signature(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    create_test_course("course-1")
    headers = auth_headers("buyer")
    order_id = client.post(
        "/v1/payments/checkout", json={"courseId": "course-1"}, headers=headers
    ).json()["order"]["id"]
    forged = "f" * 64

    with caplog.at_level(logging.DEBUG):
        resp = client.post(
            "/v1/payments/verify",
            json={
                "courseId": "course-1",
                "orderId": order_id,
                "paymentId": "pay_forged",
                "signature": forged,
            },
            headers=headers,
        )

    assert resp.status_code == 400
    assert forged not in _all_log_text(caplog)


def test_webhook_does_not_log_signature_secret_or_body(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    body = json.dumps(
        {
            "event": "payment.captured",
            "payload": {
                "payment": {
                    "entity": {
                        "id": "pay_hook_secret",
                        "order_id": "order_hook",
                        "email": "learner-private@example.com",
                    }
                }
            },
        }
    ).encode()
    signature = compute_webhook_signature(body, WEBHOOK_SECRET)

    with caplog.at_level(logging.DEBUG):
        client.post(
            "/v1/payments/webhook",
            content=body,
            headers={"X-Razorpay-Signature": signature},
        )
        client.post(
            "/v1/payments/webhook",
            content=body,
            headers={"X-Razorpay-Signature": "0" * 64},
        )

    text = _all_log_text(caplog)
    assert signature not in text
    assert WEBHOOK_SECRET not in text
    assert "learner-private@example.com" not in text
