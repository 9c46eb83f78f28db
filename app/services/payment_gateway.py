"""Razorpay integration: order creation and signature checks.

The gateway's contract is fixed and integrated against, not designed here:

  Orders      POST /v1/orders  {amount, currency, receipt, notes}
              amount is in minor units (paise); basic auth key_id:key_secret.

  Checkout    after the customer pays, the client receives
              (order_id, payment_id, signature) where
              signature = hex(HMAC-SHA256(key_secret, f"{order_id}|{payment_id}")).

  Webhooks    X-Razorpay-Signature = hex(HMAC-SHA256(webhook_secret, raw_body)).
              The MAC covers the bytes as sent.  Parsing the JSON and dumping
              it again can reorder keys or change whitespace, so verification
              must run on the raw request body.

Order creation is never retried: a timeout does not tell us whether the
order exists, and a retry could leave two live orders for one purchase
intent.  The caller gets a 502 and starts checkout again.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Protocol

import httpx

from app.core.errors import GatewayUnavailableError
from app.models.purchase import GatewayOrder

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.razorpay.com"


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------


def _hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def compute_payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    return _hmac_sha256_hex(secret, f"{order_id}|{payment_id}".encode("utf-8"))


def verify_signature(
    order_id: str, payment_id: str, provided_signature: str, secret: str
) -> bool:
    """Check a checkout signature.

    hmac.compare_digest runs in time independent of where the first
    differing byte is, so response timing does not reveal how much of a
    guessed signature was right.
    """
    if not provided_signature or not secret:
        return False
    expected = compute_payment_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected, provided_signature)


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    return _hmac_sha256_hex(secret, raw_body)


def verify_webhook_signature(
    raw_body: bytes, provided_signature: str | None, webhook_secret: str
) -> bool:
    if not provided_signature or not webhook_secret:
        return False
    expected = compute_webhook_signature(raw_body, webhook_secret)
    return hmac.compare_digest(expected, provided_signature)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class PaymentGateway(Protocol):
    async def create_order(
        self,
        amount_minor_units: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> GatewayOrder: ...

    async def fetch_order(self, order_id: str) -> GatewayOrder: ...

    def verify_payment_signature(
        self, order_id: str, payment_id: str, signature: str
    ) -> bool: ...


class RazorpayClient:
    """HTTP client for the Razorpay Orders API.

    Built once at startup from settings and handed to the purchase workflow;
    tests construct it around an ``httpx.AsyncClient`` with a mock transport.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not key_id or not key_secret:
            raise ValueError("Razorpay key id and key secret are required")
        self._key_id = key_id
        self._key_secret = key_secret
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_seconds)
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self._timeout)

    @property
    def key_id(self) -> str:
        """Public key id; the browser checkout widget needs it."""
        return self._key_id

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def create_order(
        self,
        amount_minor_units: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> GatewayOrder:
        if amount_minor_units <= 0:
            raise ValueError("order amount must be positive")
        payload = {
            "amount": amount_minor_units,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
        }
        data = await self._request("POST", "/v1/orders", json=payload)
        order = _order_from_payload(data)
        logger.info(
            "Gateway order created order_id=%s amount=%d currency=%s receipt=%s",
            order.order_id,
            order.amount,
            order.currency,
            order.receipt,
            extra={"order_id": order.order_id},
        )
        return order

    async def fetch_order(self, order_id: str) -> GatewayOrder:
        data = await self._request("GET", f"/v1/orders/{order_id}")
        return _order_from_payload(data)

    def verify_payment_signature(
        self, order_id: str, payment_id: str, signature: str
    ) -> bool:
        return verify_signature(order_id, payment_id, signature, self._key_secret)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._http.request(
                method,
                url,
                auth=(self._key_id, self._key_secret),
                timeout=self._timeout,
                **kwargs,
            )
        except httpx.TimeoutException as e:
            logger.error("Gateway timeout %s %s", method, path)
            raise GatewayUnavailableError(
                "Payment service timed out; no order was confirmed"
            ) from e
        except httpx.HTTPError as e:
            logger.error("Gateway transport error %s %s: %s", method, path, e)
            raise GatewayUnavailableError() from e

        if resp.is_error:
            logger.error(
                "Gateway rejected %s %s status=%d body=%s",
                method,
                path,
                resp.status_code,
                _error_description(resp),
            )
            raise GatewayUnavailableError()

        try:
            data = resp.json()
        except ValueError as e:
            logger.error("Gateway returned non-JSON for %s %s", method, path)
            raise GatewayUnavailableError() from e
        if not isinstance(data, dict):
            raise GatewayUnavailableError()
        return data


def _order_from_payload(data: dict[str, Any]) -> GatewayOrder:
    try:
        notes = data.get("notes")
        return GatewayOrder(
            order_id=str(data["id"]),
            amount=int(data["amount"]),
            currency=str(data["currency"]),
            receipt=str(data.get("receipt") or ""),
            status=str(data.get("status") or "created"),
            # Razorpay encodes "no notes" as [] rather than {}
            notes=dict(notes) if isinstance(notes, dict) else {},
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.error("Gateway order payload missing fields: %s", sorted(data))
        raise GatewayUnavailableError() from e


def _error_description(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("description", ""))[:200]
    return str(body)[:200]
