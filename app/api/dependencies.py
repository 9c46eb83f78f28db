from __future__ import annotations

import logging
from typing import Annotated

import jwt
from fastapi import Depends, Path, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import SETTINGS
from app.core.errors import UnauthorizedError
from app.db.stores import Stores, get_stores
from app.models.principal import Principal
from app.services import token_service
from app.services.payment_gateway import PaymentGateway
from app.services.progress_workflow import ProgressWorkflow
from app.services.purchase_workflow import PurchaseWorkflow
from app.services.webhook_ledger import webhook_ledger

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Width of the id columns in app/db/tables.py.
ID_MAX_LENGTH = 64

CourseIdPath = Annotated[str, Path(min_length=1, max_length=ID_MAX_LENGTH)]
LectureIdPath = Annotated[str, Path(min_length=1, max_length=ID_MAX_LENGTH)]


def require_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on any protected endpoint.
    """
    if credentials is None:
        raise UnauthorizedError()

    try:
        claims = token_service.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise UnauthorizedError("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise UnauthorizedError("Invalid token") from None

    principal = Principal(
        user_id=str(claims["sub"]),
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        principal.roles,
    )
    return principal


def get_payment_gateway(request: Request) -> PaymentGateway | None:
    """The client created in the app lifespan, or None when payments are off.

    Order creation and verification fail with 502 without it; the
    purchase queries still work.
    """
    return getattr(request.app.state, "payment_gateway", None)


def get_purchase_workflow(
    stores: Annotated[Stores, Depends(get_stores)],
    gateway: Annotated[PaymentGateway | None, Depends(get_payment_gateway)],
) -> PurchaseWorkflow:
    return PurchaseWorkflow(
        stores.courses,
        stores.purchases,
        gateway,
        webhook_secret=SETTINGS.razorpay_webhook_secret or "",
        event_ledger=webhook_ledger,
        currency=SETTINGS.payment_currency,
    )


def get_progress_workflow(
    stores: Annotated[Stores, Depends(get_stores)],
) -> ProgressWorkflow:
    return ProgressWorkflow(stores.courses, stores.purchases, stores.progress)
