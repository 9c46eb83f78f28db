"""Error taxonomy for the marketplace API.

Services raise these; the handlers in app/main.py render every one of them
as the same envelope:

    {"status": "fail" | "error", "message": "..."}

"fail" means the caller did something the API refuses (4xx).  "error"
means we (or an upstream we depend on) could not do our part (5xx).
Nothing in this service retries on either.
"""

from __future__ import annotations

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(
        self, message: str | None = None, *, headers: dict[str, str] | None = None
    ) -> None:
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)

    @property
    def status(self) -> str:
        return "fail" if self.status_code < 500 else "error"

    def to_body(self) -> dict[str, str]:
        return {"status": self.status, "message": self.message}


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ValidationError(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    default_message = "Invalid request"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class AlreadyPurchasedError(AppError):
    # 400 rather than 409: at checkout time this informs the user, it is not a race.
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "You have already purchased this course"


class PaymentVerificationFailedError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Payment verification failed"


class WebhookSignatureError(AppError):
    # Deliberately vague: the caller is unauthenticated.
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid signature"


class GatewayUnavailableError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Payment service unavailable"
