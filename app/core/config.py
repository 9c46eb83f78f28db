from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    razorpay_key_id: str | None = None
    razorpay_key_secret: str | None = None
    razorpay_webhook_secret: str | None = None
    razorpay_base_url: str = "https://api.razorpay.com"
    payment_timeout_seconds: float = 10.0
    payment_currency: str = "INR"
    jwt_public_key: str | None = None
    cors_origins: tuple[str, ...] = ("http://localhost:5173",)

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def payments_configured(self) -> bool:
        """Key id, key secret and webhook secret are all present."""
        return bool(
            self.razorpay_key_id
            and self.razorpay_key_secret
            and self.razorpay_webhook_secret
        )


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    timeout_raw = _getenv("PAYMENT_TIMEOUT_SECONDS", "10")
    currency_raw = _getenv("PAYMENT_CURRENCY", "INR").upper()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        payment_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"PAYMENT_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None
    if payment_timeout <= 0:
        raise ValueError(
            f"PAYMENT_TIMEOUT_SECONDS must be positive (got {timeout_raw!r})"
        )

    if len(currency_raw) != 3 or not currency_raw.isalpha():
        raise ValueError(
            f"PAYMENT_CURRENCY must be a 3-letter ISO code (got {currency_raw!r})"
        )

    cors_origins = tuple(
        o.strip()
        for o in _getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
        if o.strip()
    )

    # PEM keys arrive through env files with literal "\n" sequences
    jwt_public_key = _getenv("JWT_PUBLIC_KEY", "").replace("\\n", "\n") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        razorpay_key_id=_getenv("RAZORPAY_KEY_ID", "") or None,
        razorpay_key_secret=_getenv("RAZORPAY_KEY_SECRET", "") or None,
        razorpay_webhook_secret=_getenv("RAZORPAY_WEBHOOK_SECRET", "") or None,
        razorpay_base_url=_getenv("RAZORPAY_BASE_URL", "https://api.razorpay.com"),
        payment_timeout_seconds=payment_timeout,
        payment_currency=currency_raw,
        jwt_public_key=jwt_public_key,
        cors_origins=cors_origins,
    )


SETTINGS = load_settings()
