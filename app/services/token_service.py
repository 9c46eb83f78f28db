"""Bearer token validation (ES256).

Access tokens are issued by the account service.  This service only
verifies them, with the public key from JWT_PUBLIC_KEY.

Dev/test: when JWT_PUBLIC_KEY is unset an ephemeral EC key pair is
generated on import, and ``create_access_token`` signs with its private
half so tests and local scripts can mint tokens.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import load_pem_public_key

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

ALGORITHM = "ES256"
ISSUER = "auth-service"
AUDIENCE = "auth-service"
ACCESS_TOKEN_TTL_MIN = 15

if SETTINGS.jwt_public_key:
    _private_key: ec.EllipticCurvePrivateKey | None = None
    _public_key = load_pem_public_key(SETTINGS.jwt_public_key.encode())
    if not isinstance(_public_key, ec.EllipticCurvePublicKey):
        raise ValueError("JWT_PUBLIC_KEY must be an EC (P-256) public key")
else:
    if SETTINGS.is_prod:
        raise ValueError("JWT_PUBLIC_KEY is required when APP_ENV=prod")
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()
    logger.info("No JWT_PUBLIC_KEY configured, using an ephemeral signing key")


def create_access_token(
    *,
    sub: str,
    scope: str = "",
    roles: list[str] | None = None,
) -> str:
    """Sign a token with the ephemeral key.  Dev/test only."""
    if _private_key is None:
        raise RuntimeError("Token minting is unavailable with JWT_PUBLIC_KEY set")
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "scope": scope,
        "roles": roles or ["user"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins algorithm to ES256 to prevent alg:none and alg-switching attacks.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
