"""Access token verification.

Tokens are issued by the identity service and this engine only reads them.
``create_access_token`` produces the same claims for tooling and tests.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import jwt

from imtihon.core.config import settings

ACCESS_TOKEN_TYPE = "access"


class InvalidAccessToken(Exception):
    """Token is expired, tampered with, of the wrong type or missing claims."""


@dataclass(frozen=True)
class AccessClaims:
    user_id: UUID
    role: str


def _secret() -> str:
    if not settings.JWT_SECRET:
        raise ValueError("JWT_SECRET must be set")
    return settings.JWT_SECRET


def create_access_token(user_id: str, role: str, expires_in: timedelta | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_in or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(user_id),
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
        "jti": uuid4().hex,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, _secret(), algorithm=settings.JWT_ALG)


def decode_access_token(token: str) -> AccessClaims:
    """Verify signature and expiry, then pull the subject and role out of the token."""
    try:
        claims = jwt.decode(
            token,
            _secret(),
            algorithms=[settings.JWT_ALG],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidAccessToken("Token has expired") from None
    except jwt.InvalidTokenError as e:
        raise InvalidAccessToken(f"Invalid token: {e}") from e

    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise InvalidAccessToken("Token is not an access token")
    try:
        user_id = UUID(claims["sub"])
    except ValueError:
        raise InvalidAccessToken("Token subject is not a user id") from None
    return AccessClaims(user_id=user_id, role=claims.get("role", ""))
