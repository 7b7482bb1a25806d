from __future__ import annotations

import jwt
from jwt import PyJWTError

from vfd_booking.core.config import settings


def verify_access_token(token: str) -> dict:
    """Verify a bearer token minted by the hosted auth provider."""
    if not settings.jwt_secret:
        raise ValueError("jwt secret not configured")
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except PyJWTError as exc:
        raise ValueError("invalid access token") from exc

    if not claims.get("sub"):
        raise ValueError("token has no subject")
    return claims
