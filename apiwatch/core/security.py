"""
Security utilities for authentication.

Users sign in through the external auth service, which issues HS256 JWTs
whose "sub" claim is the user id. This service only verifies those tokens;
`create_access_token` exists for operational scripts and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from apiwatch.core.config import settings


# =============================================================================
# JWT TOKEN HANDLING
# =============================================================================


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload to encode in the token (typically {"sub": user_id})
        expires_delta: How long until token expires (default one hour)

    Returns:
        Encoded JWT string
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    to_encode.update({"exp": expire})

    return jwt.encode(
        to_encode,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def verify_token(token: str) -> dict[str, Any] | None:
    """
    Verify and decode a JWT token.

    Returns:
        The decoded payload if valid, None if invalid/expired/tampered
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None


def get_token_subject(token: str) -> str | None:
    """Extract the "sub" claim (the user id) from a token, or None."""
    payload = verify_token(token)
    if payload is None:
        return None
    return payload.get("sub")
