"""
Security Utilities

JWT decoding for access tokens issued by the identity provider, and
constant-time secret comparison.
"""

import hmac
import logging
from typing import Any

import jwt

from innoaccess.core.config import settings

logger = logging.getLogger(__name__)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT.

    Verifies signature, algorithm and expiry.

    Returns:
        The token claims, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        logger.debug("JWT expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"JWT invalid: {e}")
        return None


def secrets_match(received: str | None, expected: str | None) -> bool:
    """Compare two secrets in constant time. Empty values never match."""
    if not received or not expected:
        return False
    return hmac.compare_digest(received.encode(), expected.encode())
